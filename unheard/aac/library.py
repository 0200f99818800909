"""
unheard/aac/library.py — Default AAC symbol vocabulary and quick phrases.

The library is read-only once built. Lookups by id, by category and a
label/synonym search are what a symbol picker needs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from unheard.aac.symbols import Symbol, SymbolSequence

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────
# Default vocabulary
# ──────────────────────────────────────────────

_DEFAULT_SYMBOLS: list[dict] = [
    # People
    {"id": "i",         "label": "I",         "category": "people", "synonyms": ("me", "myself")},
    {"id": "you",       "label": "you",       "category": "people", "synonyms": ("yourself",)},
    {"id": "we",        "label": "we",        "category": "people", "synonyms": ("us",)},
    {"id": "they",      "label": "they",      "category": "people", "synonyms": ("them",)},
    {"id": "person",    "label": "person",    "category": "people"},
    {"id": "friend",    "label": "friend",    "category": "people"},
    {"id": "family",    "label": "family",    "category": "people"},
    # Actions
    {"id": "want",      "label": "want",      "category": "actions", "synonyms": ("need", "desire")},
    {"id": "go",        "label": "go",        "category": "actions", "synonyms": ("leave", "move")},
    {"id": "eat",       "label": "eat",       "category": "actions", "synonyms": ("consume",)},
    {"id": "drink",     "label": "drink",     "category": "actions"},
    {"id": "help",      "label": "help",      "category": "actions", "synonyms": ("assist", "support")},
    {"id": "talk",      "label": "talk",      "category": "actions", "synonyms": ("speak", "communicate")},
    {"id": "listen",    "label": "listen",    "category": "actions", "synonyms": ("hear",)},
    {"id": "see",       "label": "see",       "category": "actions", "synonyms": ("look", "watch")},
    {"id": "feel",      "label": "feel",      "category": "actions", "synonyms": ("sense",)},
    {"id": "think",     "label": "think",     "category": "actions", "synonyms": ("consider",)},
    {"id": "like",      "label": "like",      "category": "actions", "synonyms": ("enjoy", "love")},
    {"id": "dislike",   "label": "dislike",   "category": "actions", "synonyms": ("hate",)},
    # Emotions
    {"id": "happy",     "label": "happy",     "category": "emotions", "synonyms": ("glad", "joyful")},
    {"id": "sad",       "label": "sad",       "category": "emotions", "synonyms": ("unhappy", "down")},
    {"id": "angry",     "label": "angry",     "category": "emotions", "synonyms": ("mad", "upset")},
    {"id": "scared",    "label": "scared",    "category": "emotions", "synonyms": ("afraid", "frightened")},
    {"id": "excited",   "label": "excited",   "category": "emotions", "synonyms": ("thrilled",)},
    {"id": "tired",     "label": "tired",     "category": "emotions", "synonyms": ("exhausted", "sleepy")},
    {"id": "calm",      "label": "calm",      "category": "emotions", "synonyms": ("peaceful", "relaxed")},
    # Places
    {"id": "home",      "label": "home",      "category": "places"},
    {"id": "school",    "label": "school",    "category": "places"},
    {"id": "work",      "label": "work",      "category": "places"},
    {"id": "outside",   "label": "outside",   "category": "places"},
    {"id": "inside",    "label": "inside",    "category": "places"},
    # Things
    {"id": "food",      "label": "food",      "category": "things"},
    {"id": "water",     "label": "water",     "category": "things"},
    {"id": "phone",     "label": "phone",     "category": "things"},
    {"id": "book",      "label": "book",      "category": "things"},
    {"id": "music",     "label": "music",     "category": "things"},
    # Descriptors
    {"id": "good",      "label": "good",      "category": "descriptors", "synonyms": ("nice", "great")},
    {"id": "bad",       "label": "bad",       "category": "descriptors", "synonyms": ("terrible", "awful")},
    {"id": "big",       "label": "big",       "category": "descriptors", "synonyms": ("large", "huge")},
    {"id": "small",     "label": "small",     "category": "descriptors", "synonyms": ("little", "tiny")},
    {"id": "hot",       "label": "hot",       "category": "descriptors", "synonyms": ("warm",)},
    {"id": "cold",      "label": "cold",      "category": "descriptors", "synonyms": ("cool", "chilly")},
    {"id": "more",      "label": "more",      "category": "descriptors"},
    {"id": "less",      "label": "less",      "category": "descriptors"},
    # Time
    {"id": "now",       "label": "now",       "category": "time", "synonyms": ("currently",)},
    {"id": "later",     "label": "later",     "category": "time"},
    {"id": "today",     "label": "today",     "category": "time"},
    {"id": "tomorrow",  "label": "tomorrow",  "category": "time"},
    {"id": "yesterday", "label": "yesterday", "category": "time"},
    # Questions
    {"id": "what",      "label": "what",      "category": "questions"},
    {"id": "where",     "label": "where",     "category": "questions"},
    {"id": "when",      "label": "when",      "category": "questions"},
    {"id": "who",       "label": "who",       "category": "questions"},
    {"id": "why",       "label": "why",       "category": "questions"},
    {"id": "how",       "label": "how",       "category": "questions"},
    # Social
    {"id": "yes",       "label": "yes",       "category": "social"},
    {"id": "no",        "label": "no",        "category": "social"},
    {"id": "please",    "label": "please",    "category": "social"},
    {"id": "thank-you", "label": "thank you", "category": "social"},
    {"id": "sorry",     "label": "sorry",     "category": "social"},
    {"id": "hello",     "label": "hello",     "category": "social", "synonyms": ("hi",)},
    {"id": "goodbye",   "label": "goodbye",   "category": "social", "synonyms": ("bye",)},
    # Needs
    {"id": "bathroom",  "label": "bathroom",  "category": "needs"},
    {"id": "break",     "label": "break",     "category": "needs", "synonyms": ("rest",)},
    {"id": "quiet",     "label": "quiet",     "category": "needs", "synonyms": ("silence",)},
    {"id": "space",     "label": "space",     "category": "needs", "synonyms": ("room",)},
]


@dataclass(frozen=True)
class QuickPhrase:
    """
    A canned whole-sentence shortcut.

    Attributes:
        id: Stable identifier.
        text: The sentence spoken as-is.
        category: Category the phrase is filed under.
    """

    id: str
    text: str
    category: str


DEFAULT_QUICK_PHRASES: tuple[QuickPhrase, ...] = (
    QuickPhrase("qp-1", "I need help", "needs"),
    QuickPhrase("qp-2", "I need a break", "needs"),
    QuickPhrase("qp-3", "Can you repeat that?", "questions"),
    QuickPhrase("qp-4", "I understand", "social"),
    QuickPhrase("qp-5", "I don't understand", "social"),
    QuickPhrase("qp-6", "Yes, please", "social"),
    QuickPhrase("qp-7", "No, thank you", "social"),
    QuickPhrase("qp-8", "Give me a moment", "needs"),
    QuickPhrase("qp-9", "I feel overwhelmed", "emotions"),
    QuickPhrase("qp-10", "That sounds good", "social"),
)


class SymbolLibrary:
    """
    Read-only index of AAC symbols.

    Args:
        symbols: Vocabulary to index; the built-in set when omitted.
            Later duplicates of an id replace earlier ones.

    Example::

        lib = SymbolLibrary()
        seq = lib.sequence(["i", "want", "water"], phrases=["please"])
        lib.search("thirsty")   # []
        lib.search("glad")      # [Symbol(id='happy', ...)]
    """

    def __init__(self, symbols: Optional[Iterable[Symbol]] = None) -> None:
        if symbols is None:
            symbols = (Symbol.from_mapping(d) for d in _DEFAULT_SYMBOLS)
        self._by_id: dict[str, Symbol] = {}
        for sym in symbols:
            self._by_id[sym.id] = sym
        logger.debug("SymbolLibrary ready: %d symbols", len(self._by_id))

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, symbol_id: object) -> bool:
        return symbol_id in self._by_id

    @property
    def categories(self) -> list[str]:
        """Categories present in the library, in first-seen order."""
        seen: dict[str, None] = {}
        for sym in self._by_id.values():
            seen.setdefault(sym.category, None)
        return list(seen)

    def get(self, symbol_id: str) -> Optional[Symbol]:
        """Return the symbol with *symbol_id*, or None."""
        return self._by_id.get(symbol_id)

    def by_category(self, category: str) -> list[Symbol]:
        """Return every symbol in *category*, in library order."""
        return [s for s in self._by_id.values() if s.category == category]

    def search(self, query: str) -> list[Symbol]:
        """
        Case-insensitive substring search over labels and synonyms.

        An empty or whitespace query returns nothing.
        """
        needle = query.strip().lower()
        if not needle:
            return []
        return [
            s for s in self._by_id.values()
            if needle in s.label.lower() or any(needle in syn.lower() for syn in s.synonyms)
        ]

    def resolve(self, symbol_ids: Iterable[str]) -> list[Symbol]:
        """
        Map ids to symbols, preserving order.

        Raises:
            KeyError: Naming every id that is not in the library.
        """
        ids = list(symbol_ids)
        missing = [i for i in ids if i not in self._by_id]
        if missing:
            raise KeyError(f"Unknown symbol id(s): {', '.join(missing)}")
        return [self._by_id[i] for i in ids]

    def sequence(self, symbol_ids: Iterable[str], phrases: Iterable[str] = ()) -> SymbolSequence:
        """Build a :class:`SymbolSequence` from ids plus free-text phrases."""
        return SymbolSequence(symbols=tuple(self.resolve(symbol_ids)), phrases=tuple(phrases))
