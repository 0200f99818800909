"""
unheard/aac/composer.py — Stateful symbol-sequence composer.

Holds the user's in-progress message while they tap symbols, type phrase
fragments, undo and clear. Also tracks quick-phrase usage so the most-used
shortcuts are offered first.
"""

from __future__ import annotations

import itertools
import logging
import threading
from typing import Optional, Union

from unheard.aac.library import DEFAULT_QUICK_PHRASES, QuickPhrase, SymbolLibrary
from unheard.aac.sentence import SentenceConstructor, SentenceResult
from unheard.aac.symbols import ConversationContext, Symbol, SymbolSequence

logger = logging.getLogger(__name__)

_Item = Union[Symbol, str]


class SymbolComposer:
    """
    Builds a :class:`SymbolSequence` incrementally.

    Thread-safe via ``threading.Lock``; a UI thread may add symbols while
    another thread reads the current sequence.

    Args:
        library: Symbol vocabulary; the default library when omitted.
        constructor: Sentence constructor used by :meth:`build`.
    """

    def __init__(
        self,
        library: Optional[SymbolLibrary] = None,
        constructor: Optional[SentenceConstructor] = None,
    ) -> None:
        self._library = library or SymbolLibrary()
        self._constructor = constructor or SentenceConstructor()
        self._lock = threading.Lock()
        self._items: list[_Item] = []
        self._context: Optional[ConversationContext] = None
        self._quick_phrases: list[QuickPhrase] = list(DEFAULT_QUICK_PHRASES)
        self._usage: dict[str, int] = {qp.id: 0 for qp in self._quick_phrases}
        self._custom_ids = itertools.count(1)

    @property
    def library(self) -> SymbolLibrary:
        return self._library

    # ──────────────────────────────────────────
    # Sequence editing
    # ──────────────────────────────────────────

    def add_symbol(self, symbol_id: str) -> Symbol:
        """
        Append the library symbol with *symbol_id*.

        Raises:
            KeyError: If the id is not in the library.
        """
        symbol = self._library.get(symbol_id)
        if symbol is None:
            raise KeyError(f"Unknown symbol id: {symbol_id}")
        with self._lock:
            self._items.append(symbol)
        return symbol

    def add_phrase(self, text: str) -> str:
        """
        Append a free-text phrase fragment.

        Raises:
            ValueError: If *text* is blank.
        """
        phrase = text.strip()
        if not phrase:
            raise ValueError("Phrase must not be blank")
        with self._lock:
            self._items.append(phrase)
        return phrase

    def remove_last(self) -> Optional[_Item]:
        """Remove and return the most recently added item, or None if empty."""
        with self._lock:
            return self._items.pop() if self._items else None

    def clear(self) -> None:
        """Drop every item. The conversation context is kept."""
        with self._lock:
            self._items.clear()

    def set_context(self, context: Optional[ConversationContext]) -> None:
        """Set (or clear with None) the context used by :meth:`build`."""
        with self._lock:
            self._context = context

    @property
    def context(self) -> Optional[ConversationContext]:
        with self._lock:
            return self._context

    @property
    def sequence(self) -> SymbolSequence:
        """Snapshot of the current items as a :class:`SymbolSequence`."""
        with self._lock:
            items = list(self._items)
        return SymbolSequence(
            symbols=tuple(i for i in items if isinstance(i, Symbol)),
            phrases=tuple(i for i in items if isinstance(i, str)),
        )

    def build(self) -> SentenceResult:
        """Construct sentences from the current sequence and context."""
        return self._constructor.build(self.sequence, self.context)

    # ──────────────────────────────────────────
    # Quick phrases
    # ──────────────────────────────────────────

    def quick_phrases(self) -> list[QuickPhrase]:
        """Quick phrases, most used first; ties keep their original order."""
        with self._lock:
            return sorted(self._quick_phrases, key=lambda qp: -self._usage[qp.id])

    def usage_count(self, phrase_id: str) -> int:
        """Number of times the quick phrase has been used."""
        with self._lock:
            return self._usage.get(phrase_id, 0)

    def use_quick_phrase(self, phrase_id: str) -> str:
        """
        Record one use of a quick phrase and return its text.

        Raises:
            KeyError: If no quick phrase has *phrase_id*.
        """
        with self._lock:
            if phrase_id not in self._usage:
                raise KeyError(f"Unknown quick phrase: {phrase_id}")
            self._usage[phrase_id] += 1
            return next(qp.text for qp in self._quick_phrases if qp.id == phrase_id)

    def add_quick_phrase(self, text: str, category: str) -> QuickPhrase:
        """
        Register a custom quick phrase.

        Raises:
            ValueError: If *text* is blank.
        """
        if not text.strip():
            raise ValueError("Quick phrase must not be blank")
        with self._lock:
            phrase = QuickPhrase(f"custom-{next(self._custom_ids)}", text.strip(), category)
            self._quick_phrases.append(phrase)
            self._usage[phrase.id] = 0
        logger.info("Custom quick phrase added: %s", phrase.id)
        return phrase
