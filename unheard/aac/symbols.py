"""
unheard/aac/symbols.py — AAC symbol, sequence and conversation-context types.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional

from unheard.core.constants import Mood

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Symbol:
    """
    A single tappable AAC symbol.

    Attributes:
        id: Stable identifier (``"water"``, ``"thank-you"``).
        label: Text the symbol contributes to a sentence.
        category: Semantic category, normally one of ``C.SYMBOL_CATEGORIES``.
        synonyms: Alternative words used by library search.
    """

    id: str
    label: str
    category: str
    synonyms: tuple[str, ...] = ()

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "Symbol":
        """
        Build a Symbol from a plain mapping.

        Raises:
            ValueError: If ``id``, ``label`` or ``category`` is missing or not a string.
        """
        try:
            sid, label, category = raw["id"], raw["label"], raw["category"]
        except KeyError as exc:
            raise ValueError(f"Symbol is missing field {exc}") from exc
        if not all(isinstance(v, str) for v in (sid, label, category)):
            raise ValueError(f"Symbol fields must be strings: {dict(raw)!r}")
        return cls(sid, label, category, tuple(raw.get("synonyms", ())))


@dataclass(frozen=True)
class SymbolSequence:
    """
    An ordered AAC communication act: symbols plus free-text phrase fragments.

    Attributes:
        symbols: Tapped symbols in order.
        phrases: Free-text fragments appended after the symbols.
    """

    symbols: tuple[Symbol, ...] = ()
    phrases: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "symbols", tuple(self.symbols))
        object.__setattr__(self, "phrases", tuple(self.phrases))

    @property
    def is_empty(self) -> bool:
        """True when there is nothing to say."""
        return not self.symbols and not any(isinstance(p, str) and p.strip() for p in self.phrases)

    @property
    def labels(self) -> list[str]:
        """Symbol labels in order."""
        return [s.label for s in self.symbols]

    def problems(self) -> list[str]:
        """
        Return one message per malformed element; empty when well-formed.

        A sequence built by hand may hold non-Symbol items since dataclasses
        do not check types at runtime.
        """
        issues: list[str] = []
        for i, sym in enumerate(self.symbols):
            if not isinstance(sym, Symbol):
                issues.append(f"Symbol {i} is not a Symbol")
            elif not all(isinstance(v, str) and v.strip() for v in (sym.id, sym.label, sym.category)):
                issues.append(f"Symbol {i} must have a non-empty id, label and category")
        for i, phrase in enumerate(self.phrases):
            if not isinstance(phrase, str):
                issues.append(f"Phrase {i} is not a string")
        return issues

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "SymbolSequence":
        """
        Build a sequence from ``{"symbols": [...], "phrases": [...]}``.

        Symbols may be :class:`Symbol` instances or mappings.

        Raises:
            ValueError: If any symbol mapping is malformed.
        """
        symbols = tuple(
            s if isinstance(s, Symbol) else Symbol.from_mapping(s)
            for s in raw.get("symbols", ())
        )
        return cls(symbols=symbols, phrases=tuple(raw.get("phrases", ())))


@dataclass(frozen=True)
class ConversationContext:
    """
    What the conversation looks like around the current sentence.

    Attributes:
        previous_messages: Earlier utterances, oldest first.
        topic: Optional conversation topic.
        participants: Names of the people in the conversation.
        mood: Register of the exchange; drives the expanded lead-in.
    """

    previous_messages: tuple[str, ...] = ()
    topic: Optional[str] = None
    participants: tuple[str, ...] = ()
    mood: Optional[Mood] = None

    @classmethod
    def coerce(cls, raw: Any) -> Optional["ConversationContext"]:
        """
        Accept a context, a mapping, or ``None``.

        Unknown mood strings are ignored (logged) rather than rejected.
        """
        if raw is None or isinstance(raw, cls):
            return raw
        if not isinstance(raw, Mapping):
            logger.warning("Ignoring conversation context of type %s", type(raw).__name__)
            return None
        mood: Optional[Mood] = None
        if raw.get("mood") is not None:
            try:
                mood = Mood(raw["mood"]) if not isinstance(raw["mood"], Mood) else raw["mood"]
            except ValueError:
                logger.warning("Ignoring unknown mood %r", raw["mood"])
        return cls(
            previous_messages=tuple(raw.get("previous_messages", ())),
            topic=raw.get("topic"),
            participants=tuple(raw.get("participants", ())),
            mood=mood,
        )


def sequence_of(symbols: Iterable[Symbol], phrases: Iterable[str] = ()) -> SymbolSequence:
    """Shorthand for ``SymbolSequence(tuple(symbols), tuple(phrases))``."""
    return SymbolSequence(symbols=tuple(symbols), phrases=tuple(phrases))
