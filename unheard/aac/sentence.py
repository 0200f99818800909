"""
unheard/aac/sentence.py — Rule-based sentence construction from AAC symbols.

Three renderings of the same symbol sequence:

    terse     "I want water please"
    standard  "I want water please."
    expanded  "I want water, please."

Small, ordered, deterministic rules with no model call. Confidence grows with
how much the user said (token count, phrases, context) and is capped at 1.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import NamedTuple, Optional

from unheard.aac.symbols import ConversationContext, Symbol, SymbolSequence
from unheard.core.constants import C, ComplexityLevel, Mood

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────
# Word lists
# ──────────────────────────────────────────────

# Count nouns and the article each takes. Mass nouns never get one.
_ARTICLE_NOUNS: dict[str, str] = {
    "person": "a",
    "friend": "a",
    "phone": "a",
    "book": "a",
    "break": "a",
    "apple": "an",
    "bathroom": "the",
}

_DETERMINERS = frozenset({
    "a", "an", "the", "my", "your", "our", "their", "his", "her",
    "some", "more", "this", "that", "any",
})

# Categories whose adjacent members read as a list ("water and food")
_LISTABLE = frozenset({"things", "places", "emotions", "descriptors", "needs"})

# Actions the formal lead-in is never put in front of
_DESIRE_VERBS = frozenset({"want", "like", "need", "dislike"})


class _Token(NamedTuple):
    text: str
    category: Optional[str]   # None for free-text phrases


@dataclass(frozen=True)
class SentenceResult:
    """
    Three renderings of a symbol sequence plus a confidence score.

    Attributes:
        terse: Words joined by spaces, first letter capitalised.
        standard: Articles and terminal punctuation added.
        expanded: Conjunctions, phrase commas and context lead-in added.
        confidence: Construction confidence in [0, 1].
        token_count: Number of symbols.
        phrase_count: Number of non-blank phrases.
        categories_touched: Distinct symbol categories.
        context_applied: A conversation context was supplied.
    """

    terse: str
    standard: str
    expanded: str
    confidence: float
    token_count: int
    phrase_count: int
    categories_touched: frozenset[str]
    context_applied: bool

    def rendering(self, level: ComplexityLevel) -> str:
        """Return the rendering for *level*."""
        return {
            ComplexityLevel.TERSE: self.terse,
            ComplexityLevel.STANDARD: self.standard,
            ComplexityLevel.EXPANDED: self.expanded,
        }[level]

    def metadata(self) -> dict:
        """Return the construction metadata as a JSON-friendly dict."""
        return {
            "token_count": self.token_count,
            "phrase_count": self.phrase_count,
            "categories_touched": sorted(self.categories_touched),
            "context_applied": self.context_applied,
        }


def _capitalise(text: str) -> str:
    """Upper-case the first character only."""
    return text[:1].upper() + text[1:] if text else text


def sentence_confidence(
    token_count: int,
    phrase_count: int,
    has_context: bool,
) -> float:
    """
    Confidence of a constructed sentence.

    Non-decreasing in *token_count* with the other arguments fixed.

    Returns:
        0.0 when there is nothing to say, otherwise a value in [0.7, 1.0].
    """
    if token_count <= 0 and phrase_count <= 0:
        return 0.0
    confidence = C.SENTENCE_BASE_CONFIDENCE
    if token_count >= 3:
        confidence += C.SENTENCE_BONUS_3_TOKENS
    if token_count >= 5:
        confidence += C.SENTENCE_BONUS_5_TOKENS
    if phrase_count > 0:
        confidence += C.SENTENCE_BONUS_PHRASES
    if has_context:
        confidence += C.SENTENCE_BONUS_CONTEXT
    return round(min(confidence, 1.0), 4)


class SentenceConstructor:
    """
    Builds terse, standard and expanded sentences from a symbol sequence.

    Stateless; one instance can be shared across threads.

    Example::

        >>> builder = SentenceConstructor()
        >>> res = builder.build(library.sequence(["i", "want", "water"], ["please"]))
        >>> res.standard
        'I want water please.'
    """

    def build(
        self,
        sequence: SymbolSequence,
        context: Optional[ConversationContext] = None,
    ) -> SentenceResult:
        """
        Construct all three renderings.

        Args:
            sequence: Symbols and phrases, in order.
            context: Optional conversation context.

        Returns:
            A :class:`SentenceResult`. Empty input yields empty strings and
            confidence 0.
        """
        phrases = [p.strip() for p in sequence.phrases if isinstance(p, str) and p.strip()]
        symbols: list[Symbol] = [s for s in sequence.symbols if s.label.strip()]
        categories = frozenset(s.category for s in symbols)

        tokens = [_Token(s.label.strip(), s.category) for s in symbols]
        tokens += [_Token(p, None) for p in phrases]
        if not tokens:
            return SentenceResult("", "", "", 0.0, 0, 0, frozenset(), context is not None)

        is_question = "questions" in categories
        terse = _capitalise(" ".join(t.text for t in tokens))
        standard = self._standard(tokens, is_question)
        expanded = self._expanded(tokens, categories, is_question, context)

        result = SentenceResult(
            terse=terse,
            standard=standard,
            expanded=expanded,
            confidence=sentence_confidence(len(symbols), len(phrases), context is not None),
            token_count=len(symbols),
            phrase_count=len(phrases),
            categories_touched=categories,
            context_applied=context is not None,
        )
        logger.debug("Sentence built: %r (confidence %.2f)", result.standard, result.confidence)
        return result

    # ──────────────────────────────────────────
    # Renderings
    # ──────────────────────────────────────────

    def _standard(self, tokens: list[_Token], is_question: bool) -> str:
        words = self._with_articles(tokens)
        return _capitalise(" ".join(words) + ("?" if is_question else "."))

    def _expanded(
        self,
        tokens: list[_Token],
        categories: frozenset[str],
        is_question: bool,
        context: Optional[ConversationContext],
    ) -> str:
        symbol_tokens = [t for t in tokens if t.category is not None]
        phrase_tokens = [t for t in tokens if t.category is None]

        words: list[str] = []
        articled = self._with_articles(symbol_tokens, keep_alignment=True)
        for i, tok in enumerate(symbol_tokens):
            prev = symbol_tokens[i - 1] if i > 0 else None
            if prev is not None and prev.category == tok.category and tok.category in _LISTABLE:
                words.append("and")
            words.extend(articled[i])

        body = " ".join(words)
        if phrase_tokens:
            tail = ", ".join(t.text for t in phrase_tokens)
            body = f"{body}, {tail}" if body else tail

        if context is not None:
            body = self._lead_in(body, symbol_tokens, context)

        if is_question:
            mark = "?"
        elif "emotions" in categories and len(tokens) > 2:
            mark = "!"
        else:
            mark = "."
        return _capitalise(body + mark)

    @staticmethod
    def _lead_in(body: str, symbol_tokens: list[_Token], context: ConversationContext) -> str:
        if context.mood is Mood.URGENT:
            if body.lower().startswith("please"):
                return body
            if not (body == "I" or body.startswith("I ")):
                body = body[:1].lower() + body[1:]
            return f"Please, {body}"
        if context.mood is Mood.FORMAL and symbol_tokens:
            head = symbol_tokens[0]
            if head.category == "actions" and head.text.lower() not in _DESIRE_VERBS:
                return f"I would like to {body[:1].lower() + body[1:]}"
        return body

    # ──────────────────────────────────────────
    # Article insertion
    # ──────────────────────────────────────────

    @staticmethod
    def _with_articles(tokens: list[_Token], keep_alignment: bool = False) -> list:
        """
        Insert articles before known count nouns.

        Never inserts at the start of a sentence or after a determiner.
        With *keep_alignment* the result holds one word-list per token.
        """
        out: list[list[str]] = []
        prev_word = ""
        for i, tok in enumerate(tokens):
            group: list[str] = []
            article = _ARTICLE_NOUNS.get(tok.text.lower()) if tok.category is not None else None
            if article and i > 0 and prev_word.lower() not in _DETERMINERS:
                group.append(article)
            group.append(tok.text)
            out.append(group)
            prev_word = tok.text.split(" ")[-1]
        if keep_alignment:
            return out
        return [w for group in out for w in group]
