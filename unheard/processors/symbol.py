"""
unheard/processors/symbol.py — AAC symbol-sequence processor.

Delegates to the sentence constructor and returns the rendering chosen by
the caller. Annotations read:

    complexity  "terse" | "standard" | "expanded"  (default from config)
    context     ConversationContext or mapping with mood/topic/...
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from unheard.aac.sentence import SentenceConstructor
from unheard.aac.symbols import ConversationContext, SymbolSequence
from unheard.core.config import SymbolConfig
from unheard.core.constants import ComplexityLevel, InputKind
from unheard.core.errors import ProcessingError
from unheard.pipeline.envelope import InputEnvelope, ProcessingResult
from unheard.processors.base import CancellationToken, InputProcessor

logger = logging.getLogger(__name__)


class SymbolProcessor(InputProcessor):
    """
    Symbol sequences → sentence.

    Args:
        config: Symbol processor settings.
        constructor: Sentence constructor; a fresh one when omitted.
    """

    kind = InputKind.SYMBOL

    def __init__(
        self,
        config: Optional[SymbolConfig] = None,
        constructor: Optional[SentenceConstructor] = None,
    ) -> None:
        self._cfg = config or SymbolConfig()
        self._constructor = constructor or SentenceConstructor()

    def validate(self, envelope: InputEnvelope) -> bool:
        payload = envelope.payload
        return isinstance(payload, SymbolSequence) and not payload.problems()

    def _complexity(self, envelope: InputEnvelope) -> ComplexityLevel:
        raw = envelope.annotations.get("complexity", self._cfg.default_complexity)
        if isinstance(raw, ComplexityLevel):
            return raw
        try:
            return ComplexityLevel(str(raw).lower())
        except ValueError:
            logger.warning("Unknown complexity %r, using %s", raw, self._cfg.default_complexity)
            return ComplexityLevel(self._cfg.default_complexity)

    def process(
        self,
        envelope: InputEnvelope,
        token: Optional[CancellationToken] = None,
    ) -> ProcessingResult:
        started = time.monotonic()
        sequence = envelope.payload
        if not isinstance(sequence, SymbolSequence):
            raise ProcessingError("Symbol input must be a SymbolSequence")

        level = self._complexity(envelope)
        context = ConversationContext.coerce(envelope.annotations.get("context"))
        sentence = self._constructor.build(sequence, context)
        self._checkpoint(token)

        metadata = sentence.metadata()
        metadata.update({
            "complexity": level.value,
            "renderings": {
                "terse": sentence.terse,
                "standard": sentence.standard,
                "expanded": sentence.expanded,
            },
        })
        return self._result(
            envelope,
            content=sentence.rendering(level),
            confidence=sentence.confidence,
            started=started,
            metadata=metadata,
        )

    def fallback(self, envelope: InputEnvelope) -> ProcessingResult:
        """Concatenate labels and phrases as-is, without grammar."""
        started = time.monotonic()
        payload = envelope.payload
        words: list[str] = []
        if isinstance(payload, SymbolSequence):
            words = [
                getattr(s, "label", "") for s in payload.symbols
            ] + [p for p in payload.phrases if isinstance(p, str)]
        content = " ".join(w.strip() for w in words if isinstance(w, str) and w.strip())
        if not content:
            return self._result(
                envelope, "", 0.0, started,
                errors=["Symbol processing failed"],
            )
        return self._result(envelope, content, self._cfg.fallback_confidence, started)
