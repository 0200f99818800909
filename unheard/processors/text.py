"""
unheard/processors/text.py — Typed text processor.
"""

from __future__ import annotations

import time
from typing import Optional

from unheard.core.constants import C, InputKind
from unheard.core.errors import ProcessingError
from unheard.pipeline.envelope import InputEnvelope, ProcessingResult
from unheard.processors.base import CancellationToken, InputProcessor

_REENTRY_PROMPT = "[No text received - please type your message again]"


class TextProcessor(InputProcessor):
    """Trims typed text; the only processor with full confidence."""

    kind = InputKind.TEXT

    def validate(self, envelope: InputEnvelope) -> bool:
        return isinstance(envelope.payload, str) and bool(envelope.payload.strip())

    def process(
        self,
        envelope: InputEnvelope,
        token: Optional[CancellationToken] = None,
    ) -> ProcessingResult:
        started = time.monotonic()
        if not isinstance(envelope.payload, str):
            raise ProcessingError("Text payload must be a string")
        text = envelope.payload.strip()
        if not text:
            raise ProcessingError("Text input cannot be empty")
        self._checkpoint(token)
        return self._result(
            envelope,
            content=text,
            confidence=1.0,
            started=started,
            metadata={"character_count": len(text), "word_count": len(text.split())},
        )

    def fallback(self, envelope: InputEnvelope) -> ProcessingResult:
        """Return whatever text is salvageable, else a re-entry prompt."""
        started = time.monotonic()
        payload = envelope.payload
        salvaged = ""
        if isinstance(payload, str):
            salvaged = payload.strip()
        elif isinstance(payload, (bytes, bytearray)):
            salvaged = bytes(payload).decode("utf-8", errors="ignore").strip()
        if salvaged:
            return self._result(
                envelope, salvaged, C.TEXT_SALVAGE_CONFIDENCE, started,
                metadata={"salvaged": True},
            )
        return self._result(
            envelope, _REENTRY_PROMPT, 0.0, started,
            errors=["Text processing failed"],
            metadata={"salvaged": False},
        )
