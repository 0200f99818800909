"""
unheard/processors/sign.py — Sign-language clip processor.

Recognition is not implemented; the processor still probes the clip so
the caller learns its container, size and duration, and returns a
placeholder at a fixed low confidence.
"""

from __future__ import annotations

import time
from typing import Optional

from unheard.core.config import SignConfig
from unheard.core.constants import InputKind, MediaCategory
from unheard.core.errors import ProcessingError
from unheard.pipeline.envelope import InputEnvelope, ProcessingResult
from unheard.preprocess.codec import MediaBlob
from unheard.preprocess.video import probe_video
from unheard.processors.base import CancellationToken, InputProcessor

_PLACEHOLDER = "[Sign language recognition pending]"
_MANUAL = "[Sign language could not be interpreted - please ask for a manual interpretation]"


class SignProcessor(InputProcessor):
    """Sign clips → placeholder with video metadata."""

    kind = InputKind.SIGN

    def __init__(self, config: Optional[SignConfig] = None) -> None:
        self._cfg = config or SignConfig()

    def validate(self, envelope: InputEnvelope) -> bool:
        blob = MediaBlob.coerce(envelope.payload)
        return blob is not None and blob.size > 0 and blob.matches(MediaCategory.VIDEO)

    def process(
        self,
        envelope: InputEnvelope,
        token: Optional[CancellationToken] = None,
    ) -> ProcessingResult:
        started = time.monotonic()
        blob = MediaBlob.coerce(envelope.payload)
        if blob is None:
            raise ProcessingError("Sign input must be a video blob")
        info = probe_video(blob)
        self._checkpoint(token)

        metadata = {"video_type": blob.mime_type or info.container, "recognition": "pending"}
        metadata.update(info.to_dict())
        return self._result(
            envelope,
            content=_PLACEHOLDER,
            confidence=self._cfg.placeholder_confidence,
            started=started,
            warnings=["Sign language recognition is not available yet"],
            metadata=metadata,
        )

    def fallback(self, envelope: InputEnvelope) -> ProcessingResult:
        started = time.monotonic()
        return self._result(
            envelope, _MANUAL, 0.0, started,
            errors=["Sign language processing failed"],
            metadata={"manual_interpretation": True},
        )
