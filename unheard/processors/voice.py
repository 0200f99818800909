"""
unheard/processors/voice.py — Spoken-audio processor.

Decodes the recording, prepares it for recognition and rejects audio under
the quality floor. Speech-to-text itself is out of scope: the content is a
confidence-scored placeholder and the prepared 16 kHz WAV is what a
recogniser would receive.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from unheard.core.config import AudioConfig, VoiceConfig
from unheard.core.constants import InputKind, MediaCategory
from unheard.core.errors import MediaDecodeError, QualityError
from unheard.pipeline.envelope import InputEnvelope, ProcessingResult
from unheard.preprocess.audio import AudioPreprocessor
from unheard.preprocess.codec import MediaBlob, decode_wav
from unheard.processors.base import CancellationToken, InputProcessor
from unheard.quality.audio import validate_audio_quality

logger = logging.getLogger(__name__)

_PLACEHOLDER = "[Voice message received - transcription pending]"
_UNAVAILABLE = "[Voice transcription is unavailable - please type your message instead]"


class VoiceProcessor(InputProcessor):
    """
    Voice input: decode → prepare → quality gate → placeholder transcript.

    Args:
        config: Voice processor settings.
        audio_config: Audio thresholds shared with the preprocessor.
    """

    kind = InputKind.VOICE

    def __init__(
        self,
        config: Optional[VoiceConfig] = None,
        audio_config: Optional[AudioConfig] = None,
    ) -> None:
        self._cfg = config or VoiceConfig()
        self._audio_cfg = audio_config or AudioConfig()
        self._preprocessor = AudioPreprocessor(self._audio_cfg)

    def validate(self, envelope: InputEnvelope) -> bool:
        blob = MediaBlob.coerce(envelope.payload)
        return blob is not None and blob.size > 0 and blob.matches(MediaCategory.AUDIO)

    def process(
        self,
        envelope: InputEnvelope,
        token: Optional[CancellationToken] = None,
    ) -> ProcessingResult:
        started = time.monotonic()
        blob = MediaBlob.coerce(envelope.payload)
        if blob is None:
            raise MediaDecodeError("Voice input must be an audio blob")
        if blob.container != "wav":
            raise MediaDecodeError(
                f"Unsupported audio encoding '{blob.container}' ({blob.mime_type or 'no mime type'})"
            )

        decoded = decode_wav(blob.data)
        self._checkpoint(token)

        prepared = self._preprocessor.prepare(decoded)
        self._checkpoint(token)

        report = validate_audio_quality(
            prepared.quality_after, self._cfg.min_quality_score, self._audio_cfg
        )
        after = prepared.quality_after
        if after.too_quiet or after.quality_score < self._cfg.min_quality_score:
            raise QualityError(
                f"Audio quality too low for recognition (score {after.quality_score:.2f})",
                metrics=after,
            )

        logger.debug(
            "Voice audio ready: %.2fs, ops=%s, score=%.3f",
            decoded.duration_seconds, prepared.operations_applied, after.quality_score,
        )
        confidence = (
            envelope.declared_confidence
            if envelope.declared_confidence is not None
            else self._cfg.default_confidence
        )
        return self._result(
            envelope,
            content=_PLACEHOLDER,
            confidence=confidence,
            started=started,
            warnings=report.warnings,
            metadata={
                "audio_type": blob.mime_type or "audio/wav",
                "audio_size": blob.size,
                "duration_seconds": round(decoded.duration_seconds, 3),
                "source_sample_rate": decoded.sample_rate,
                "sample_rate": prepared.sample_rate,
                "channels": prepared.channels,
                "operations_applied": list(prepared.operations_applied),
                "quality_before": prepared.quality_before.to_dict(),
                "quality": report.to_dict(),
                "transcription": "pending",
            },
        )

    def fallback(self, envelope: InputEnvelope) -> ProcessingResult:
        """Report that transcription is unavailable and ask for typed text."""
        started = time.monotonic()
        blob = MediaBlob.coerce(envelope.payload)
        return self._result(
            envelope,
            content=_UNAVAILABLE,
            confidence=0.0,
            started=started,
            errors=["Voice processing failed"],
            metadata={"audio_size": blob.size if blob is not None else 0, "manual_entry": True},
        )
