"""
unheard/core/constants.py — All system constants for UNHEARD.

Single frozen dataclass with typed constant groups: input kinds and
dispatch states (Enum), dispatch budgets, audio/image quality thresholds,
sentence-confidence weights and processor placeholder confidences.
Call ``UnheardConstants.validate()`` on startup to sanity-check the groups.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────────────────────
# Enums
# ──────────────────────────────────────────────────────────────

class InputKind(Enum):
    """Declared modality of an input envelope. Closed set: one processor each."""

    TEXT = "text"
    VOICE = "voice"
    SYMBOL = "symbol"
    SIGN = "sign"
    CAMERA = "camera"


class MediaCategory(Enum):
    """Coarse category of an encoded media buffer."""

    AUDIO = "audio"
    IMAGE = "image"
    VIDEO = "video"
    UNKNOWN = "unknown"


class DispatchState(Enum):
    """States of the per-dispatch finite state machine."""

    IDLE = "IDLE"
    VALIDATING = "VALIDATING"
    PROCESSING = "PROCESSING"
    SUCCEEDED = "SUCCEEDED"
    FALLEN_BACK = "FALLEN_BACK"
    DONE = "DONE"


class ComplexityLevel(Enum):
    """Which sentence rendering the symbol processor returns."""

    TERSE = "terse"
    STANDARD = "standard"
    EXPANDED = "expanded"


class Mood(Enum):
    """Conversation mood used by the expanded sentence rendering."""

    CASUAL = "casual"
    FORMAL = "formal"
    URGENT = "urgent"


# ──────────────────────────────────────────────────────────────
# Frozen constants dataclass
# ──────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class UnheardConstants:
    """
    Frozen dataclass holding all UNHEARD system constants.

    Use the class attributes directly — do not instantiate this class.
    Values that operators may want to tune are mirrored in
    :mod:`unheard.core.config`; these are the built-in defaults.

    Example::

        from unheard.core.constants import UnheardConstants as C, InputKind

        print(C.DEFAULT_MAX_PROCESSING_MS)   # 5000
        print(InputKind.VOICE)               # InputKind.VOICE
        C.validate()
    """

    # ── Dispatch ──────────────────────────────────────────────
    DEFAULT_MAX_PROCESSING_MS: ClassVar[int] = 5000
    """Deadline for a single processing attempt before it is abandoned."""

    DEFAULT_MIN_CONFIDENCE: ClassVar[float] = 0.5
    """Results below this confidence carry a warning (not a failure)."""

    FALLBACK_WARNING: ClassVar[str] = "Fallback processing was used"
    """Warning attached to every fallback-sourced result."""

    # ── Audio ─────────────────────────────────────────────────
    TARGET_SAMPLE_RATE: ClassVar[int] = 16_000
    """Sample rate (Hz) expected by downstream speech recognisers."""

    CLIP_THRESHOLD: ClassVar[float] = 0.98
    """Any sample magnitude at or above this counts as clipping."""

    TOO_QUIET_RMS: ClassVar[float] = 0.01
    """RMS below this is too quiet to recognise."""

    LOW_LEVEL_RMS: ClassVar[float] = 0.05
    """RMS below this is audible but weak."""

    TOO_LOUD_PEAK: ClassVar[float] = 0.95
    """Peak above this is too loud."""

    TARGET_RMS: ClassVar[float] = 0.1
    """Gain normalisation target level."""

    PEAK_CEILING: ClassVar[float] = 0.9
    """Normalisation never pushes the peak past this."""

    SNR_FRAME_MS: ClassVar[float] = 20.0
    """Frame width used by the SNR proxy."""

    SNR_CAP_DB: ClassVar[float] = 60.0
    """Upper bound reported by the SNR proxy."""

    SNR_GOOD_DB: ClassVar[float] = 30.0
    """SNR at which the SNR factor of the quality score saturates."""

    MIN_AUDIO_SECONDS: ClassVar[float] = 0.3
    """Recordings shorter than this raise a short-audio warning."""

    # ── Image ─────────────────────────────────────────────────
    LUMA_WEIGHTS: ClassVar[tuple[float, float, float]] = (0.299, 0.587, 0.114)
    """Rec.601 RGB → luminance weights."""

    TOO_DARK: ClassVar[float] = 0.2
    """Mean luminance below this is too dark."""

    TOO_BRIGHT: ClassVar[float] = 0.9
    """Mean luminance above this is too bright."""

    BLUR_THRESHOLD: ClassVar[float] = 0.15
    """Sharpness below this counts as blurry."""

    LOW_CONTRAST: ClassVar[float] = 0.15
    """Contrast below this triggers a contrast stretch."""

    SHARPNESS_SCALE: ClassVar[float] = 10.0
    """Scale applied to mean adjacent-pixel difference before capping at 1."""

    # ── Sentence construction ─────────────────────────────────
    SENTENCE_BASE_CONFIDENCE: ClassVar[float] = 0.7
    """Confidence of any non-empty symbol sentence."""

    SENTENCE_BONUS_3_TOKENS: ClassVar[float] = 0.1
    SENTENCE_BONUS_5_TOKENS: ClassVar[float] = 0.1
    SENTENCE_BONUS_PHRASES: ClassVar[float] = 0.05
    SENTENCE_BONUS_CONTEXT: ClassVar[float] = 0.05

    SYMBOL_CATEGORIES: ClassVar[tuple[str, ...]] = (
        "people", "actions", "emotions", "places", "things",
        "descriptors", "time", "questions", "social", "needs",
    )
    """Recommended closed set of symbol categories."""

    # ── Processor defaults ────────────────────────────────────
    VOICE_DEFAULT_CONFIDENCE: ClassVar[float] = 0.85
    SIGN_PLACEHOLDER_CONFIDENCE: ClassVar[float] = 0.4
    SYMBOL_FALLBACK_CONFIDENCE: ClassVar[float] = 0.6
    TEXT_SALVAGE_CONFIDENCE: ClassVar[float] = 0.5

    # ── Enum references ───────────────────────────────────────
    Kinds: ClassVar[type[InputKind]] = InputKind
    """Convenience reference to :class:`InputKind` — use ``C.Kinds.TEXT``."""

    States: ClassVar[type[DispatchState]] = DispatchState
    """Convenience reference to :class:`DispatchState`."""

    # ─────────────────────────────────────────────────────────
    @classmethod
    def validate(cls) -> bool:
        """
        Check the constant groups for internal consistency and log the outcome.

        Does not raise — problems are logged so the caller decides whether
        to continue.

        Returns:
            True if every check passed.
        """
        ok = True
        if not cls.TOO_DARK < cls.TOO_BRIGHT:
            logger.warning(
                "Image thresholds out of order: TOO_DARK=%.2f >= TOO_BRIGHT=%.2f",
                cls.TOO_DARK, cls.TOO_BRIGHT,
            )
            ok = False
        if not cls.TOO_QUIET_RMS < cls.LOW_LEVEL_RMS < cls.TARGET_RMS:
            logger.warning(
                "Audio level thresholds out of order: quiet=%.3f low=%.3f target=%.3f",
                cls.TOO_QUIET_RMS, cls.LOW_LEVEL_RMS, cls.TARGET_RMS,
            )
            ok = False
        if not cls.PEAK_CEILING < cls.TOO_LOUD_PEAK < cls.CLIP_THRESHOLD:
            logger.warning(
                "Audio peak thresholds out of order: ceiling=%.2f loud=%.2f clip=%.2f",
                cls.PEAK_CEILING, cls.TOO_LOUD_PEAK, cls.CLIP_THRESHOLD,
            )
            ok = False
        max_sentence = (
            cls.SENTENCE_BASE_CONFIDENCE
            + cls.SENTENCE_BONUS_3_TOKENS
            + cls.SENTENCE_BONUS_5_TOKENS
            + cls.SENTENCE_BONUS_PHRASES
            + cls.SENTENCE_BONUS_CONTEXT
        )
        if max_sentence < cls.DEFAULT_MIN_CONFIDENCE:
            logger.warning(
                "Sentence confidence can never reach the dispatch threshold (%.2f < %.2f)",
                max_sentence, cls.DEFAULT_MIN_CONFIDENCE,
            )
            ok = False
        if ok:
            logger.info("Constants OK")
        return ok


# ──────────────────────────────────────────────────────────────
# Module-level convenience alias
# ──────────────────────────────────────────────────────────────

#: Convenience alias: ``from unheard.core.constants import C``
C = UnheardConstants
