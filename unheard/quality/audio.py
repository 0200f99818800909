"""
unheard/quality/audio.py — Audio quality analyzer.

Pure functions over a decoded float sample buffer in [-1, 1]. Level and
peak are exact; the signal-to-noise figure is a frame-energy proxy:

    noise  = mean energy of the quietest 10 % of 20 ms frames
    signal = mean energy of the frames above the median energy
    snr    = 10 · log10(signal / noise)   (dB, capped)

The composite ``quality_score`` is multiplicative so a single severe
problem (clipping) dominates several mild ones.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from unheard.core.config import AudioConfig
from unheard.core.constants import C

logger = logging.getLogger(__name__)

_EPS = 1e-12

# ── Score factors ─────────────────────────────────────────────
_LOUD_FACTOR = 0.4
_QUIET_FACTOR = 0.6
_LOW_LEVEL_FACTOR = 0.85
_SNR_FLOOR_FACTOR = 0.25


@dataclass(frozen=True)
class AudioQualityMetrics:
    """
    Derived quality metrics for one audio buffer.

    Attributes:
        signal_to_noise: SNR proxy in dB, in [0, ``C.SNR_CAP_DB``].
        average_level: RMS level in [0, 1].
        peak_level: Maximum absolute sample value in [0, 1].
        has_clipping: Any sample at or above the clip threshold.
        too_quiet: RMS under the audibility floor.
        too_loud: Peak over the loudness ceiling.
        quality_score: Composite fitness in [0, 1].
        duration_seconds: Buffer length in seconds.
    """

    signal_to_noise: float
    average_level: float
    peak_level: float
    has_clipping: bool
    too_quiet: bool
    too_loud: bool
    quality_score: float
    duration_seconds: float

    def to_dict(self) -> dict:
        """Return a JSON-friendly dict of the metrics."""
        return {
            "signal_to_noise": round(self.signal_to_noise, 2),
            "average_level": round(self.average_level, 4),
            "peak_level": round(self.peak_level, 4),
            "has_clipping": self.has_clipping,
            "too_quiet": self.too_quiet,
            "too_loud": self.too_loud,
            "quality_score": round(self.quality_score, 3),
            "duration_seconds": round(self.duration_seconds, 3),
        }


@dataclass(frozen=True)
class AudioQualityReport:
    """
    Human-facing verdict on an audio buffer.

    Attributes:
        is_valid: No errors and the score meets the requested floor.
        metrics: The analyzed metrics.
        warnings: Non-blocking issues.
        errors: Blocking issues.
        suggestions: One actionable hint per issue, in the same order.
    """

    is_valid: bool
    metrics: AudioQualityMetrics
    warnings: tuple[str, ...] = field(default_factory=tuple)
    errors: tuple[str, ...] = field(default_factory=tuple)
    suggestions: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        """Return a JSON-friendly dict of the report."""
        return {
            "is_valid": self.is_valid,
            "metrics": self.metrics.to_dict(),
            "warnings": list(self.warnings),
            "errors": list(self.errors),
            "suggestions": list(self.suggestions),
        }


def _as_mono(samples: np.ndarray) -> np.ndarray:
    """Return a float64 1-D view of *samples*, averaging channels if 2-D."""
    buf = np.asarray(samples, dtype=np.float64)
    if buf.ndim == 2:
        buf = buf.mean(axis=1) if buf.shape[1] > 0 else np.zeros(buf.shape[0])
    elif buf.ndim != 1:
        raise ValueError(f"Audio buffer must be 1-D or 2-D (frames, channels), got {buf.ndim}-D")
    return buf


def _estimate_snr(buf: np.ndarray, sample_rate: int, frame_ms: float) -> float:
    """
    Frame-energy SNR proxy in dB.

    Falls back to per-sample energies when the buffer is shorter than two
    frames. Returns ``C.SNR_CAP_DB`` when the noise floor is digital silence.
    """
    frame_len = max(1, int(sample_rate * frame_ms / 1000.0))
    n_frames = buf.size // frame_len
    if n_frames >= 2:
        frames = buf[: n_frames * frame_len].reshape(n_frames, frame_len)
        energies = np.mean(frames ** 2, axis=1)
    else:
        energies = buf ** 2

    ordered = np.sort(energies)
    k = max(1, int(ordered.size * 0.1))
    noise = float(np.mean(ordered[:k]))

    median = float(np.median(energies))
    loud = energies[energies > median]
    signal = float(np.mean(loud)) if loud.size else float(np.mean(energies))

    if signal <= _EPS:
        return 0.0
    if noise <= _EPS:
        return C.SNR_CAP_DB
    snr = 10.0 * np.log10(signal / noise)
    return float(np.clip(snr, 0.0, C.SNR_CAP_DB))


def analyze_audio(
    samples: np.ndarray,
    sample_rate: int,
    config: Optional[AudioConfig] = None,
) -> AudioQualityMetrics:
    """
    Compute quality metrics for a decoded audio buffer.

    Deterministic and side-effect free; *samples* is never modified.

    Args:
        samples: Float samples in [-1, 1], shape ``(n,)`` or ``(n, channels)``.
        sample_rate: Sample rate in Hz.
        config: Thresholds; defaults to :class:`AudioConfig`.

    Returns:
        A frozen :class:`AudioQualityMetrics`.

    Raises:
        ValueError: If *sample_rate* is not positive or the buffer shape is invalid.

    Example::

        >>> m = analyze_audio(np.zeros(16000), 16000)
        >>> m.too_quiet, m.quality_score
        (True, 0.0)
    """
    if sample_rate <= 0:
        raise ValueError(f"sample_rate must be positive, got {sample_rate}")
    cfg = config or AudioConfig()
    buf = _as_mono(samples)
    duration = buf.size / float(sample_rate)

    if buf.size == 0:
        return AudioQualityMetrics(0.0, 0.0, 0.0, False, True, False, 0.0, 0.0)

    magnitude = np.abs(buf)
    rms = float(np.sqrt(np.mean(buf ** 2)))
    peak = float(magnitude.max())
    has_clipping = bool(np.any(magnitude >= cfg.clip_threshold))
    too_quiet = rms < cfg.too_quiet_rms
    too_loud = peak > cfg.too_loud_peak

    if peak <= _EPS:
        return AudioQualityMetrics(
            0.0, rms, peak, has_clipping, True, too_loud, 0.0, duration
        )

    snr = _estimate_snr(buf, sample_rate, cfg.snr_frame_ms)

    score = 1.0
    if has_clipping or too_loud:
        score *= _LOUD_FACTOR
    if too_quiet:
        score *= _QUIET_FACTOR
    elif rms < cfg.low_level_rms:
        score *= _LOW_LEVEL_FACTOR
    score *= _SNR_FLOOR_FACTOR + (1.0 - _SNR_FLOOR_FACTOR) * min(snr / cfg.snr_good_db, 1.0)

    return AudioQualityMetrics(
        signal_to_noise=snr,
        average_level=rms,
        peak_level=peak,
        has_clipping=has_clipping,
        too_quiet=too_quiet,
        too_loud=too_loud,
        quality_score=float(np.clip(score, 0.0, 1.0)),
        duration_seconds=duration,
    )


def validate_audio_quality(
    metrics: AudioQualityMetrics,
    min_quality_score: float = 0.5,
    config: Optional[AudioConfig] = None,
) -> AudioQualityReport:
    """
    Turn metrics into warnings, errors and recording suggestions.

    Args:
        metrics: Output of :func:`analyze_audio`.
        min_quality_score: Score floor for ``is_valid``.
        config: Thresholds; defaults to :class:`AudioConfig`.

    Returns:
        An :class:`AudioQualityReport`.
    """
    cfg = config or AudioConfig()
    warnings: list[str] = []
    errors: list[str] = []
    suggestions: list[str] = []

    if metrics.too_quiet:
        errors.append("Audio is too quiet")
        suggestions.append("Move closer to the microphone or increase input volume")
    if metrics.too_loud:
        errors.append("Audio is too loud or clipping")
        suggestions.append("Move away from the microphone or decrease input volume")
    if metrics.has_clipping:
        warnings.append("Audio contains clipping distortion")
        suggestions.append("Reduce input volume to avoid distortion")

    if not metrics.too_quiet:
        if metrics.signal_to_noise < 10.0:
            errors.append("Signal-to-noise ratio is too low")
            suggestions.append("Record in a quieter environment")
        elif metrics.signal_to_noise < 20.0:
            warnings.append("Background noise detected")
            suggestions.append("Try recording in a quieter location")
        if metrics.average_level < cfg.low_level_rms:
            warnings.append("Audio level is low")
            suggestions.append("Speak louder or move closer to the microphone")

    if metrics.duration_seconds < cfg.min_duration_seconds:
        warnings.append("Audio is very short")
        suggestions.append("Try recording a longer message")

    is_valid = not errors and metrics.quality_score >= min_quality_score
    if not is_valid:
        logger.debug("Audio quality rejected: %s (score=%.3f)", errors, metrics.quality_score)
    return AudioQualityReport(
        is_valid=is_valid,
        metrics=metrics,
        warnings=tuple(warnings),
        errors=tuple(errors),
        suggestions=tuple(suggestions),
    )
