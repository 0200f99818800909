"""
unheard/preprocess/audio.py — Audio preprocessor.

Turns a decoded buffer into mono, 16 kHz, level-normalised audio ready for
a speech recogniser. Every step is conditional and reported by name so a
second pass over already-prepared audio reports nothing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from unheard.core.config import AudioConfig
from unheard.preprocess.codec import AudioBuffer, encode_wav
from unheard.quality.audio import AudioQualityMetrics, analyze_audio

logger = logging.getLogger(__name__)

OP_DOWNMIX = "downmix"
OP_RESAMPLE = "resample"
OP_NORMALIZE = "normalize"

_GAIN_TOLERANCE = 1e-3


@dataclass(frozen=True)
class PreparedAudio:
    """
    Result of :meth:`AudioPreprocessor.prepare`.

    Attributes:
        buffer: New float32 mono sample array.
        sample_rate: Output sample rate in Hz.
        channels: Always 1.
        operations_applied: Names of the steps that changed the signal, in order.
        quality_before: Metrics of the input.
        quality_after: Metrics of the output.
    """

    buffer: np.ndarray
    sample_rate: int
    channels: int
    operations_applied: tuple[str, ...]
    quality_before: AudioQualityMetrics
    quality_after: AudioQualityMetrics

    def as_audio_buffer(self) -> AudioBuffer:
        """Return the prepared samples as an :class:`AudioBuffer`."""
        return AudioBuffer(samples=self.buffer, sample_rate=self.sample_rate)

    def to_wav(self) -> bytes:
        """Encode the prepared samples as 16-bit PCM WAV."""
        return encode_wav(self.buffer, self.sample_rate)


def resample_linear(samples: np.ndarray, source_rate: int, target_rate: int) -> np.ndarray:
    """
    Resample a mono buffer by linear interpolation.

    Args:
        samples: 1-D float samples.
        source_rate: Input rate in Hz.
        target_rate: Output rate in Hz.

    Returns:
        A new 1-D float64 array of ``round(n · target / source)`` samples.
    """
    if samples.size == 0 or source_rate == target_rate:
        return np.array(samples, dtype=np.float64, copy=True)
    n_out = max(1, int(round(samples.size * target_rate / float(source_rate))))
    src_t = np.arange(samples.size) / float(source_rate)
    dst_t = np.arange(n_out) / float(target_rate)
    return np.interp(dst_t, src_t, samples)


class AudioPreprocessor:
    """
    Downmix → resample → normalise, each only when needed.

    Inputs are never modified; the output buffer is always a fresh array.

    Args:
        config: Audio thresholds and targets.
    """

    def __init__(self, config: Optional[AudioConfig] = None) -> None:
        self._cfg = config or AudioConfig()

    def prepare(self, raw: AudioBuffer) -> PreparedAudio:
        """
        Prepare decoded audio for recognition.

        Args:
            raw: Decoded audio (mono or multi-channel).

        Returns:
            A :class:`PreparedAudio` with before/after metrics.
        """
        cfg = self._cfg
        ops: list[str] = []
        samples = np.asarray(raw.samples, dtype=np.float64)
        quality_before = analyze_audio(samples, raw.sample_rate, cfg)

        if samples.ndim == 2:
            samples = samples.mean(axis=1) if samples.shape[1] > 0 else np.zeros(samples.shape[0])
            ops.append(OP_DOWNMIX)
        else:
            samples = samples.copy()

        rate = raw.sample_rate
        if rate != cfg.target_sample_rate:
            samples = resample_linear(samples, rate, cfg.target_sample_rate)
            rate = cfg.target_sample_rate
            ops.append(OP_RESAMPLE)

        current = analyze_audio(samples, rate, cfg) if ops else quality_before
        if (current.too_quiet or current.too_loud) and current.peak_level > 0.0:
            gain = min(
                cfg.target_rms / max(current.average_level, 1e-12),
                cfg.peak_ceiling / current.peak_level,
            )
            if abs(gain - 1.0) > _GAIN_TOLERANCE:
                samples = samples * gain
                ops.append(OP_NORMALIZE)

        out = samples.astype(np.float32)
        quality_after = analyze_audio(out, rate, cfg) if ops else quality_before
        logger.debug(
            "Audio prepared: ops=%s score %.3f → %.3f",
            ops, quality_before.quality_score, quality_after.quality_score,
        )
        return PreparedAudio(
            buffer=out,
            sample_rate=rate,
            channels=1,
            operations_applied=tuple(ops),
            quality_before=quality_before,
            quality_after=quality_after,
        )
