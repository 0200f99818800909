"""
unheard/quality/image.py — Image quality analyzer.

Brightness and contrast come from Rec.601 luminance; sharpness is an
edge-energy proxy (mean absolute difference between neighbouring pixels).
All three are normalised to [0, 1].
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from unheard.core.config import ImageConfig
from unheard.core.constants import C

logger = logging.getLogger(__name__)

# ── Score factors ─────────────────────────────────────────────
_EXTREME_BRIGHTNESS_FACTOR = 0.4
_OFF_CENTRE_BRIGHTNESS_FACTOR = 0.7
_BLUR_FACTOR = 0.6
_LOW_CONTRAST_FACTOR = 0.7
_COMFORT_RANGE = (0.3, 0.8)

#: Luminance spread below this is rounding noise on a flat image
_FLAT_EPSILON = 1e-6


@dataclass(frozen=True)
class ImageQualityMetrics:
    """
    Derived quality metrics for one image.

    Attributes:
        brightness: Mean luminance in [0, 1].
        contrast: Twice the luminance standard deviation, capped at 1.
        sharpness: Edge-energy proxy in [0, 1].
        is_blurry: Sharpness under the blur threshold.
        is_too_dark: Brightness under the dark threshold.
        is_too_bright: Brightness over the bright threshold.
        quality_score: Composite fitness in [0, 1].
    """

    brightness: float
    contrast: float
    sharpness: float
    is_blurry: bool
    is_too_dark: bool
    is_too_bright: bool
    quality_score: float

    def to_dict(self) -> dict:
        """Return a JSON-friendly dict of the metrics."""
        return {
            "brightness": round(self.brightness, 4),
            "contrast": round(self.contrast, 4),
            "sharpness": round(self.sharpness, 4),
            "is_blurry": self.is_blurry,
            "is_too_dark": self.is_too_dark,
            "is_too_bright": self.is_too_bright,
            "quality_score": round(self.quality_score, 3),
        }


def to_unit_float(pixels: np.ndarray) -> np.ndarray:
    """
    Return *pixels* as float64 in [0, 1].

    Integer arrays are scaled by their dtype maximum; float arrays are
    assumed to be in [0, 1] already and are clipped.
    """
    arr = np.asarray(pixels)
    if np.issubdtype(arr.dtype, np.integer):
        return arr.astype(np.float64) / float(np.iinfo(arr.dtype).max)
    return np.clip(arr.astype(np.float64), 0.0, 1.0)


def luminance(pixels: np.ndarray) -> np.ndarray:
    """
    Reduce an image to a 2-D luminance plane in [0, 1].

    Accepts ``(h, w)`` grayscale, ``(h, w, 1)``, ``(h, w, 3)`` RGB or
    ``(h, w, 4)`` RGBA (alpha ignored).

    Raises:
        ValueError: For any other shape.
    """
    arr = to_unit_float(pixels)
    if arr.ndim == 2:
        return arr
    if arr.ndim == 3 and arr.shape[2] == 1:
        return arr[:, :, 0]
    if arr.ndim == 3 and arr.shape[2] in (3, 4):
        r, g, b = C.LUMA_WEIGHTS
        return r * arr[:, :, 0] + g * arr[:, :, 1] + b * arr[:, :, 2]
    raise ValueError(f"Unsupported image shape: {arr.shape}")


def contrast_of(luma: np.ndarray) -> float:
    """Twice the luminance standard deviation, capped at 1; flat planes give 0."""
    spread = 2.0 * float(luma.std())
    if spread < _FLAT_EPSILON:
        return 0.0
    return min(spread, 1.0)


def _reshape_flat(pixels: np.ndarray, width: Optional[int], height: Optional[int]) -> np.ndarray:
    """Reshape a flat pixel buffer to ``(height, width[, channels])``."""
    arr = np.asarray(pixels)
    if arr.ndim != 1:
        return arr
    if not width or not height:
        raise ValueError("Flat pixel buffers need width and height")
    channels, rem = divmod(arr.size, width * height)
    if rem or channels not in (1, 3, 4):
        raise ValueError(
            f"Buffer of {arr.size} values does not match {width}x{height} with 1, 3 or 4 channels"
        )
    shape = (height, width) if channels == 1 else (height, width, channels)
    return arr.reshape(shape)


def analyze_image(
    pixels: np.ndarray,
    width: Optional[int] = None,
    height: Optional[int] = None,
    config: Optional[ImageConfig] = None,
) -> ImageQualityMetrics:
    """
    Compute quality metrics for an image.

    Args:
        pixels: Image array (``uint8`` or float in [0, 1]); a flat buffer
            is accepted when *width* and *height* are given.
        width: Image width, only needed for flat buffers.
        height: Image height, only needed for flat buffers.
        config: Thresholds; defaults to :class:`ImageConfig`.

    Returns:
        A frozen :class:`ImageQualityMetrics`.

    Raises:
        ValueError: If the buffer shape is not an image.
    """
    cfg = config or ImageConfig()
    arr = _reshape_flat(pixels, width, height)

    if arr.size == 0:
        return ImageQualityMetrics(0.0, 0.0, 0.0, True, True, False, 0.0)

    luma = luminance(arr)
    brightness = float(luma.mean())
    contrast = contrast_of(luma)

    diffs: list[np.ndarray] = []
    if luma.shape[1] > 1:
        diffs.append(np.abs(np.diff(luma, axis=1)).ravel())
    if luma.shape[0] > 1:
        diffs.append(np.abs(np.diff(luma, axis=0)).ravel())
    edge_energy = float(np.concatenate(diffs).mean()) if diffs else 0.0
    sharpness = float(min(edge_energy * cfg.sharpness_scale, 1.0))

    is_too_dark = brightness < cfg.too_dark
    is_too_bright = brightness > cfg.too_bright
    is_blurry = sharpness < cfg.blur_threshold

    score = 1.0
    if is_too_dark or is_too_bright:
        score *= _EXTREME_BRIGHTNESS_FACTOR
    elif not (_COMFORT_RANGE[0] <= brightness <= _COMFORT_RANGE[1]):
        score *= _OFF_CENTRE_BRIGHTNESS_FACTOR
    if is_blurry:
        score *= _BLUR_FACTOR
    if contrast < cfg.low_contrast:
        score *= _LOW_CONTRAST_FACTOR

    return ImageQualityMetrics(
        brightness=brightness,
        contrast=contrast,
        sharpness=sharpness,
        is_blurry=is_blurry,
        is_too_dark=is_too_dark,
        is_too_bright=is_too_bright,
        quality_score=float(np.clip(score, 0.0, 1.0)),
    )
