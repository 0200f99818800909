"""
unheard/preprocess/image.py — Image preprocessor for text extraction.

Conditional corrections applied in a fixed order:

    brightness → contrast → grayscale → sharpen

Brightness is always corrected before sharpening. Contrast is measured on
the brightness-corrected frame, sharpening is decided on the captured one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import cv2
import numpy as np

from unheard.core.config import ImageConfig
from unheard.quality.image import (
    ImageQualityMetrics,
    analyze_image,
    contrast_of,
    luminance,
    to_unit_float,
)

logger = logging.getLogger(__name__)

OP_BRIGHTNESS_INCREASE = "brightness-increase"
OP_BRIGHTNESS_DECREASE = "brightness-decrease"
OP_CONTRAST_INCREASE = "contrast-increase"
OP_GRAYSCALE = "grayscale"
OP_SHARPEN = "sharpen"

_SHARPEN_KERNEL = np.array(
    [[0, -1, 0],
     [-1, 5, -1],
     [0, -1, 0]],
    dtype=np.float32,
)


@dataclass(frozen=True)
class PreparedImage:
    """
    Result of :meth:`ImagePreprocessor.prepare`.

    Attributes:
        buffer: New ``uint8`` image, ``(h, w)`` after grayscale conversion.
        operations_applied: Names of the corrections applied, in order.
        quality_before: Metrics of the captured image.
        quality_after: Metrics of the prepared image.
    """

    buffer: np.ndarray
    operations_applied: tuple[str, ...]
    quality_before: ImageQualityMetrics
    quality_after: ImageQualityMetrics

    @property
    def width(self) -> int:
        return int(self.buffer.shape[1])

    @property
    def height(self) -> int:
        return int(self.buffer.shape[0])


class ImagePreprocessor:
    """
    Correct exposure, contrast and focus of a captured frame.

    Args:
        config: Image thresholds and correction strengths.
    """

    def __init__(self, config: Optional[ImageConfig] = None) -> None:
        self._cfg = config or ImageConfig()

    def prepare(self, captured: np.ndarray) -> PreparedImage:
        """
        Prepare a captured image for text extraction.

        Args:
            captured: ``(h, w)``, ``(h, w, 3)`` RGB or ``(h, w, 4)`` RGBA image,
                ``uint8`` or float in [0, 1]. Not modified.

        Returns:
            A :class:`PreparedImage`.

        Raises:
            ValueError: If *captured* is empty or not an image shape.
        """
        cfg = self._cfg
        if np.asarray(captured).size == 0:
            raise ValueError("Cannot prepare an empty image")

        quality_before = analyze_image(captured, config=cfg)
        img = to_unit_float(captured)
        if img.ndim == 3 and img.shape[2] == 4:
            img = img[:, :, :3]
        elif img.ndim == 3 and img.shape[2] == 1:
            img = img[:, :, 0]
        ops: list[str] = []

        # Brightness
        if quality_before.is_too_dark:
            img = np.clip(img * cfg.brighten_factor, 0.0, 1.0)
            ops.append(OP_BRIGHTNESS_INCREASE)
        elif quality_before.is_too_bright:
            img = np.clip(img * cfg.darken_factor, 0.0, 1.0)
            ops.append(OP_BRIGHTNESS_DECREASE)

        # Contrast (measured after the brightness fix)
        luma = luminance(img)
        contrast = contrast_of(luma)
        if 0.0 < contrast < cfg.low_contrast:
            mean = float(luma.mean())
            img = np.clip((img - mean) * cfg.contrast_factor + mean, 0.0, 1.0)
            ops.append(OP_CONTRAST_INCREASE)

        # Grayscale
        if cfg.convert_to_grayscale and img.ndim == 3:
            img = luminance(img)
            ops.append(OP_GRAYSCALE)

        # Sharpen
        if quality_before.is_blurry:
            img = np.clip(cv2.filter2D(img.astype(np.float32), -1, _SHARPEN_KERNEL), 0.0, 1.0)
            ops.append(OP_SHARPEN)

        out = (np.asarray(img, dtype=np.float64) * 255.0).round().astype(np.uint8)
        quality_after = analyze_image(out, config=cfg)
        logger.debug(
            "Image prepared: ops=%s score %.3f → %.3f",
            ops, quality_before.quality_score, quality_after.quality_score,
        )
        return PreparedImage(
            buffer=out,
            operations_applied=tuple(ops),
            quality_before=quality_before,
            quality_after=quality_after,
        )
