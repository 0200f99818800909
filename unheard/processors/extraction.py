"""
unheard/processors/extraction.py — Pluggable text-extraction strategy.

The camera processor hands a prepared image to a :class:`TextExtractor`.
Only a placeholder ships here; an OCR engine plugs in by implementing
``extract``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

import numpy as np

from unheard.processors.base import CancellationToken


@dataclass(frozen=True)
class ExtractionResult:
    """
    Output of a text extractor.

    Attributes:
        text: Extracted text (may be a placeholder).
        confidence: Extraction confidence in [0, 1].
        warnings: Notes to surface on the processing result.
    """

    text: str
    confidence: float
    warnings: tuple[str, ...] = ()


@runtime_checkable
class TextExtractor(Protocol):
    """Anything that turns a prepared ``uint8`` image into text."""

    def extract(
        self,
        image: np.ndarray,
        token: Optional[CancellationToken] = None,
    ) -> ExtractionResult:
        ...


class PlaceholderTextExtractor:
    """Reports the image size and that OCR is not wired in."""

    def extract(
        self,
        image: np.ndarray,
        token: Optional[CancellationToken] = None,
    ) -> ExtractionResult:
        height, width = image.shape[:2]
        return ExtractionResult(
            text=f"[OCR text extraction pending - image {width}x{height} prepared]",
            confidence=0.0,
            warnings=("OCR integration pending - using placeholder",),
        )
