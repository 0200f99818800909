"""
unheard/processors/camera.py — Photographed-text processor.

decode → prepare (brightness/contrast/grayscale/sharpen) → extract text.
Confidence comes from the extractor.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from unheard.core.config import CameraConfig, ImageConfig
from unheard.core.constants import InputKind, MediaCategory
from unheard.core.errors import MediaDecodeError, ProcessingError
from unheard.pipeline.envelope import InputEnvelope, ProcessingResult
from unheard.preprocess.codec import MediaBlob, decode_image
from unheard.preprocess.image import ImagePreprocessor
from unheard.processors.base import CancellationToken, InputProcessor
from unheard.processors.extraction import PlaceholderTextExtractor, TextExtractor
from unheard.quality.image import analyze_image

logger = logging.getLogger(__name__)

_DESCRIBE = "[Text could not be read from the image - please describe it manually]"


class CameraProcessor(InputProcessor):
    """
    Camera input: photographed text → extracted text.

    Args:
        config: Camera processor settings.
        image_config: Image thresholds shared with the preprocessor.
        extractor: Text-extraction strategy; the placeholder when omitted.
    """

    kind = InputKind.CAMERA

    def __init__(
        self,
        config: Optional[CameraConfig] = None,
        image_config: Optional[ImageConfig] = None,
        extractor: Optional[TextExtractor] = None,
    ) -> None:
        self._cfg = config or CameraConfig()
        self._image_cfg = image_config or ImageConfig()
        self._preprocessor = ImagePreprocessor(self._image_cfg)
        self._extractor: TextExtractor = extractor or PlaceholderTextExtractor()

    def validate(self, envelope: InputEnvelope) -> bool:
        blob = MediaBlob.coerce(envelope.payload)
        return blob is not None and blob.size > 0 and blob.matches(MediaCategory.IMAGE)

    def process(
        self,
        envelope: InputEnvelope,
        token: Optional[CancellationToken] = None,
    ) -> ProcessingResult:
        started = time.monotonic()
        blob = MediaBlob.coerce(envelope.payload)
        if blob is None:
            raise MediaDecodeError("Camera input must be an image blob")

        pixels = decode_image(blob.data)
        self._checkpoint(token)

        if self._cfg.preprocess:
            prepared = self._preprocessor.prepare(pixels)
            image = prepared.buffer
            ops = list(prepared.operations_applied)
            before, after = prepared.quality_before, prepared.quality_after
        else:
            image = pixels
            ops = []
            before = after = analyze_image(pixels, config=self._image_cfg)
        self._checkpoint(token)

        extraction = self._extractor.extract(image, token)
        if not isinstance(extraction.text, str):
            raise ProcessingError("Text extractor returned non-text output")
        logger.debug(
            "Camera text extracted: %d chars, confidence %.2f, ops=%s",
            len(extraction.text), extraction.confidence, ops,
        )

        return self._result(
            envelope,
            content=extraction.text.strip(),
            confidence=extraction.confidence,
            started=started,
            warnings=extraction.warnings,
            metadata={
                "image_type": blob.mime_type or blob.container,
                "image_size": blob.size,
                "width": int(pixels.shape[1]),
                "height": int(pixels.shape[0]),
                "operations_applied": ops,
                "quality_before": before.to_dict(),
                "quality_after": after.to_dict(),
            },
        )

    def fallback(self, envelope: InputEnvelope) -> ProcessingResult:
        started = time.monotonic()
        return self._result(
            envelope, _DESCRIBE, 0.0, started,
            errors=["Camera processing failed"],
            metadata={"manual_description": True},
        )
