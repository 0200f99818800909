"""
unheard/preprocess/codec.py — Encoded media buffers and their codecs.

MediaBlob pairs raw bytes with the MIME type the capture layer declared.
The *actual* category is sniffed from magic bytes so a voice envelope that
carries a PNG is caught before any audio code touches it.

WAV is decoded/encoded with the stdlib ``wave`` module plus numpy; images
are decoded through OpenCV.
"""

from __future__ import annotations

import io
import logging
import wave
from dataclasses import dataclass
from typing import Any, Optional

import cv2
import numpy as np

from unheard.core.constants import MediaCategory
from unheard.core.errors import MediaDecodeError

logger = logging.getLogger(__name__)

_AUDIO = frozenset({MediaCategory.AUDIO})
_IMAGE = frozenset({MediaCategory.IMAGE})
_VIDEO = frozenset({MediaCategory.VIDEO})
_AUDIO_OR_VIDEO = frozenset({MediaCategory.AUDIO, MediaCategory.VIDEO})


# ──────────────────────────────────────────────
# Magic-byte sniffing
# ──────────────────────────────────────────────

def sniff_container(data: bytes) -> tuple[str, frozenset[MediaCategory]]:
    """
    Identify the container format from the leading bytes.

    Matroska/WebM and generic ISO-BMFF can hold audio-only streams, so they
    report both audio and video as possible categories.

    Args:
        data: Raw encoded bytes.

    Returns:
        ``(container_name, possible_categories)``; ``("unknown", frozenset())``
        when nothing matches.
    """
    head = bytes(data[:16])
    if head[:4] == b"RIFF" and len(head) >= 12:
        form = head[8:12]
        if form == b"WAVE":
            return "wav", _AUDIO
        if form == b"AVI ":
            return "avi", _VIDEO
        if form == b"WEBP":
            return "webp", _IMAGE
    if head[:8] == b"\x89PNG\r\n\x1a\n":
        return "png", _IMAGE
    if head[:3] == b"\xff\xd8\xff":
        return "jpeg", _IMAGE
    if head[:6] in (b"GIF87a", b"GIF89a"):
        return "gif", _IMAGE
    if head[:2] == b"BM":
        return "bmp", _IMAGE
    if head[:4] == b"OggS":
        return "ogg", _AUDIO
    if head[:4] == b"fLaC":
        return "flac", _AUDIO
    if head[:3] == b"ID3" or (len(head) >= 2 and head[0] == 0xFF and head[1] & 0xE0 == 0xE0):
        return "mp3", _AUDIO
    if head[4:8] == b"ftyp":
        brand = head[8:12]
        if brand in (b"M4A ", b"M4B "):
            return "m4a", _AUDIO
        if brand == b"qt  ":
            return "mov", _VIDEO
        return "mp4", _AUDIO_OR_VIDEO
    if head[:4] == b"\x1a\x45\xdf\xa3":
        return "webm", _AUDIO_OR_VIDEO
    return "unknown", frozenset()


_BYTES_LIKE = (bytes, bytearray, memoryview)


def _category_from_mime(mime_type: str) -> MediaCategory:
    """Map a MIME type prefix to a :class:`MediaCategory`."""
    prefix = mime_type.split("/", 1)[0].strip().lower()
    try:
        return MediaCategory(prefix)
    except ValueError:
        return MediaCategory.UNKNOWN


@dataclass(frozen=True)
class MediaBlob:
    """
    Raw encoded media plus the MIME type declared by the capture layer.

    Attributes:
        data: Encoded bytes (WAV, PNG, MP4, ...).
        mime_type: Declared MIME type; may be empty when unknown.
    """

    data: bytes
    mime_type: str = ""

    @property
    def is_well_formed(self) -> bool:
        """True when *data* is bytes-like and *mime_type* is a string."""
        return isinstance(self.data, _BYTES_LIKE) and isinstance(self.mime_type, str)

    @property
    def size(self) -> int:
        """Number of encoded bytes."""
        return len(self.data)

    @property
    def container(self) -> str:
        """Container format name sniffed from the bytes."""
        return sniff_container(self.data)[0]

    @property
    def declared_category(self) -> MediaCategory:
        """Category claimed by the MIME type."""
        return _category_from_mime(self.mime_type)

    @property
    def sniffed_categories(self) -> frozenset[MediaCategory]:
        """Categories the bytes are compatible with (empty if unrecognised)."""
        return sniff_container(self.data)[1]

    @property
    def is_consistent(self) -> bool:
        """False when the declared MIME category contradicts the bytes."""
        declared = self.declared_category
        sniffed = self.sniffed_categories
        if declared is MediaCategory.UNKNOWN or not sniffed:
            return True
        return declared in sniffed

    @property
    def category(self) -> MediaCategory:
        """
        Effective category of the blob.

        Unambiguous magic bytes win; otherwise the declared MIME category is
        used when the bytes allow it. Contradictions yield ``UNKNOWN``.
        """
        declared = self.declared_category
        sniffed = self.sniffed_categories
        if not self.is_consistent:
            return MediaCategory.UNKNOWN
        if len(sniffed) == 1:
            return next(iter(sniffed))
        return declared

    def matches(self, expected: MediaCategory) -> bool:
        """True if the blob can be treated as *expected* media."""
        if not self.is_consistent:
            return False
        if self.declared_category is not MediaCategory.UNKNOWN:
            return self.declared_category is expected
        return expected in self.sniffed_categories

    @classmethod
    def coerce(cls, payload: Any) -> Optional["MediaBlob"]:
        """
        Return *payload* as a MediaBlob, or ``None`` if it is not media.

        Bare ``bytes``/``bytearray``/``memoryview`` are wrapped with an empty
        MIME type so the sniffed category applies. A MediaBlob whose fields
        have the wrong types is not media.
        """
        if isinstance(payload, cls):
            return payload if payload.is_well_formed else None
        if isinstance(payload, _BYTES_LIKE):
            return cls(bytes(payload))
        return None


# ──────────────────────────────────────────────
# WAV codec
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class AudioBuffer:
    """
    Decoded PCM audio.

    Attributes:
        samples: float32 samples in [-1, 1], shape ``(n,)`` or ``(n, channels)``.
        sample_rate: Sample rate in Hz.
    """

    samples: np.ndarray
    sample_rate: int

    @property
    def channels(self) -> int:
        """Channel count."""
        return 1 if self.samples.ndim == 1 else int(self.samples.shape[1])

    @property
    def duration_seconds(self) -> float:
        """Duration in seconds."""
        return self.samples.shape[0] / float(self.sample_rate) if self.sample_rate else 0.0


def _pcm_to_float(raw: bytes, sample_width: int) -> np.ndarray:
    """Convert interleaved little-endian PCM bytes to float32 in [-1, 1]."""
    if sample_width == 1:
        return (np.frombuffer(raw, dtype=np.uint8).astype(np.float32) - 128.0) / 128.0
    if sample_width == 2:
        return np.frombuffer(raw, dtype="<i2").astype(np.float32) / 32768.0
    if sample_width == 3:
        b = np.frombuffer(raw, dtype=np.uint8).reshape(-1, 3).astype(np.int32)
        ints = b[:, 0] | (b[:, 1] << 8) | (b[:, 2] << 16)
        ints = np.where(ints & 0x800000, ints - 0x1000000, ints)
        return ints.astype(np.float32) / 8388608.0
    if sample_width == 4:
        return np.frombuffer(raw, dtype="<i4").astype(np.float32) / 2147483648.0
    raise MediaDecodeError(f"Unsupported WAV sample width: {sample_width} bytes")


def decode_wav(data: bytes) -> AudioBuffer:
    """
    Decode a PCM WAV file.

    Args:
        data: Complete RIFF/WAVE bytes (8, 16, 24 or 32-bit integer PCM).

    Returns:
        An :class:`AudioBuffer`; mono files yield 1-D samples.

    Raises:
        MediaDecodeError: If the bytes are not a readable PCM WAV file.
    """
    try:
        with wave.open(io.BytesIO(data), "rb") as wf:
            channels = wf.getnchannels()
            width = wf.getsampwidth()
            rate = wf.getframerate()
            raw = wf.readframes(wf.getnframes())
    except (wave.Error, EOFError) as exc:
        raise MediaDecodeError(f"Cannot decode WAV audio: {exc}") from exc

    samples = _pcm_to_float(raw, width)
    if channels > 1:
        usable = (samples.size // channels) * channels
        samples = samples[:usable].reshape(-1, channels)
    return AudioBuffer(samples=samples, sample_rate=rate)


def encode_wav(samples: np.ndarray, sample_rate: int) -> bytes:
    """
    Encode float samples as 16-bit PCM WAV.

    Args:
        samples: Float samples in [-1, 1], shape ``(n,)`` or ``(n, channels)``.
        sample_rate: Sample rate in Hz.

    Returns:
        Complete RIFF/WAVE bytes.
    """
    arr = np.asarray(samples, dtype=np.float64)
    channels = 1 if arr.ndim == 1 else arr.shape[1]
    pcm = (np.clip(arr, -1.0, 1.0) * 32767.0).round().astype("<i2")
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(2)
        wf.setframerate(int(sample_rate))
        wf.writeframes(pcm.tobytes())
    return buf.getvalue()


# ──────────────────────────────────────────────
# Image codec
# ──────────────────────────────────────────────

def decode_image(data: bytes) -> np.ndarray:
    """
    Decode PNG/JPEG/BMP/... bytes through OpenCV.

    Colour images are returned in RGB(A) channel order.

    Raises:
        MediaDecodeError: If OpenCV cannot decode the bytes.
    """
    encoded = np.frombuffer(data, dtype=np.uint8)
    if encoded.size == 0:
        raise MediaDecodeError("Cannot decode image: empty buffer")
    image = cv2.imdecode(encoded, cv2.IMREAD_UNCHANGED)
    if image is None:
        raise MediaDecodeError("Cannot decode image: unsupported or corrupt data")
    if image.ndim == 3 and image.shape[2] == 3:
        image = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
    elif image.ndim == 3 and image.shape[2] == 4:
        image = cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA)
    return image
