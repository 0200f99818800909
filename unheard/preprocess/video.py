"""
unheard/preprocess/video.py — Lightweight container probe for video clips.

Reads just enough of the header to report container, size and duration.
No frames are decoded.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from typing import Optional

from unheard.preprocess.codec import MediaBlob

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VideoInfo:
    """
    Header-level facts about an encoded video.

    Attributes:
        container: Sniffed container name (``mp4``, ``mov``, ``avi``, ``webm``...).
        size_bytes: Encoded size.
        duration_seconds: Duration from the header, or None if unavailable.
        width: Frame width from the header, or None.
        height: Frame height from the header, or None.
    """

    container: str
    size_bytes: int
    duration_seconds: Optional[float] = None
    width: Optional[int] = None
    height: Optional[int] = None

    def to_dict(self) -> dict:
        """Return a JSON-friendly dict, omitting unknown fields."""
        out: dict = {"container": self.container, "size_bytes": self.size_bytes}
        if self.duration_seconds is not None:
            out["duration_seconds"] = round(self.duration_seconds, 3)
        if self.width is not None and self.height is not None:
            out["width"] = self.width
            out["height"] = self.height
        return out


def _mvhd_duration(data: bytes) -> Optional[float]:
    """Duration from an ISO-BMFF ``mvhd`` box (version 0 or 1)."""
    idx = data.find(b"mvhd")
    if idx < 0:
        return None
    body = data[idx + 4:]
    try:
        version = body[0]
        if version == 1:
            timescale, duration = struct.unpack(">IQ", body[20:32])
        else:
            timescale, duration = struct.unpack(">II", body[12:20])
    except (IndexError, struct.error):
        return None
    if timescale == 0:
        return None
    return duration / float(timescale)


def _avih_info(data: bytes) -> tuple[Optional[float], Optional[int], Optional[int]]:
    """Duration, width and height from an AVI ``avih`` main header."""
    idx = data.find(b"avih")
    if idx < 0:
        return None, None, None
    header = data[idx + 8:idx + 8 + 40]
    try:
        usec_per_frame, = struct.unpack("<I", header[0:4])
        total_frames, = struct.unpack("<I", header[16:20])
        width, height = struct.unpack("<II", header[32:40])
    except struct.error:
        return None, None, None
    return usec_per_frame * total_frames / 1_000_000.0, width, height


def probe_video(blob: MediaBlob) -> VideoInfo:
    """
    Probe an encoded video for container, size and duration.

    Unknown or truncated headers yield ``None`` fields rather than errors.

    Args:
        blob: Encoded video.

    Returns:
        A :class:`VideoInfo`.
    """
    container = blob.container
    duration: Optional[float] = None
    width: Optional[int] = None
    height: Optional[int] = None

    if container in ("mp4", "mov", "m4a"):
        duration = _mvhd_duration(blob.data)
    elif container == "avi":
        duration, width, height = _avih_info(blob.data)

    info = VideoInfo(
        container=container,
        size_bytes=blob.size,
        duration_seconds=duration,
        width=width,
        height=height,
    )
    logger.debug("Video probed: %s", info)
    return info
