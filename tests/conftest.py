"""
tests/conftest.py — Shared fixtures for the UNHEARD test suite.

Synthetic media is built in memory so no test needs a microphone, camera
or sample files on disk.
"""

from __future__ import annotations

import os
import struct
import tempfile

# JSONL logs go to a throwaway directory, set before any unheard import
os.environ.setdefault("UNHEARD_LOG_DIR", tempfile.mkdtemp(prefix="unheard-test-logs-"))

import cv2  # noqa: E402
import numpy as np  # noqa: E402
import pytest  # noqa: E402

from unheard.aac.library import SymbolLibrary  # noqa: E402
from unheard.preprocess.codec import MediaBlob, encode_wav  # noqa: E402


# ──────────────────────────────────────────────────────────────
# Signal and image builders
# ──────────────────────────────────────────────────────────────

def tone_bursts(
    seconds: float = 1.0,
    rate: int = 16000,
    amplitude: float = 0.3,
    floor: float = 0.002,
    seed: int = 3,
) -> np.ndarray:
    """220 Hz bursts gated on/off every 250 ms over a faint noise floor."""
    t = np.arange(int(seconds * rate)) / rate
    gate = (np.floor(t * 4) % 2 == 0).astype(np.float64)
    signal = amplitude * np.sin(2 * np.pi * 220 * t) * gate
    if floor:
        signal = signal + floor * np.random.default_rng(seed).standard_normal(t.size)
    return signal


def checkerboard(
    low: int = 60,
    high: int = 200,
    size: int = 64,
    block: int = 8,
    channels: int = 0,
) -> np.ndarray:
    """uint8 checkerboard, 2-D or with *channels* identical colour planes."""
    yy, xx = np.indices((size, size))
    board = np.where(((yy // block) + (xx // block)) % 2 == 0, low, high).astype(np.uint8)
    if channels:
        board = np.repeat(board[:, :, None], channels, axis=2)
    return board


def png_bytes(image: np.ndarray) -> bytes:
    ok, buf = cv2.imencode(".png", image)
    assert ok, "OpenCV failed to encode the test image"
    return buf.tobytes()


def mp4_bytes(seconds: int = 3, timescale: int = 1000) -> bytes:
    """Minimal ISO-BMFF: ``ftyp`` plus ``moov/mvhd`` carrying a duration."""
    ftyp = struct.pack(">I4s4sI4s", 20, b"ftyp", b"isom", 0, b"isom")
    body = struct.pack(">B3xIIII", 0, 0, 0, timescale, seconds * timescale) + b"\x00" * 80
    mvhd = struct.pack(">I4s", 8 + len(body), b"mvhd") + body
    moov = struct.pack(">I4s", 8 + len(mvhd), b"moov") + mvhd
    return ftyp + moov


def avi_bytes(usec_per_frame: int = 40000, frames: int = 75, width: int = 320, height: int = 240) -> bytes:
    """RIFF/AVI header with an ``avih`` main header and nothing else."""
    avih_body = struct.pack("<10I", usec_per_frame, 0, 0, 0, frames, 0, 1, 0, width, height)
    avih_body += b"\x00" * 16
    avih = b"avih" + struct.pack("<I", len(avih_body)) + avih_body
    hdrl = b"LIST" + struct.pack("<I", 4 + len(avih)) + b"hdrl" + avih
    return b"RIFF" + struct.pack("<I", 4 + len(hdrl)) + b"AVI " + hdrl


# ──────────────────────────────────────────────────────────────
# Fixtures
# ──────────────────────────────────────────────────────────────

@pytest.fixture()
def library() -> SymbolLibrary:
    return SymbolLibrary()


@pytest.fixture()
def speech_wav() -> bytes:
    """One second of clean 16 kHz mono tone bursts."""
    return encode_wav(tone_bursts(), 16000)


@pytest.fixture()
def silent_wav() -> bytes:
    return encode_wav(np.zeros(16000), 16000)


@pytest.fixture()
def speech_blob(speech_wav: bytes) -> MediaBlob:
    return MediaBlob(speech_wav, "audio/wav")


@pytest.fixture()
def page_png() -> bytes:
    """A 64x64 mid-grey RGB checkerboard: sharp, well exposed."""
    return png_bytes(checkerboard(channels=3))


@pytest.fixture()
def page_blob(page_png: bytes) -> MediaBlob:
    return MediaBlob(page_png, "image/png")


@pytest.fixture()
def clip_blob() -> MediaBlob:
    return MediaBlob(mp4_bytes(), "video/mp4")
