"""
scripts/benchmark.py — Dispatch latency benchmarking.

Runs synthetic envelopes of every input kind through the default
dispatcher, reports p50/p95/p99 latencies per kind, and checks the p95
against the configured processing deadline.

Usage:
    python scripts/benchmark.py
    python scripts/benchmark.py --iterations 50 --kind voice
"""

from __future__ import annotations

import argparse
import logging
import statistics
import struct
import sys
import time
from pathlib import Path

import cv2
import numpy as np

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from unheard.aac.library import SymbolLibrary  # noqa: E402
from unheard.core.config import load_config  # noqa: E402
from unheard.core.constants import InputKind  # noqa: E402
from unheard.pipeline.dispatcher import InputDispatcher  # noqa: E402
from unheard.pipeline.envelope import InputEnvelope  # noqa: E402
from unheard.preprocess.codec import MediaBlob, encode_wav  # noqa: E402

logger = logging.getLogger(__name__)


def _setup_logging(level: str = "INFO") -> None:
    """Configure logging for the benchmark script."""
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
        stream=sys.stdout,
    )


# ──────────────────────────────────────────────────────────────
# Synthetic payloads
# ──────────────────────────────────────────────────────────────

def _speech_like_wav(seconds: float = 2.0, rate: int = 44100) -> bytes:
    """Stereo tone bursts over a faint noise floor, at a non-target rate."""
    rng = np.random.default_rng(7)
    t = np.arange(int(seconds * rate)) / rate
    tone = 0.3 * np.sin(2 * np.pi * 220 * t)
    gate = (np.floor(t * 4) % 2 == 0).astype(np.float64)
    mono = tone * gate + 0.002 * rng.standard_normal(t.size)
    return encode_wav(np.stack([mono, mono], axis=1), rate)


def _page_png(width: int = 640, height: int = 480) -> bytes:
    """A dim page with dark text-like bars."""
    page = np.full((height, width, 3), 40, dtype=np.uint8)
    for y in range(40, height - 40, 30):
        page[y:y + 8, 40:width - 40] = 5
    ok, buf = cv2.imencode(".png", page)
    if not ok:
        raise RuntimeError("OpenCV could not encode the benchmark image")
    return buf.tobytes()


def _tiny_mp4(seconds: int = 3) -> bytes:
    """An ``ftyp`` + ``moov/mvhd`` header with the given duration."""
    ftyp = struct.pack(">I4s4sI4s", 20, b"ftyp", b"isom", 0, b"isom")
    mvhd_body = struct.pack(">B3xIIII", 0, 0, 0, 1000, seconds * 1000) + b"\x00" * 80
    mvhd = struct.pack(">I4s", 8 + len(mvhd_body), b"mvhd") + mvhd_body
    moov = struct.pack(">I4s", 8 + len(mvhd), b"moov") + mvhd
    return ftyp + moov


def _synthetic_envelopes() -> dict[InputKind, InputEnvelope]:
    library = SymbolLibrary()
    return {
        InputKind.TEXT: InputEnvelope(InputKind.TEXT, "  I need a break, please  "),
        InputKind.SYMBOL: InputEnvelope(
            InputKind.SYMBOL,
            library.sequence(["i", "want", "water", "food"], phrases=["please"]),
            annotations={"complexity": "expanded", "context": {"mood": "urgent"}},
        ),
        InputKind.VOICE: InputEnvelope(InputKind.VOICE, MediaBlob(_speech_like_wav(), "audio/wav")),
        InputKind.CAMERA: InputEnvelope(InputKind.CAMERA, MediaBlob(_page_png(), "image/png")),
        InputKind.SIGN: InputEnvelope(InputKind.SIGN, MediaBlob(_tiny_mp4(), "video/mp4")),
    }


# ──────────────────────────────────────────────────────────────
# Benchmark
# ──────────────────────────────────────────────────────────────

def _percentile(data: list[float], pct: int) -> float:
    """
    Compute the given percentile of a data list.

    Args:
        data: List of float values.
        pct: Percentile to compute (0–100).

    Returns:
        The percentile value.
    """
    if not data:
        return 0.0
    sorted_data = sorted(data)
    idx = max(0, int(len(sorted_data) * pct / 100) - 1)
    return sorted_data[idx]


def run_benchmark(iterations: int, kinds: list[InputKind]) -> bool:
    """
    Dispatch each synthetic envelope *iterations* times and report latencies.

    Returns:
        True if every kind's p95 is within the configured deadline.
    """
    config = load_config()
    dispatcher = InputDispatcher.from_config(config)
    envelopes = _synthetic_envelopes()
    budget_ms = float(config.dispatch.max_processing_time_ms)

    print("\n═══ UNHEARD — Dispatch Latency Benchmark ═══════════════")
    print(f"  Iterations: {iterations} per kind")
    print(f"  Deadline:   {budget_ms:.0f}ms")
    print(f"  Fallback:   {'on' if config.dispatch.auto_fallback else 'off'}")
    print("═════════════════════════════════════════════════════════\n")

    all_ok = True
    for kind in kinds:
        envelope = envelopes[kind]
        latencies: list[float] = []
        fallbacks = 0
        last = None
        for _ in range(iterations):
            t0 = time.monotonic()
            last = dispatcher.dispatch(envelope)
            latencies.append((time.monotonic() - t0) * 1000.0)
            if not last.succeeded:
                fallbacks += 1

        p50 = statistics.median(latencies)
        p95 = _percentile(latencies, 95)
        p99 = _percentile(latencies, 99)
        ok = p95 <= budget_ms
        all_ok = all_ok and ok

        print(f"  {kind.value:<8} {last.content[:50]!r}")
        print(f"    {'p50 latency':<18} {p50:>8.2f} ms")
        print(f"    {'p95 latency':<18} {p95:>8.2f} ms  {'✅' if ok else '❌ OVER DEADLINE'}")
        print(f"    {'p99 latency':<18} {p99:>8.2f} ms")
        print(f"    {'fallbacks':<18} {fallbacks:>8d} / {iterations}")
        print(f"    {'confidence':<18} {last.confidence:>8.2f}\n")

    if all_ok:
        print("✅ All kinds dispatched within the deadline")
    else:
        print("❌ At least one kind exceeded the deadline at p95")
    return all_ok


def main() -> None:
    parser = argparse.ArgumentParser(
        description="UNHEARD dispatch latency benchmark",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--iterations", type=int, default=20, help="Dispatches per input kind")
    parser.add_argument(
        "--kind",
        action="append",
        choices=[k.value for k in InputKind],
        help="Restrict to one kind (repeatable); all kinds by default",
    )
    parser.add_argument("--log-level", default="WARNING", help="Logging level")
    args = parser.parse_args()

    _setup_logging(args.log_level)
    kinds = [InputKind(k) for k in args.kind] if args.kind else list(InputKind)
    ok = run_benchmark(max(1, args.iterations), kinds)
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
