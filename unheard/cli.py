"""
unheard/cli.py — Command-line front end for the input dispatcher.

Examples::

    unheard text "  Hello world  "
    unheard symbol i want water --phrase please --complexity expanded
    unheard voice recording.wav --json
    unheard camera sign.png --deadline-ms 2000
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import mimetypes
import sys
from pathlib import Path
from typing import Optional, Sequence

from unheard import __version__

# ──────────────────────────────────────────────────────────────
# Argument parsing
# ──────────────────────────────────────────────────────────────

_MEDIA_KINDS = ("voice", "sign", "camera")


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="unheard",
        description="UNHEARD — route text, voice, symbol, sign and camera input",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--config", default=None, help="Path to an unheard.yaml file")
    p.add_argument("--json", action="store_true", help="Print the result as JSON")
    p.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Minimum stdlib log level (defaults to logging.level from config)",
    )
    p.add_argument("--deadline-ms", type=int, default=None, help="Override the processing deadline")
    p.add_argument(
        "--no-fallback", action="store_true", help="Disable automatic fallback on failure"
    )
    p.add_argument(
        "--confidence", type=float, default=None,
        help="Declared capture-layer confidence in [0, 1]",
    )

    sub = p.add_subparsers(dest="kind", required=True)

    text = sub.add_parser("text", help="Typed text")
    text.add_argument("text", help="The message")

    symbol = sub.add_parser("symbol", help="AAC symbol ids from the default library")
    symbol.add_argument("symbols", nargs="*", help="Symbol ids, e.g. i want water")
    symbol.add_argument("--phrase", action="append", default=[], help="Free-text phrase (repeatable)")
    symbol.add_argument(
        "--complexity", choices=["terse", "standard", "expanded"], default=None,
        help="Sentence rendering to return",
    )
    symbol.add_argument("--mood", choices=["casual", "formal", "urgent"], default=None)

    for kind in _MEDIA_KINDS:
        media = sub.add_parser(kind, help=f"{kind.capitalize()} input from a file")
        media.add_argument("path", type=Path, help="Encoded media file")
        media.add_argument("--mime-type", default=None, help="Override the guessed MIME type")

    return p


# ──────────────────────────────────────────────────────────────
# Envelope construction
# ──────────────────────────────────────────────────────────────

def _build_envelope(args: argparse.Namespace):
    """Turn parsed arguments into an :class:`InputEnvelope`."""
    from unheard.aac.library import SymbolLibrary
    from unheard.core.constants import InputKind
    from unheard.pipeline.envelope import InputEnvelope
    from unheard.preprocess.codec import MediaBlob

    kind = InputKind(args.kind)
    annotations: dict = {"source": "cli"}

    if kind is InputKind.TEXT:
        payload = args.text
    elif kind is InputKind.SYMBOL:
        payload = SymbolLibrary().sequence(args.symbols, phrases=args.phrase)
        if args.complexity:
            annotations["complexity"] = args.complexity
        if args.mood:
            annotations["context"] = {"mood": args.mood}
    else:
        mime = args.mime_type or mimetypes.guess_type(str(args.path))[0] or ""
        payload = MediaBlob(args.path.read_bytes(), mime)
        annotations["path"] = str(args.path)

    return InputEnvelope(
        kind=kind,
        payload=payload,
        declared_confidence=args.confidence,
        annotations=annotations,
    )


def _render(result, as_json: bool) -> str:
    if as_json:
        return json.dumps(result.to_dict(), indent=2, ensure_ascii=False, default=str)
    lines = [result.content, f"confidence: {result.confidence:.2f}  ({result.elapsed_ms:.1f} ms)"]
    lines += [f"warning: {w}" for w in result.warnings]
    lines += [f"error: {e}" for e in (result.errors or ())]
    return "\n".join(lines)


# ──────────────────────────────────────────────────────────────
# Entry point
# ──────────────────────────────────────────────────────────────

def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Parse *argv*, dispatch one envelope and print the result.

    Returns:
        0 when the primary path succeeded, 1 when the result is fallback-sourced,
        2 on usage errors (bad config, unknown symbol id, unreadable file).
    """
    args = _build_parser().parse_args(argv)

    from unheard.core.config import load_config
    from unheard.core.logger import configure_logging

    overrides: dict = {"dispatch": {}}
    if args.deadline_ms is not None:
        overrides["dispatch"]["max_processing_time_ms"] = args.deadline_ms
    if args.no_fallback:
        overrides["dispatch"]["auto_fallback"] = False

    try:
        config = load_config(args.config, overrides=overrides)
    except (FileNotFoundError, ValueError) as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
        return 2

    logging_config = config.logging
    if args.log_level:
        logging_config = dataclasses.replace(logging_config, level=args.log_level)
    logging.basicConfig(
        level=logging_config.level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    configure_logging(logging_config)

    from unheard.pipeline.dispatcher import InputDispatcher

    try:
        envelope = _build_envelope(args)
    except (KeyError, OSError) as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
        return 2

    dispatcher = InputDispatcher.from_config(config)
    result = dispatcher.dispatch(envelope)
    print(_render(result, args.json))
    return 0 if result.succeeded else 1


if __name__ == "__main__":
    sys.exit(main())
