"""
unheard/pipeline/validation.py — Envelope shape checks run before any processor.

Collects every problem rather than stopping at the first so the caller
sees the full picture in one result.
"""

from __future__ import annotations

import math
from datetime import datetime
from numbers import Real

from unheard.aac.symbols import SymbolSequence
from unheard.core.constants import InputKind, MediaCategory
from unheard.core.errors import ValidationError
from unheard.pipeline.envelope import InputEnvelope
from unheard.preprocess.codec import MediaBlob

# Expected media category per media-carrying kind
_MEDIA_KINDS: dict[InputKind, MediaCategory] = {
    InputKind.VOICE: MediaCategory.AUDIO,
    InputKind.SIGN: MediaCategory.VIDEO,
    InputKind.CAMERA: MediaCategory.IMAGE,
}


def _check_confidence(value: object) -> list[str]:
    if value is None:
        return []
    if isinstance(value, bool) or not isinstance(value, Real):
        return ["Confidence must be a number between 0 and 1"]
    conf = float(value)
    if math.isnan(conf) or not (0.0 <= conf <= 1.0):
        return ["Confidence must be a number between 0 and 1"]
    return []


def _check_timestamp(value: object) -> list[str]:
    if not isinstance(value, datetime):
        return ["Invalid timestamp"]
    try:
        value.timestamp()
    except (OverflowError, OSError, ValueError):
        return ["Invalid timestamp"]
    return []


def _check_media(kind: InputKind, payload: object) -> list[str]:
    expected = _MEDIA_KINDS[kind]
    blob = MediaBlob.coerce(payload)
    if blob is None:
        article = "an" if expected.value[0] in "aeiou" else "a"
        return [f"{kind.value.capitalize()} input must be {article} {expected.value} blob"]
    if blob.size == 0:
        return [f"{kind.value.capitalize()} input is empty"]
    if not blob.matches(expected):
        actual = blob.declared_category
        if actual is MediaCategory.UNKNOWN or not blob.is_consistent:
            sniffed = sorted(c.value for c in blob.sniffed_categories) or ["unknown"]
            actual_desc = "/".join(sniffed)
        else:
            actual_desc = actual.value
        return [
            f"Payload kind mismatch: {kind.value} input expects {expected.value} "
            f"but the payload is {actual_desc} ({blob.container})"
        ]
    return []


def _check_payload(kind: InputKind, payload: object) -> list[str]:
    if kind is InputKind.TEXT:
        if not isinstance(payload, str):
            return ["Text input must be a string"]
        if not payload.strip():
            return ["Text input cannot be empty"]
        return []
    if kind is InputKind.SYMBOL:
        if not isinstance(payload, SymbolSequence):
            return ["Symbol input must be a valid SymbolSequence"]
        return payload.problems()
    return _check_media(kind, payload)


def validate_envelope(envelope: InputEnvelope) -> None:
    """
    Check an envelope's shape before dispatch.

    Checks, in order: known kind, declared confidence in [0, 1], a real
    capture timestamp, and a payload matching the kind (including the
    sniffed media category of encoded buffers).

    Args:
        envelope: Envelope to check.

    Raises:
        ValidationError: Carrying one message per failed check.
    """
    errors: list[str] = []
    if not isinstance(envelope.kind, InputKind):
        errors.append(f"No processor available for input type: {envelope.kind_name}")
    errors += _check_confidence(envelope.declared_confidence)
    errors += _check_timestamp(envelope.captured_at)
    if isinstance(envelope.kind, InputKind):
        errors += _check_payload(envelope.kind, envelope.payload)
    if errors:
        raise ValidationError(errors)
