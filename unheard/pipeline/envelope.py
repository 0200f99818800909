"""
unheard/pipeline/envelope.py — Input envelope and processing result.

Both are frozen: an envelope is immutable from creation, and a result is
built once per dispatch and never mutated. Derived results are made with
:meth:`ProcessingResult.with_updates`, which returns a new object.
"""

from __future__ import annotations

import dataclasses
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

from unheard.core.constants import InputKind


def _utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _freeze_mapping(raw: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    return MappingProxyType(dict(raw or {}))


@dataclass(frozen=True)
class InputEnvelope:
    """
    One unit of captured user input.

    Attributes:
        kind: Declared modality. Strings naming a valid kind are converted
            to :class:`InputKind`; anything else is kept so validation can
            report it.
        payload: ``str`` for text, :class:`~unheard.preprocess.codec.MediaBlob`
            (or raw bytes) for voice/sign/camera, or a
            :class:`~unheard.aac.symbols.SymbolSequence` for symbols.
        declared_confidence: Optional capture-layer confidence in [0, 1].
        captured_at: Capture timestamp; must be a real ``datetime``.
        annotations: Opaque read-only key/value bag.
    """

    kind: Union[InputKind, Any]
    payload: Any
    declared_confidence: Optional[float] = None
    captured_at: Any = field(default_factory=_utc_now)
    annotations: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if isinstance(self.kind, str):
            try:
                object.__setattr__(self, "kind", InputKind(self.kind.lower()))
            except ValueError:
                pass
        object.__setattr__(self, "annotations", _freeze_mapping(self.annotations))

    @property
    def kind_name(self) -> str:
        """Kind as a plain string, also for unknown kinds."""
        return self.kind.value if isinstance(self.kind, InputKind) else str(self.kind)


def _clamp_confidence(value: Any) -> float:
    try:
        conf = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(conf):
        return 0.0
    return min(max(conf, 0.0), 1.0)


@dataclass(frozen=True)
class ProcessingResult:
    """
    The single outcome of one dispatch.

    Attributes:
        source_envelope: The envelope this result answers (by reference).
        content: Text to present to the conversation partner.
        confidence: Clamped to [0, 1].
        elapsed_ms: Wall-clock time of the whole dispatch.
        warnings: Non-fatal notes (low confidence, fallback used, ...).
        errors: ``None`` on the primary path; a non-empty tuple when the
            primary path failed and *content* came from the fallback.
        metadata: Read-only processor-specific details.
    """

    source_envelope: InputEnvelope
    content: str
    confidence: float
    elapsed_ms: float = 0.0
    warnings: tuple[str, ...] = ()
    errors: Optional[tuple[str, ...]] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "confidence", _clamp_confidence(self.confidence))
        object.__setattr__(self, "warnings", tuple(self.warnings))
        if self.errors is not None:
            object.__setattr__(self, "errors", tuple(self.errors))
        object.__setattr__(self, "metadata", _freeze_mapping(self.metadata))

    @property
    def succeeded(self) -> bool:
        """True when the primary path produced the content."""
        return not self.errors

    def with_updates(self, **changes: Any) -> "ProcessingResult":
        """Return a copy with *changes* applied; this object is untouched."""
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> dict:
        """Return a JSON-friendly dict (the envelope is summarised by kind)."""
        out: dict[str, Any] = {
            "kind": self.source_envelope.kind_name,
            "content": self.content,
            "confidence": round(self.confidence, 4),
            "elapsed_ms": round(self.elapsed_ms, 3),
            "warnings": list(self.warnings),
            "metadata": dict(self.metadata),
        }
        if self.errors is not None:
            out["errors"] = list(self.errors)
        return out
