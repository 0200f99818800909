"""
unheard/pipeline/dispatcher.py — Input dispatcher.

Routes each envelope to the processor for its kind and guarantees exactly
one :class:`ProcessingResult` per call; no exception escapes ``dispatch``.

Per call::

    IDLE → VALIDATING ──ok──→ PROCESSING ──ok──→ SUCCEEDED ──→ DONE
                 │                  │ raise / deadline
                 └──────fail────────┴──→ FALLEN_BACK ──→ DONE

With ``auto_fallback`` disabled, failures go straight to DONE with empty
content and confidence 0.

``process`` runs on a daemon thread joined with the deadline as timeout.
A late worker is abandoned: its cancellation token is set and its result,
if it ever arrives, is discarded.
"""

from __future__ import annotations

import threading
import time
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

from unheard.core.config import DispatchConfig, UnheardConfig, load_config
from unheard.core.constants import C, DispatchState, InputKind
from unheard.core.errors import (
    ProcessingError,
    ProcessingTimeoutError,
    RegistryError,
    ValidationError,
)
from unheard.core.fsm import DispatchFSM
from unheard.core.logger import UnheardLogger, get_logger
from unheard.pipeline.envelope import InputEnvelope, ProcessingResult
from unheard.pipeline.validation import validate_envelope
from unheard.processors.base import CancellationToken, InputProcessor
from unheard.processors.camera import CameraProcessor
from unheard.processors.sign import SignProcessor
from unheard.processors.symbol import SymbolProcessor
from unheard.processors.text import TextProcessor
from unheard.processors.voice import VoiceProcessor

_REQUIRED_METHODS = ("validate", "process", "fallback")


def build_default_registry(config: Optional[UnheardConfig] = None) -> dict[InputKind, InputProcessor]:
    """
    Build one processor per input kind from *config*.

    Args:
        config: Root configuration; built-in defaults when omitted.

    Returns:
        A new dict mapping every :class:`InputKind` to its processor.
    """
    cfg = config or UnheardConfig()
    return {
        InputKind.TEXT: TextProcessor(),
        InputKind.VOICE: VoiceProcessor(cfg.voice, cfg.audio),
        InputKind.SYMBOL: SymbolProcessor(cfg.symbol),
        InputKind.SIGN: SignProcessor(cfg.sign),
        InputKind.CAMERA: CameraProcessor(cfg.camera, cfg.image),
    }


def _coerce_kind(key: Union[InputKind, str]) -> InputKind:
    if isinstance(key, InputKind):
        return key
    try:
        return InputKind(str(key).lower())
    except ValueError as exc:
        raise RegistryError(f"Unknown input kind in processor registry: {key!r}") from exc


class InputDispatcher:
    """
    Validates envelopes, runs processors under a deadline and applies fallback.

    The registry is frozen at construction and never changes afterwards, so
    one dispatcher can serve concurrent ``dispatch`` calls.

    Args:
        config: Dispatch behaviour; built-in defaults when omitted.
        processor_overrides: Per-kind replacements for the default processors
            (keys may be :class:`InputKind` or kind strings).
        base_registry: Full registry to start from instead of
            :func:`build_default_registry`.
        logger: Structured logger; the process-wide :func:`get_logger`
            instance when omitted.

    Raises:
        RegistryError: If any kind lacks a processor or a processor does not
            implement ``validate``/``process``/``fallback``.

    Example::

        dispatcher = InputDispatcher()
        result = dispatcher.dispatch(InputEnvelope(InputKind.TEXT, "  Hello world  "))
        result.content      # "Hello world"
        result.confidence   # 1.0
        result.errors       # None
    """

    def __init__(
        self,
        config: Optional[DispatchConfig] = None,
        processor_overrides: Optional[Mapping[Union[InputKind, str], Any]] = None,
        base_registry: Optional[Mapping[InputKind, Any]] = None,
        logger: Optional[UnheardLogger] = None,
    ) -> None:
        self._cfg = config or DispatchConfig()
        self._log = logger or get_logger()

        registry: dict[InputKind, Any] = {}
        source = base_registry if base_registry is not None else build_default_registry()
        for key, processor in source.items():
            registry[_coerce_kind(key)] = processor
        for key, processor in (processor_overrides or {}).items():
            registry[_coerce_kind(key)] = processor

        missing = [k.value for k in InputKind if k not in registry]
        if missing:
            raise RegistryError(f"No processor registered for: {', '.join(missing)}")
        for kind, processor in registry.items():
            absent = [m for m in _REQUIRED_METHODS if not callable(getattr(processor, m, None))]
            if absent:
                raise RegistryError(
                    f"Processor for '{kind.value}' does not implement: {', '.join(absent)}"
                )

        self._registry: Mapping[InputKind, Any] = MappingProxyType(registry)
        self._log.info("dispatch", "dispatcher_ready", {
            "min_confidence_threshold": self._cfg.min_confidence_threshold,
            "max_processing_time_ms": self._cfg.max_processing_time_ms,
            "auto_fallback": self._cfg.auto_fallback,
            "processors": {k.value: type(p).__name__ for k, p in registry.items()},
        })

    @classmethod
    def from_config(
        cls,
        config: Union[UnheardConfig, str, None] = None,
        processor_overrides: Optional[Mapping[Union[InputKind, str], Any]] = None,
    ) -> "InputDispatcher":
        """
        Build a dispatcher and its default processors from a root config.

        Args:
            config: An :class:`UnheardConfig`, a path to a YAML file, or
                None to use :func:`load_config`'s search order.
            processor_overrides: Per-kind processor replacements.
        """
        root = config if isinstance(config, UnheardConfig) else load_config(config)
        return cls(
            config=root.dispatch,
            processor_overrides=processor_overrides,
            base_registry=build_default_registry(root),
        )

    @property
    def config(self) -> DispatchConfig:
        return self._cfg

    @property
    def registry(self) -> Mapping[InputKind, Any]:
        """Read-only view of the processor registry."""
        return self._registry

    # ──────────────────────────────────────────
    # Dispatch
    # ──────────────────────────────────────────

    def dispatch(self, envelope: InputEnvelope) -> ProcessingResult:
        """
        Process one envelope and return its single result.

        Never raises: validation failures, processor errors, deadline expiry
        and fallback failures are all reported inside the result.

        Args:
            envelope: The captured input.

        Returns:
            The :class:`ProcessingResult`. ``errors`` is None on the primary
            path and non-empty when the content came from the fallback (or
            is empty because fallback is disabled or failed).
        """
        started = time.monotonic()
        fsm = DispatchFSM()
        kind = envelope.kind
        processor = self._registry.get(kind) if isinstance(kind, InputKind) else None
        self._log.info("dispatch", "dispatch_start", {"kind": envelope.kind_name})

        # ── Validating ─────────────────────────────────────────
        fsm.transition(DispatchState.VALIDATING)
        errors = self._validate(envelope, processor)
        if errors:
            self._log.warn("dispatch", "validation_failed", {
                "kind": envelope.kind_name, "errors": errors,
            })
            return self._finish(
                fsm, self._fail(fsm, envelope, processor, errors, "validation", started), started
            )

        # ── Processing ─────────────────────────────────────────
        fsm.transition(DispatchState.PROCESSING)
        try:
            result = self._run_with_deadline(processor, envelope)
        except ProcessingTimeoutError as exc:
            self._log.warn("dispatch", "processing_timeout", {
                "kind": envelope.kind_name, "deadline_ms": exc.deadline_ms,
            })
            return self._finish(
                fsm, self._fail(fsm, envelope, processor, [str(exc)], "timeout", started), started
            )
        except Exception as exc:  # noqa: BLE001
            message = str(exc) or type(exc).__name__
            self._log.error("dispatch", "processing_error", {
                "kind": envelope.kind_name, "error_type": type(exc).__name__, "error": message,
            })
            return self._finish(
                fsm, self._fail(fsm, envelope, processor, [message], "processing", started), started
            )

        # ── Succeeded ──────────────────────────────────────────
        fsm.transition(DispatchState.SUCCEEDED)
        warnings = list(result.warnings)
        threshold = self._cfg.min_confidence_threshold
        if result.confidence < threshold:
            warnings.append(f"Low confidence: {result.confidence:.2f} < {threshold:.2f}")
        final = result.with_updates(
            source_envelope=envelope,
            warnings=tuple(warnings),
            errors=None,
            elapsed_ms=self._elapsed_ms(started),
        )
        return self._finish(fsm, final, started)

    # ──────────────────────────────────────────
    # Internal helpers
    # ──────────────────────────────────────────

    @staticmethod
    def _elapsed_ms(started: float) -> float:
        return (time.monotonic() - started) * 1000.0

    def _validate(self, envelope: InputEnvelope, processor: Any) -> list[str]:
        """Envelope checks, then the processor's own ``validate``."""
        try:
            validate_envelope(envelope)
        except ValidationError as exc:
            return list(exc.errors)
        except Exception as exc:  # noqa: BLE001
            return [f"Malformed envelope: {str(exc) or type(exc).__name__}"]
        try:
            accepted = processor.validate(envelope)
        except Exception as exc:  # noqa: BLE001
            return [f"Processor validation raised: {exc}"]
        if not accepted:
            return [f"Invalid {envelope.kind_name} input"]
        return []

    def _run_with_deadline(self, processor: Any, envelope: InputEnvelope) -> ProcessingResult:
        """
        Run ``processor.process`` on a daemon thread, bounded by the deadline.

        Raises:
            ProcessingTimeoutError: If the worker is still running at the deadline.
            ProcessingError: If the processor returned something other than a result
                or a result carrying errors.
            Exception: Whatever the processor raised.
        """
        token = CancellationToken()
        result_container: list[Any] = []
        exc_container: list[BaseException] = []

        def _work() -> None:
            """Run the processor and store its outcome."""
            try:
                result_container.append(processor.process(envelope, token))
            except Exception as exc:  # noqa: BLE001
                exc_container.append(exc)

        worker = threading.Thread(
            target=_work, daemon=True, name=f"unheard-{envelope.kind_name}"
        )
        worker.start()
        worker.join(timeout=self._cfg.deadline_seconds)

        if worker.is_alive():
            token.cancel()
            raise ProcessingTimeoutError(self._cfg.max_processing_time_ms)
        if exc_container:
            raise exc_container[0]
        if not result_container or not isinstance(result_container[0], ProcessingResult):
            raise ProcessingError("Processor returned no result")
        result: ProcessingResult = result_container[0]
        if result.errors:
            raise ProcessingError("; ".join(result.errors))
        return result

    def _fail(
        self,
        fsm: DispatchFSM,
        envelope: InputEnvelope,
        processor: Any,
        errors: list[str],
        stage: str,
        started: float,
    ) -> ProcessingResult:
        """Route a failure through fallback (or straight to an empty result)."""
        if not self._cfg.auto_fallback or processor is None:
            return ProcessingResult(
                source_envelope=envelope,
                content="",
                confidence=0.0,
                elapsed_ms=self._elapsed_ms(started),
                errors=tuple(errors),
                metadata={"failed_stage": stage, "fallback": False},
            )

        fsm.transition(DispatchState.FALLEN_BACK, reason=stage)
        try:
            fallback = processor.fallback(envelope)
            if not isinstance(fallback, ProcessingResult):
                raise ProcessingError("Fallback returned no result")
        except Exception as exc:  # noqa: BLE001
            self._log.error("dispatch", "fallback_failed", {
                "kind": envelope.kind_name, "error": str(exc),
            })
            return ProcessingResult(
                source_envelope=envelope,
                content="",
                confidence=0.0,
                elapsed_ms=self._elapsed_ms(started),
                warnings=(C.FALLBACK_WARNING,),
                errors=tuple(errors) + (f"Fallback processing failed: {exc}",),
                metadata={"failed_stage": stage, "fallback": True},
            )

        combined = list(errors)
        combined += [e for e in (fallback.errors or ()) if e not in combined]
        metadata = dict(fallback.metadata)
        metadata.update({"failed_stage": stage, "fallback": True})
        self._log.info("dispatch", "fallback_used", {
            "kind": envelope.kind_name, "stage": stage, "confidence": fallback.confidence,
        })
        return fallback.with_updates(
            source_envelope=envelope,
            warnings=tuple(fallback.warnings) + (C.FALLBACK_WARNING,),
            errors=tuple(combined),
            elapsed_ms=self._elapsed_ms(started),
            metadata=metadata,
        )

    def _finish(self, fsm: DispatchFSM, result: ProcessingResult, started: float) -> ProcessingResult:
        """Move to DONE and log the dispatch latency."""
        fsm.transition(DispatchState.DONE)
        self._log.perf("dispatch", "dispatch_done", self._elapsed_ms(started), {
            "kind": result.source_envelope.kind_name,
            "path": [s.value for s in fsm.path()],
            "confidence": round(result.confidence, 4),
            "failed": not result.succeeded,
            "warnings": len(result.warnings),
        })
        return result
