"""
unheard/processors/base.py — Type-processor contract and cancellation token.

Every processor implements three methods:

    validate(envelope) → bool              cheap, kind-specific payload check
    process(envelope, token) → result      may be slow; raises on failure
    fallback(envelope) → result            always-available degraded answer

``process`` runs on a worker thread under the dispatch deadline. When the
deadline passes the dispatcher sets the token and stops waiting, so
processors must call :meth:`CancellationToken.raise_if_cancelled` between
stages and must not assume they run to completion.
"""

from __future__ import annotations

import abc
import threading
import time
from typing import Any, Mapping, Optional, Sequence

from unheard.core.constants import InputKind
from unheard.core.errors import ProcessingCancelledError
from unheard.pipeline.envelope import InputEnvelope, ProcessingResult


class CancellationToken:
    """
    Cooperative cancellation flag shared between dispatcher and worker.

    Example::

        token = CancellationToken()
        token.cancel()
        token.raise_if_cancelled()   # raises ProcessingCancelledError
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        """Signal the worker to stop at its next checkpoint."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """
        Raises:
            ProcessingCancelledError: If :meth:`cancel` has been called.
        """
        if self._event.is_set():
            raise ProcessingCancelledError("Processing was abandoned after the deadline")

    def wait(self, timeout: float) -> bool:
        """Sleep up to *timeout* seconds; returns True early if cancelled."""
        return self._event.wait(timeout)


class InputProcessor(abc.ABC):
    """Base class for the five type processors."""

    #: Input kind this processor handles.
    kind: InputKind

    @abc.abstractmethod
    def validate(self, envelope: InputEnvelope) -> bool:
        """Return True if *envelope* carries a payload this processor accepts."""

    @abc.abstractmethod
    def process(
        self,
        envelope: InputEnvelope,
        token: Optional[CancellationToken] = None,
    ) -> ProcessingResult:
        """
        Produce a result for *envelope*.

        Raises:
            ProcessingError: Or a subclass, when no result can be produced.
        """

    @abc.abstractmethod
    def fallback(self, envelope: InputEnvelope) -> ProcessingResult:
        """Produce a degraded result without touching the slow path."""

    # ──────────────────────────────────────────
    # Helpers for subclasses
    # ──────────────────────────────────────────

    @staticmethod
    def _result(
        envelope: InputEnvelope,
        content: str,
        confidence: float,
        started: float,
        warnings: Sequence[str] = (),
        errors: Optional[Sequence[str]] = None,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> ProcessingResult:
        """Build a result timed from the ``time.monotonic()`` value *started*."""
        return ProcessingResult(
            source_envelope=envelope,
            content=content,
            confidence=confidence,
            elapsed_ms=(time.monotonic() - started) * 1000.0,
            warnings=tuple(warnings),
            errors=tuple(errors) if errors is not None else None,
            metadata=dict(metadata or {}),
        )

    @staticmethod
    def _checkpoint(token: Optional[CancellationToken]) -> None:
        if token is not None:
            token.raise_if_cancelled()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value})"
