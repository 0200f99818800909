"""
unheard/core/errors.py — Error taxonomy for UNHEARD.

Processors and analyzers raise these where the fault is detected; the
dispatcher is the only place they are converted into result fields.
Only :class:`RegistryError` is allowed to escape to callers, and only
from dispatcher construction.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional


class UnheardError(RuntimeError):
    """Base class for every error raised by the input core."""


class ValidationError(UnheardError):
    """
    Raised when an envelope is malformed or its payload mismatches its kind.

    Never reaches a processor's ``process`` method.

    Args:
        errors: One human-readable message per failed check.
    """

    def __init__(self, errors: Iterable[str]) -> None:
        self.errors: list[str] = list(errors) or ["Validation failed"]
        super().__init__("; ".join(self.errors))


class ProcessingError(UnheardError):
    """Raised when a processor cannot produce a result."""


class MediaDecodeError(ProcessingError):
    """Raised when an encoded media buffer cannot be decoded."""


class QualityError(ProcessingError):
    """
    Raised when input was processed but falls under the processor's quality floor.

    Handled exactly like :class:`ProcessingError` by the dispatcher.

    Args:
        message: Human-readable reason.
        metrics: Optional quality metrics record that triggered the rejection.
    """

    def __init__(self, message: str, metrics: Optional[Any] = None) -> None:
        self.metrics = metrics
        super().__init__(message)


class ProcessingCancelledError(ProcessingError):
    """Raised inside abandoned work once it observes its cancellation token."""


class ProcessingTimeoutError(UnheardError):
    """
    Raised when a processing attempt exceeds the dispatch deadline.

    Args:
        deadline_ms: The deadline that was exceeded.
    """

    def __init__(self, deadline_ms: float) -> None:
        self.deadline_ms = deadline_ms
        super().__init__(f"Processing timeout after {deadline_ms:.0f}ms")


class RegistryError(UnheardError):
    """Raised at dispatcher construction when the processor registry is malformed."""
