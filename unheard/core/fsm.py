"""
unheard/core/fsm.py — Per-dispatch finite state machine for UNHEARD.

One DispatchFSM lives for exactly one dispatch call:

    IDLE → VALIDATING → PROCESSING → (SUCCEEDED | FALLEN_BACK) → DONE

Validation failure jumps straight from VALIDATING to FALLEN_BACK, and with
auto-fallback disabled a failure goes directly to DONE. Transitions are
checked against an explicit map and recorded in a bounded history.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from unheard.core.constants import DispatchState

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────────────────────
# Custom exception
# ──────────────────────────────────────────────────────────────

class InvalidTransitionError(RuntimeError):
    """
    Raised when a requested transition is not in the valid transition map.

    Args:
        from_state: Current state at the time of the illegal attempt.
        to_state: Requested (invalid) target state.
        reason: Caller-supplied reason string.
    """

    def __init__(
        self,
        from_state: DispatchState,
        to_state: DispatchState,
        reason: str = "",
    ) -> None:
        self.from_state = from_state
        self.to_state = to_state
        self.reason = reason
        super().__init__(
            f"Invalid transition {from_state.value} → {to_state.value}"
            + (f" (reason: {reason})" if reason else "")
        )


# ──────────────────────────────────────────────────────────────
# Valid transition map
# ──────────────────────────────────────────────────────────────

_VALID_TRANSITIONS: dict[DispatchState, list[DispatchState]] = {
    DispatchState.IDLE: [
        DispatchState.VALIDATING,
    ],
    DispatchState.VALIDATING: [
        DispatchState.PROCESSING,
        DispatchState.FALLEN_BACK,
        DispatchState.DONE,          # validation failed, auto-fallback off
    ],
    DispatchState.PROCESSING: [
        DispatchState.SUCCEEDED,
        DispatchState.FALLEN_BACK,
        DispatchState.DONE,          # processing failed, auto-fallback off
    ],
    DispatchState.SUCCEEDED: [
        DispatchState.DONE,
    ],
    DispatchState.FALLEN_BACK: [
        DispatchState.DONE,
    ],
    DispatchState.DONE: [],
}

_TERMINAL_STATES = frozenset({DispatchState.DONE})

# Maximum number of transition records kept in history
_MAX_HISTORY = 50


# ──────────────────────────────────────────────────────────────
# FSM class
# ──────────────────────────────────────────────────────────────

class DispatchFSM:
    """
    Thread-safe finite state machine tracking a single dispatch.

    Enforces :data:`_VALID_TRANSITIONS`; illegal transitions raise
    :class:`InvalidTransitionError` immediately. The dispatcher creates a
    fresh instance per call, so concurrent dispatches never share state.

    Args:
        on_transition: Optional callback invoked after every successful
            transition with signature ``(from_state, to_state, reason)``.
    """

    def __init__(
        self,
        on_transition: Callable[[DispatchState, DispatchState, str], None] | None = None,
    ) -> None:
        """Initialise the FSM in IDLE."""
        self._state: DispatchState = DispatchState.IDLE
        self._lock = threading.Lock()
        self._history: list[dict] = []
        self._external_callback = on_transition
        self._last_transition: dict | None = None

    # ──────────────────────────────────────────
    # Public API
    # ──────────────────────────────────────────

    @property
    def current_state(self) -> DispatchState:
        """Return the current state (thread-safe read)."""
        with self._lock:
            return self._state

    @property
    def is_done(self) -> bool:
        """True once the dispatch has reached DONE."""
        return self.current_state in _TERMINAL_STATES

    def transition(self, new_state: DispatchState, reason: str = "") -> None:
        """
        Attempt a validated state transition.

        Records the transition in history and notifies the external callback.

        Args:
            new_state: Target state to transition to.
            reason: Human-readable reason for the transition (for logs/history).

        Raises:
            InvalidTransitionError: If the transition is not in the valid map.
        """
        with self._lock:
            from_state = self._state
            allowed = _VALID_TRANSITIONS.get(from_state, [])

            if new_state not in allowed:
                raise InvalidTransitionError(from_state, new_state, reason)

            self._state = new_state

            record = {
                "from": from_state.value,
                "to": new_state.value,
                "reason": reason,
                "timestamp": time.time(),
            }
            self._history.append(record)
            if len(self._history) > _MAX_HISTORY:
                self._history.pop(0)
            self._last_transition = record

        logger.debug(
            "Dispatch FSM: %s → %s%s",
            from_state.value,
            new_state.value,
            f" [{reason}]" if reason else "",
        )

        # External callback outside the lock
        if self._external_callback is not None:
            try:
                self._external_callback(from_state, new_state, reason)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Dispatch FSM callback raised: %s", exc)

    def get_history(self) -> list[dict]:
        """
        Return a copy of the last (up to 50) transition records.

        Each record is a dict with keys ``from``, ``to``, ``reason`` and
        ``timestamp`` (Unix epoch float).

        Returns:
            List of transition record dicts, oldest first.
        """
        with self._lock:
            return list(self._history)

    def path(self) -> list[DispatchState]:
        """Return every state visited so far, starting with IDLE."""
        with self._lock:
            return [DispatchState.IDLE] + [DispatchState(r["to"]) for r in self._history]

    def can_transition(self, target: DispatchState) -> bool:
        """
        Check whether a transition to ``target`` is currently valid.

        Args:
            target: Candidate target state.

        Returns:
            True if the transition is in the valid map for the current state.
        """
        return target in _VALID_TRANSITIONS.get(self.current_state, [])

    # ──────────────────────────────────────────
    # Dunder methods
    # ──────────────────────────────────────────

    def __repr__(self) -> str:
        """Return a representation showing the state and the last transition."""
        with self._lock:
            state_str = self._state.value
            if self._last_transition:
                last = (
                    f"{self._last_transition['from']}"
                    f"→{self._last_transition['to']}"
                    + (
                        f"[{self._last_transition['reason']}]"
                        if self._last_transition["reason"]
                        else ""
                    )
                )
            else:
                last = "none"
        return f"DispatchFSM(state={state_str}, last={last})"
