"""
tests/test_fsm.py — pytest unit tests for unheard.core.fsm.DispatchFSM.
"""

from __future__ import annotations

import pytest

from unheard.core.constants import DispatchState
from unheard.core.fsm import DispatchFSM, InvalidTransitionError


# ──────────────────────────────────────────────────────────────
# Transition map mirror (must stay in sync with core/fsm.py)
# ──────────────────────────────────────────────────────────────

VALID_TRANSITIONS: dict[DispatchState, list[DispatchState]] = {
    DispatchState.IDLE: [DispatchState.VALIDATING],
    DispatchState.VALIDATING: [
        DispatchState.PROCESSING,
        DispatchState.FALLEN_BACK,
        DispatchState.DONE,
    ],
    DispatchState.PROCESSING: [
        DispatchState.SUCCEEDED,
        DispatchState.FALLEN_BACK,
        DispatchState.DONE,
    ],
    DispatchState.SUCCEEDED: [DispatchState.DONE],
    DispatchState.FALLEN_BACK: [DispatchState.DONE],
    DispatchState.DONE: [],
}

# Shortest path from IDLE to each state
_PATHS: dict[DispatchState, list[DispatchState]] = {
    DispatchState.IDLE: [],
    DispatchState.VALIDATING: [DispatchState.VALIDATING],
    DispatchState.PROCESSING: [DispatchState.VALIDATING, DispatchState.PROCESSING],
    DispatchState.SUCCEEDED: [
        DispatchState.VALIDATING, DispatchState.PROCESSING, DispatchState.SUCCEEDED,
    ],
    DispatchState.FALLEN_BACK: [DispatchState.VALIDATING, DispatchState.FALLEN_BACK],
    DispatchState.DONE: [DispatchState.VALIDATING, DispatchState.DONE],
}


def _fsm_at(target: DispatchState) -> DispatchFSM:
    """Fresh FSM driven to ``target`` through valid transitions."""
    fsm = DispatchFSM()
    for step in _PATHS[target]:
        fsm.transition(step, reason="_fsm_at")
    return fsm


# ──────────────────────────────────────────────────────────────
# Fixtures
# ──────────────────────────────────────────────────────────────

@pytest.fixture()
def fsm() -> DispatchFSM:
    """Fresh FSM instance in IDLE state."""
    return DispatchFSM()


@pytest.fixture()
def fsm_with_callbacks() -> tuple[DispatchFSM, list[tuple]]:
    """FSM that records every external callback invocation."""
    log: list[tuple[DispatchState, DispatchState, str]] = []

    def _cb(from_: DispatchState, to_: DispatchState, reason: str) -> None:
        log.append((from_, to_, reason))

    return DispatchFSM(on_transition=_cb), log


# ──────────────────────────────────────────────────────────────
# Valid transitions
# ──────────────────────────────────────────────────────────────

class TestValidTransitions:

    def test_every_valid_edge(self) -> None:
        tested = 0
        for from_state, targets in VALID_TRANSITIONS.items():
            for to_state in targets:
                fsm = _fsm_at(from_state)
                fsm.transition(to_state, reason="test_valid")
                assert fsm.current_state == to_state, (
                    f"Expected {to_state} after {from_state} → {to_state}"
                )
                tested += 1
        assert tested == sum(len(v) for v in VALID_TRANSITIONS.values())

    def test_initial_state_is_idle(self, fsm: DispatchFSM) -> None:
        assert fsm.current_state is DispatchState.IDLE
        assert not fsm.is_done

    def test_success_path(self, fsm: DispatchFSM) -> None:
        for step in (
            DispatchState.VALIDATING,
            DispatchState.PROCESSING,
            DispatchState.SUCCEEDED,
            DispatchState.DONE,
        ):
            fsm.transition(step)
        assert fsm.is_done
        assert fsm.path() == [
            DispatchState.IDLE,
            DispatchState.VALIDATING,
            DispatchState.PROCESSING,
            DispatchState.SUCCEEDED,
            DispatchState.DONE,
        ]

    def test_validation_failure_path(self, fsm: DispatchFSM) -> None:
        fsm.transition(DispatchState.VALIDATING)
        fsm.transition(DispatchState.FALLEN_BACK, reason="validation")
        fsm.transition(DispatchState.DONE)
        assert DispatchState.PROCESSING not in fsm.path()

    def test_external_callback_called(
        self, fsm_with_callbacks: tuple[DispatchFSM, list]
    ) -> None:
        fsm, log = fsm_with_callbacks
        fsm.transition(DispatchState.VALIDATING, reason="cb_test")
        assert log == [(DispatchState.IDLE, DispatchState.VALIDATING, "cb_test")]

    def test_callback_errors_are_contained(self) -> None:
        def _bad(*_args) -> None:
            raise RuntimeError("callback broke")

        fsm = DispatchFSM(on_transition=_bad)
        fsm.transition(DispatchState.VALIDATING)
        assert fsm.current_state is DispatchState.VALIDATING

    def test_can_transition(self, fsm: DispatchFSM) -> None:
        assert fsm.can_transition(DispatchState.VALIDATING) is True
        assert fsm.can_transition(DispatchState.PROCESSING) is False


# ──────────────────────────────────────────────────────────────
# Invalid transitions
# ──────────────────────────────────────────────────────────────

class TestInvalidTransition:

    @pytest.mark.parametrize("from_state, to_state", [
        (DispatchState.IDLE, DispatchState.PROCESSING),
        (DispatchState.IDLE, DispatchState.DONE),
        (DispatchState.VALIDATING, DispatchState.SUCCEEDED),
        (DispatchState.SUCCEEDED, DispatchState.FALLEN_BACK),
        (DispatchState.FALLEN_BACK, DispatchState.SUCCEEDED),
        (DispatchState.DONE, DispatchState.IDLE),
        (DispatchState.DONE, DispatchState.VALIDATING),
    ])
    def test_raises_invalid_transition_error(
        self,
        from_state: DispatchState,
        to_state: DispatchState,
    ) -> None:
        fsm = _fsm_at(from_state)
        with pytest.raises(InvalidTransitionError) as exc_info:
            fsm.transition(to_state, reason="should_fail")
        err = exc_info.value
        assert err.from_state == from_state
        assert err.to_state == to_state
        assert fsm.current_state == from_state

    def test_error_message_names_both_states(self, fsm: DispatchFSM) -> None:
        with pytest.raises(InvalidTransitionError) as exc_info:
            fsm.transition(DispatchState.SUCCEEDED, reason="jump")
        msg = str(exc_info.value)
        assert "IDLE" in msg
        assert "SUCCEEDED" in msg
        assert "jump" in msg


# ──────────────────────────────────────────────────────────────
# History and repr
# ──────────────────────────────────────────────────────────────

class TestHistory:

    def test_history_records(self) -> None:
        fsm = _fsm_at(DispatchState.SUCCEEDED)
        history = fsm.get_history()
        assert [r["to"] for r in history] == ["VALIDATING", "PROCESSING", "SUCCEEDED"]
        assert all({"from", "to", "reason", "timestamp"} <= set(r) for r in history)

    def test_history_is_a_copy(self, fsm: DispatchFSM) -> None:
        fsm.transition(DispatchState.VALIDATING)
        fsm.get_history().clear()
        assert len(fsm.get_history()) == 1

    def test_repr(self, fsm: DispatchFSM) -> None:
        assert repr(fsm) == "DispatchFSM(state=IDLE, last=none)"
        fsm.transition(DispatchState.VALIDATING, reason="go")
        assert repr(fsm) == "DispatchFSM(state=VALIDATING, last=IDLE→VALIDATING[go])"
