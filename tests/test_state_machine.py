"""Tests for core/state_machine.py — call lifecycle transitions."""

import pytest

from callscreen.core.state_machine import CallState, CallStateMachine, TERMINAL_STATES


def _walk(sm, *states):
    for s in states:
        sm.transition(s)


class TestCallStateMachine:
    def test_starts_idle_and_terminal(self):
        sm = CallStateMachine()
        assert sm.state == CallState.IDLE
        assert sm.is_terminal

    def test_happy_path(self):
        sm = CallStateMachine()
        _walk(sm, CallState.STARTING, CallState.ACTIVE, CallState.STOPPING,
              CallState.POLLING, CallState.RESULT)
        assert sm.state == CallState.RESULT
        assert sm.is_terminal
        assert [h["to"] for h in sm.history] == ["starting", "active", "stopping", "polling", "result"]

    def test_stop_while_starting(self):
        sm = CallStateMachine()
        _walk(sm, CallState.STARTING, CallState.STOPPING, CallState.POLLING, CallState.NO_RESULT)
        assert sm.state == CallState.NO_RESULT

    def test_new_call_from_terminal_states(self):
        for terminal in (CallState.RESULT, CallState.NO_RESULT):
            sm = CallStateMachine()
            _walk(sm, CallState.STARTING, CallState.ACTIVE, CallState.STOPPING,
                  CallState.POLLING, terminal, CallState.STARTING)
            assert sm.state == CallState.STARTING

    @pytest.mark.parametrize("path,illegal", [
        ((), CallState.ACTIVE),
        ((), CallState.POLLING),
        ((CallState.STARTING,), CallState.RESULT),
        ((CallState.STARTING, CallState.ACTIVE), CallState.STARTING),
        ((CallState.STARTING, CallState.ACTIVE), CallState.POLLING),
        ((CallState.STARTING, CallState.ACTIVE, CallState.STOPPING, CallState.POLLING), CallState.IDLE),
    ])
    def test_illegal_transitions_raise(self, path, illegal):
        sm = CallStateMachine()
        _walk(sm, *path)
        with pytest.raises(ValueError, match="Illegal state transition"):
            sm.transition(illegal, reason="test")

    def test_same_state_is_noop(self):
        sm = CallStateMachine()
        sm.transition(CallState.IDLE)
        assert sm.history == []

    def test_callback_receives_transition(self):
        seen = []
        sm = CallStateMachine(on_transition=lambda prev, new, reason: seen.append((prev, new, reason)))
        sm.transition(CallState.STARTING, reason="user_start")
        assert seen == [(CallState.IDLE, CallState.STARTING, "user_start")]

    def test_callback_error_does_not_block_transition(self):
        def boom(prev, new, reason):
            raise RuntimeError("listener failed")

        sm = CallStateMachine(on_transition=boom)
        sm.transition(CallState.STARTING)
        assert sm.state == CallState.STARTING

    def test_only_idle_and_outcomes_are_terminal(self):
        assert TERMINAL_STATES == {CallState.IDLE, CallState.RESULT, CallState.NO_RESULT}
        sm = CallStateMachine()
        assert sm.can_transition(CallState.STARTING)
        assert not sm.can_transition(CallState.RESULT)
