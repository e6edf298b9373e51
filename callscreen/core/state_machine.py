"""
Callscreen — Call State Machine

Enforces the lifecycle:
    IDLE → STARTING → ACTIVE → STOPPING → POLLING → RESULT | NO_RESULT

All state transitions go through this module so illegitimate states
are impossible and every transition is logged.
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Callable, Dict, List, Optional, Set

logger = logging.getLogger("callscreen.state")


class CallState(str, Enum):
    """Strict call lifecycle states."""
    IDLE = "idle"              # No call, start allowed
    STARTING = "starting"      # Start requested, waiting for call-start
    ACTIVE = "active"          # Voice session live
    STOPPING = "stopping"      # Stop requested or call-end received
    POLLING = "polling"        # Waiting for post-call analysis
    RESULT = "result"          # Analysis received
    NO_RESULT = "no_result"    # Poll gave up, failed or was cancelled


# States from which a new call may be started
TERMINAL_STATES: frozenset[CallState] = frozenset({
    CallState.IDLE, CallState.RESULT, CallState.NO_RESULT,
})

# Legal state transitions
_TRANSITIONS: Dict[CallState, Set[CallState]] = {
    CallState.IDLE:      {CallState.STARTING},
    CallState.STARTING:  {CallState.ACTIVE, CallState.STOPPING, CallState.IDLE},
    CallState.ACTIVE:    {CallState.STOPPING},
    CallState.STOPPING:  {CallState.POLLING},
    CallState.POLLING:   {CallState.RESULT, CallState.NO_RESULT},
    CallState.RESULT:    {CallState.STARTING, CallState.IDLE},
    CallState.NO_RESULT: {CallState.STARTING, CallState.IDLE},
}


class CallStateMachine:
    """
    Enforces legal state transitions and notifies listeners.

    Usage:
        sm = CallStateMachine(on_transition=my_callback)
        sm.transition(CallState.STARTING)       # OK
        sm.transition(CallState.ACTIVE)         # OK
        sm.transition(CallState.RESULT)         # illegal from ACTIVE → raises
    """

    def __init__(
        self,
        on_transition: Optional[Callable[[CallState, CallState, str], None]] = None,
    ) -> None:
        self._state = CallState.IDLE
        self._on_transition = on_transition
        self._history: List[Dict] = []
        self._entered_at = time.time()

    @property
    def state(self) -> CallState:
        return self._state

    @property
    def is_terminal(self) -> bool:
        return self._state in TERMINAL_STATES

    @property
    def history(self) -> List[Dict]:
        return list(self._history)

    def can_transition(self, target: CallState) -> bool:
        return target in _TRANSITIONS.get(self._state, set())

    def transition(self, target: CallState, reason: str = "") -> None:
        """
        Attempt a state transition. Raises ValueError on illegal transitions.
        """
        if target == self._state:
            return  # Idempotent — no-op for same state

        allowed = _TRANSITIONS.get(self._state, set())
        if target not in allowed:
            raise ValueError(
                f"Illegal state transition: {self._state.value} → {target.value}. "
                f"Allowed from {self._state.value}: {sorted(s.value for s in allowed)}. "
                f"Reason: {reason}"
            )

        prev = self._state
        now = time.time()
        self._history.append({
            "from": prev.value,
            "to": target.value,
            "reason": reason,
            "timestamp": now,
            "duration_in_prev_ms": round((now - self._entered_at) * 1000, 1),
        })
        self._state = target
        self._entered_at = now

        logger.info(
            f"STATE: {prev.value} → {target.value}"
            + (f" ({reason})" if reason else "")
        )

        if self._on_transition:
            try:
                self._on_transition(prev, target, reason)
            except Exception as e:
                logger.error(f"State transition callback error: {e}")
