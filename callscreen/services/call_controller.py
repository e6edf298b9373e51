"""
Callscreen — Call Controller

================================================================================
ONE ASSISTANT CALL, START TO ANALYSIS
================================================================================

`CallController` is the sole owner of a voice session handle. It binds named
handlers for the voice events at construction and drives the state machine:

    idle → starting → active → stopping → polling → result | no_result

  • start()            idle/result/no_result → starting, voice.start()
  • call-start event   starting → active
  • stop() / call-end  starting/active → stopping → polling
  • poll finished      polling → result (body ready) | no_result (anything else)
  • reset()            result/no_result → idle

Exactly one poller task runs per stop: a `call-end` that arrives after a
user stop finds the controller already stopping and is ignored.

Every change is pushed to `on_update(snapshot)` so the UI layer never has
to reach into the controller.
================================================================================
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

from ..core.cancellation import CancellationSignal
from ..core.config import polling_cfg
from ..core.interfaces import (
    CALL_END,
    CALL_START,
    SPEECH_END,
    SPEECH_START,
    VOLUME_LEVEL,
    VoiceSessionClient,
)
from ..core.latency import CallTracer
from ..core.models import CallerDetails, CallResult, CallSession
from ..core.state_machine import CallState, CallStateMachine
from .poller import PollOptions, ResultPoller

logger = logging.getLogger("callscreen.call")

_LIVE_STATES = (CallState.STARTING, CallState.ACTIVE)

# Milestone recorded when the state machine enters each state
_MILESTONES = {
    CallState.STARTING: "start_requested",
    CallState.ACTIVE: "call_started",
    CallState.STOPPING: "call_ended",
    CallState.RESULT: "result_settled",
    CallState.NO_RESULT: "result_settled",
}


class CallController:
    """
    Drives a single call at a time through its lifecycle.

    Lifecycle:
        controller = CallController(session_id, voice, poller, on_update=push)
        await controller.start(CallerDetails(first_name="Ada"))
        # ... voice events arrive via the voice client ...
        await controller.stop()
        result = await controller.wait_for_result()   # CallResult or None
        await controller.close()
    """

    def __init__(
        self,
        session_id: str,
        voice: VoiceSessionClient,
        poller: ResultPoller,
        on_update: Optional[Callable[[Dict[str, Any]], Any]] = None,
        interval_ms: int = polling_cfg.interval_ms,
        max_attempts: int = polling_cfg.max_attempts,
    ) -> None:
        self.session_id = session_id
        self._voice = voice
        self._poller = poller
        self._on_update = on_update
        self._interval_ms = interval_ms
        self._max_attempts = max_attempts

        self._tracer = CallTracer(session_id)
        self._state_machine = CallStateMachine(on_transition=self._on_state_transition)

        self.session: Optional[CallSession] = None
        self.result: Optional[CallResult] = None
        self.loading_result = False

        self._signal: Optional[CancellationSignal] = None
        self._poll_task: Optional[asyncio.Task] = None

        voice \
            .on(CALL_START, self.handle_call_start) \
            .on(CALL_END, self.handle_call_end) \
            .on(SPEECH_START, self.handle_speech_start) \
            .on(SPEECH_END, self.handle_speech_end) \
            .on(VOLUME_LEVEL, self.handle_volume_level)

    @property
    def state(self) -> CallState:
        return self._state_machine.state

    @property
    def voice(self) -> VoiceSessionClient:
        return self._voice

    @property
    def can_start(self) -> bool:
        return self._state_machine.is_terminal

    @property
    def history(self) -> List[Dict]:
        return self._state_machine.history

    # ── State machine callback ──────────────────────────────────────────

    def _on_state_transition(self, prev: CallState, new: CallState, reason: str) -> None:
        if new == CallState.STARTING:
            self._tracer.reset()
        milestone = _MILESTONES.get(new)
        if milestone:
            self._tracer.mark(milestone)

    # ── User actions ────────────────────────────────────────────────────

    async def start(self, caller: Optional[CallerDetails] = None) -> Optional[Dict[str, Any]]:
        """
        Start a call. Only allowed from a terminal state.

        Returns the call descriptor, or None when the call was stopped
        before the voice service answered.
        """
        if not self.can_start:
            raise RuntimeError(f"Cannot start a call while {self.state.value}")

        self.result = None
        self.loading_result = False
        self.session = CallSession()
        self._state_machine.transition(CallState.STARTING, reason="user_start")
        await self._publish()

        caller = caller or CallerDetails()
        try:
            descriptor = await self._voice.start(**caller.to_variables())
        except Exception as e:
            logger.error(f"[{self.session_id}] Failed to start call: {e}")
            self.session = None
            if self.state == CallState.STARTING:
                self._state_machine.transition(CallState.IDLE, reason="start_failed")
            await self._publish()
            raise RuntimeError(f"Failed to start call: {str(e)[:100]}") from e

        if self.session is not None:
            self.session.id = str(descriptor.get("id") or "")

        if self.state not in _LIVE_STATES:
            # Stopped while the start request was in flight
            logger.warning(f"[{self.session_id}] Call created after stop — ending it")
            try:
                await self._voice.stop()
            except Exception as e:
                logger.error(f"[{self.session_id}] Failed to end orphaned call: {e}")
            return None

        logger.info(f"[{self.session_id}] Call requested — call_id={self.session.id!r}")
        await self._publish()
        return descriptor

    async def stop(self, reason: str = "user_stop") -> None:
        """End the live call and start waiting for its analysis."""
        if self.state not in _LIVE_STATES:
            logger.info(f"[{self.session_id}] Stop ignored while {self.state.value}")
            return
        await self._end_call(reason, stop_voice=True)

    def cancel_polling(self, reason: str = "user_cancel") -> None:
        if self._signal is not None:
            self._signal.cancel(reason)

    async def reset(self) -> None:
        """Back to idle from a terminal state."""
        if self.state == CallState.IDLE:
            return
        if self.state not in (CallState.RESULT, CallState.NO_RESULT):
            raise RuntimeError(f"Cannot reset while {self.state.value}")
        self.session = None
        self.result = None
        self.loading_result = False
        self._state_machine.transition(CallState.IDLE, reason="reset")
        await self._publish()

    async def wait_for_result(self) -> Optional[CallResult]:
        if self._poll_task is not None:
            await self._poll_task
        return self.result

    async def close(self) -> Dict[str, Any]:
        """Tear down: end a live call, cancel polling, wait for the poll task."""
        if self.state in _LIVE_STATES:
            await self._end_call("closed", stop_voice=True)
        self.cancel_polling("closed")
        if self._poll_task is not None and not self._poll_task.done():
            try:
                await self._poll_task
            except (asyncio.CancelledError, Exception) as e:
                logger.debug(f"[{self.session_id}] Poll task on close: {e!r}")

        summary = self.snapshot()
        logger.info(f"[{self.session_id}] Call controller closed — state={self.state.value}")
        return summary

    # ── Voice event handlers ────────────────────────────────────────────

    async def handle_call_start(self, *_: Any) -> None:
        if self.state != CallState.STARTING:
            logger.debug(f"[{self.session_id}] call-start ignored while {self.state.value}")
            return
        if self.session is not None:
            self.session.started = True
        self._state_machine.transition(CallState.ACTIVE, reason="call_start")
        await self._publish()

    async def handle_call_end(self, *_: Any) -> None:
        if self.state not in _LIVE_STATES:
            logger.debug(f"[{self.session_id}] call-end ignored while {self.state.value}")
            return
        await self._end_call("call_end", stop_voice=False)

    async def handle_speech_start(self, *_: Any) -> None:
        await self._set_speaking(True)

    async def handle_speech_end(self, *_: Any) -> None:
        await self._set_speaking(False)

    async def handle_volume_level(self, level: Any = 0.0, *_: Any) -> None:
        if self.session is None or not self.session.started:
            return
        try:
            value = float(level)
        except (TypeError, ValueError):
            logger.debug(f"[{self.session_id}] Ignoring volume level {level!r}")
            return
        if value != value:  # NaN
            return
        self.session.volume_level = min(1.0, max(0.0, value))
        await self._publish()

    # ── Internals ───────────────────────────────────────────────────────

    async def _set_speaking(self, speaking: bool) -> None:
        if self.session is None or self.session.speaking == speaking:
            return
        self.session.speaking = speaking
        await self._publish()

    async def _end_call(self, reason: str, stop_voice: bool) -> None:
        self._state_machine.transition(CallState.STOPPING, reason=reason)
        if self.session is not None:
            self.session.started = False
            self.session.speaking = False
            self.session.volume_level = 0.0
        await self._publish()

        if stop_voice:
            try:
                await self._voice.stop()
            except Exception as e:
                logger.error(f"[{self.session_id}] Voice stop failed: {e}")

        self._state_machine.transition(CallState.POLLING, reason="awaiting_analysis")
        self._signal = CancellationSignal()
        call_id = self.session.id if self.session is not None else ""
        self._poll_task = asyncio.create_task(
            self._poll(call_id, self._signal), name=f"poll-{self.session_id}"
        )

    async def _poll(self, call_id: str, signal: CancellationSignal) -> None:
        await self._publish()
        options = PollOptions(
            interval_ms=self._interval_ms,
            max_attempts=self._max_attempts,
            signal=signal,
        )
        body = await self._poller.poll(call_id, options, on_loading=self._set_loading_result)

        if body is not None:
            self.result = CallResult.from_body(body)
            self._state_machine.transition(CallState.RESULT, reason="analysis_ready")
            logger.info(
                f"[{self.session_id}] Call result — Task_Score={self.result.task_score}"
            )
        else:
            self._state_machine.transition(CallState.NO_RESULT, reason="no_analysis")
        await self._publish()

    async def _set_loading_result(self, loading: bool) -> None:
        self.loading_result = loading
        await self._publish()

    def snapshot(self) -> Dict[str, Any]:
        """UI view of the controller."""
        started = bool(self.session and self.session.started)
        outcome = self._poller.last_outcome
        return {
            "session_id": self.session_id,
            "state": self.state.value,
            "session": self.session.to_dict() if self.session else None,
            "result": self.result.to_dict() if self.result else None,
            "loading": self.state == CallState.STARTING,
            "loading_result": self.loading_result,
            "can_start": self.can_start,
            "show_form": self.can_start and not started and not self.loading_result and self.result is None,
            "timeline": self._tracer.summary(),
            "poll": outcome.to_dict() if outcome else None,
        }

    async def _publish(self) -> None:
        if self._on_update is None:
            return
        try:
            cb = self._on_update(self.snapshot())
            if asyncio.iscoroutine(cb):
                await cb
        except Exception as e:
            logger.error(f"[{self.session_id}] Update listener error: {e}")
