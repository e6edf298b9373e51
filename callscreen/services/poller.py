"""
Callscreen — Result Poller

================================================================================
BOUNDED, CANCELLABLE POST-CALL RESULT POLLING
================================================================================

After a call ends the analysis is not available immediately. `ResultPoller`
asks the call-details source once per attempt until one of:

  • the body is ready (has both `analysis` and `summary`) → returns it
  • `max_attempts` requests were made                    → None
  • the cancellation signal fired                        → None (info log)
  • a request failed (network / non-JSON body)           → None (error log)

Attempts are strictly sequential with `interval_ms` between them. There is
no wait after the last attempt. A cancellation that arrives while a request
is in flight aborts that request client-side; the server may still finish it.

The poller never touches controller state. It reports through its return
value, `last_outcome`, and the optional `on_loading(bool)` callback.
================================================================================
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from ..core.cancellation import CancellationSignal
from ..core.config import polling_cfg
from ..core.interfaces import CallDetailsSource
from ..core.models import PollOutcome, StopReason, is_ready

logger = logging.getLogger("callscreen.poller")


@dataclass(frozen=True)
class PollOptions:
    interval_ms: int = polling_cfg.interval_ms
    max_attempts: int = polling_cfg.max_attempts
    signal: Optional[CancellationSignal] = None

    def __post_init__(self) -> None:
        if self.interval_ms < 0:
            raise ValueError(f"interval_ms must be >= 0, got {self.interval_ms}")
        if self.max_attempts < 0:
            raise ValueError(f"max_attempts must be >= 0, got {self.max_attempts}")


class _RequestAborted(Exception):
    """The signal fired while a request was in flight."""


class ResultPoller:
    """
    Polls a CallDetailsSource until the post-call analysis is ready.

    Usage:
        poller = ResultPoller(CallDetailsClient())
        body = await poller.poll(call_id, PollOptions(signal=signal))
        if body is None:
            ...  # show the terminal "no result" state
    """

    def __init__(self, source: CallDetailsSource) -> None:
        self._source = source
        self.last_outcome: Optional[PollOutcome] = None

    async def poll(
        self,
        call_id: Optional[str],
        options: Optional[PollOptions] = None,
        on_loading: Optional[Callable[[bool], Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        options = options or PollOptions()
        outcome = PollOutcome(call_id=call_id or "")
        self.last_outcome = outcome

        if not call_id:
            logger.info("No call id — skipping result poll")
            return None

        await _notify(on_loading, True)
        started = time.monotonic()
        try:
            return await self._run(call_id, options, outcome)
        finally:
            outcome.elapsed_ms = round((time.monotonic() - started) * 1000, 1)
            logger.info(
                f"[{call_id}] Poll finished — reason={outcome.reason.value}, "
                f"attempts={outcome.attempts}, elapsed={outcome.elapsed_ms}ms"
            )
            await _notify(on_loading, False)

    async def _run(
        self, call_id: str, options: PollOptions, outcome: PollOutcome
    ) -> Optional[Dict[str, Any]]:
        signal = options.signal
        interval = options.interval_ms / 1000.0

        for attempt in range(1, options.max_attempts + 1):
            if signal is not None and signal.cancelled:
                outcome.reason = StopReason.CANCELLED
                logger.info(f"[{call_id}] Poll cancelled before attempt {attempt}: {signal.reason}")
                return None

            outcome.attempts = attempt
            try:
                body = await self._request(call_id, signal)
            except _RequestAborted:
                outcome.reason = StopReason.CANCELLED
                logger.info(f"[{call_id}] Poll aborted during attempt {attempt}: {signal.reason}")
                return None
            except Exception as e:
                # No retry — avoid tight loops against a misbehaving endpoint
                outcome.reason = StopReason.FAILED
                outcome.error = str(e)[:200]
                logger.error(f"[{call_id}] Polling error on attempt {attempt}: {e}")
                return None

            if is_ready(body):
                outcome.reason = StopReason.READY
                return body

            logger.debug(f"[{call_id}] Attempt {attempt}/{options.max_attempts}: not ready")

            if attempt < options.max_attempts:
                if signal is not None:
                    await signal.sleep(interval)
                else:
                    await asyncio.sleep(interval)

        outcome.reason = StopReason.EXHAUSTED
        logger.warning(f"[{call_id}] No result after {options.max_attempts} attempts")
        return None

    async def _request(self, call_id: str, signal: Optional[CancellationSignal]) -> Any:
        """One request, raced against the signal when there is one."""
        if signal is None:
            return await self._source.fetch(call_id)

        fetch_task = asyncio.ensure_future(self._source.fetch(call_id))
        cancel_task = asyncio.ensure_future(signal.wait())
        try:
            done, _ = await asyncio.wait(
                {fetch_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            fetch_task.cancel()
            raise
        finally:
            cancel_task.cancel()

        if fetch_task in done:
            return fetch_task.result()

        fetch_task.cancel()
        try:
            await fetch_task
        except (asyncio.CancelledError, Exception):
            pass
        raise _RequestAborted()


async def _notify(callback: Optional[Callable[[bool], Any]], value: bool) -> None:
    if callback is None:
        return
    try:
        cb = callback(value)
        if asyncio.iscoroutine(cb):
            await cb
    except Exception as e:
        logger.error(f"Loading callback error: {e}")
