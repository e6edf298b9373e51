"""
Callscreen — Cooperative Cancellation

A one-shot signal checked by long-running coroutines at defined points.
Triggering it never interrupts anything by itself; readers decide.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

logger = logging.getLogger("callscreen.cancellation")


class CancellationSignal:
    """
    One-shot cancellation token.

    Usage:
        signal = CancellationSignal()
        task = asyncio.create_task(poller.poll(call_id, PollOptions(signal=signal)))
        signal.cancel("user reset")
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def cancel(self, reason: str = "") -> None:
        if self._event.is_set():
            return
        self._reason = reason or "cancelled"
        self._event.set()
        logger.debug(f"Cancellation requested: {self._reason}")

    async def wait(self) -> None:
        await self._event.wait()

    async def sleep(self, seconds: float) -> bool:
        """Sleep up to `seconds`. Returns True if cancelled meanwhile."""
        if seconds <= 0:
            return self.cancelled
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True
