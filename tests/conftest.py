"""Shared fixtures and test doubles for the test suite."""

import asyncio
import os
import sys

import pytest

# Dummy keys so config imports cleanly without a .env
os.environ.setdefault("GEMINI_API_KEY", "test-dummy-key")
os.environ.setdefault("CALL_DETAILS_BASE_URL", "http://details.test")

# Ensure project root is on sys.path
sys.path.insert(0, str(os.path.dirname(os.path.dirname(__file__))))

from callscreen.services.voice_client import EventedVoiceClient


READY_BODY = {
    "analysis": {"structuredData": {"Task_Score": 8}},
    "summary": "ok",
}


def run(coro):
    """Drive a coroutine to completion on a fresh event loop."""
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------
class ScriptedDetailsSource:
    """
    CallDetailsSource that replays a script, one entry per request.

    Entries may be a body, an exception instance (raised), or a callable
    taking the call id (its return value is used). The last entry repeats.
    """

    def __init__(self, *script, delay: float = 0.0):
        self.script = list(script) or [{}]
        self.delay = delay
        self.calls: list[str] = []
        self.cancelled = 0

    async def fetch(self, call_id):
        idx = min(len(self.calls), len(self.script) - 1)
        self.calls.append(call_id)
        entry = self.script[idx]
        if self.delay:
            try:
                await asyncio.sleep(self.delay)
            except asyncio.CancelledError:
                self.cancelled += 1
                raise
        if isinstance(entry, BaseException):
            raise entry
        if callable(entry):
            return entry(call_id)
        return entry


class FakeVoiceClient(EventedVoiceClient):
    """VoiceSessionClient that records calls instead of reaching a vendor."""

    def __init__(self, call_id: str = "call-123", start_error: Exception | None = None,
                 start_delay: float = 0.0):
        super().__init__()
        self.start_delay = start_delay
        self.call_id = call_id
        self.start_error = start_error
        self.started_with: list[dict] = []
        self.stop_count = 0

    async def start(self, **variables):
        self.started_with.append(variables)
        if self.start_delay:
            await asyncio.sleep(self.start_delay)
        if self.start_error is not None:
            raise self.start_error
        return {"id": self.call_id, "webCallUrl": f"https://call.test/{self.call_id}"}

    async def stop(self):
        self.stop_count += 1


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def ready_body():
    return dict(READY_BODY)


@pytest.fixture
def voice():
    return FakeVoiceClient()
