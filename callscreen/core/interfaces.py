"""
Callscreen — Collaborator Interfaces

Protocol definitions for the three hosted services the app delegates to:
  1. Voice     — starts/stops an assistant call and emits its events
  2. Details   — returns the post-call analysis for a call id
  3. Query     — answers a free-text prompt via a language model

Controllers talk to these protocols only — never to vendor SDKs directly.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Union, runtime_checkable

# Voice lifecycle events, in the names the voice SDK emits them
CALL_START = "call-start"
CALL_END = "call-end"
SPEECH_START = "speech-start"
SPEECH_END = "speech-end"
VOLUME_LEVEL = "volume-level"

VOICE_EVENTS = (CALL_START, CALL_END, SPEECH_START, SPEECH_END, VOLUME_LEVEL)

VoiceHandler = Callable[..., Union[None, Awaitable[None]]]


# ═══════════════════════════════════════════════════════════════════════════
# Voice session
# ═══════════════════════════════════════════════════════════════════════════

@runtime_checkable
class VoiceSessionClient(Protocol):
    """Owns one hosted assistant call at a time."""

    def on(self, event: str, handler: VoiceHandler) -> "VoiceSessionClient":
        """Register a handler for one of VOICE_EVENTS. Chainable."""
        ...

    async def start(self, **variables: Any) -> Dict[str, Any]:
        """Start a call. Returns a descriptor with at least an `id`."""
        ...

    async def stop(self) -> None:
        """End the current call, if any."""
        ...


# ═══════════════════════════════════════════════════════════════════════════
# Call details
# ═══════════════════════════════════════════════════════════════════════════

@runtime_checkable
class CallDetailsSource(Protocol):
    """One request per call: returns the parsed body, raises on failure."""

    async def fetch(self, call_id: str) -> Any:
        ...


# ═══════════════════════════════════════════════════════════════════════════
# Generative query
# ═══════════════════════════════════════════════════════════════════════════

@runtime_checkable
class QueryClient(Protocol):
    """Never raises: failures come back as None."""

    async def send_query(self, text: str) -> Optional[str]:
        ...
