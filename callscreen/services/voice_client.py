"""
Callscreen — Voice Session Client

Adapter for the hosted voice assistant (Vapi web calls).

  • `start()` creates a web call over HTTPS and returns its descriptor
    (`id`, `webCallUrl` for the browser to join, `monitor` URLs).
  • `stop()` asks the call's control URL to end the call.
  • Lifecycle, speech and volume events are produced by the browser SDK
    while the user is in the call; the server relays them into `emit()`.

The event registry lives in `EventedVoiceClient` so test doubles and other
vendors can reuse it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx

from ..core.config import voice_cfg
from ..core.interfaces import CALL_END, VOICE_EVENTS, VoiceHandler

logger = logging.getLogger("callscreen.voice")


class EventedVoiceClient:
    """Handler registry shared by voice clients. Handlers may be async."""

    def __init__(self) -> None:
        self._handlers: Dict[str, List[VoiceHandler]] = {name: [] for name in VOICE_EVENTS}

    def on(self, event: str, handler: VoiceHandler) -> "EventedVoiceClient":
        if event not in self._handlers:
            raise ValueError(f"Unknown voice event: {event}. Known: {list(VOICE_EVENTS)}")
        self._handlers[event].append(handler)
        return self

    async def emit(self, event: str, *args: Any) -> None:
        if event not in self._handlers:
            raise ValueError(f"Unknown voice event: {event}")
        for handler in list(self._handlers[event]):
            try:
                cb = handler(*args)
                if asyncio.iscoroutine(cb):
                    await cb
            except Exception as e:
                logger.error(f"Voice event handler error ({event}): {e}")


class VapiWebClient(EventedVoiceClient):
    """
    Implements VoiceSessionClient against the Vapi REST API.

    Lifecycle:
        client = VapiWebClient()
        call = await client.start(firstName="Ada", lastName="Lovelace")
        # browser joins call["webCallUrl"] and relays SDK events → emit()
        await client.stop()
    """

    def __init__(
        self,
        public_key: str = voice_cfg.public_key,
        assistant_id: str = voice_cfg.assistant_id,
        base_url: str = voice_cfg.api_base_url,
        timeout: float = voice_cfg.request_timeout,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__()
        self._assistant_id = assistant_id
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={"Authorization": f"Bearer {public_key}"},
        )
        self._call: Optional[Dict[str, Any]] = None
        # Registered first so a remote hang-up is forgotten before others react
        self.on(CALL_END, self._forget_call)

    def _forget_call(self, *_: Any) -> None:
        self._call = None

    @property
    def current_call(self) -> Optional[Dict[str, Any]]:
        return self._call

    async def start(self, **variables: Any) -> Dict[str, Any]:
        """Create a web call. Raises httpx.HTTPError on failure."""
        if self._call is not None:
            raise RuntimeError("A call is already in progress")

        payload: Dict[str, Any] = {"assistantId": self._assistant_id}
        if variables:
            payload["assistantOverrides"] = {"variableValues": variables}

        response = await self._client.post("/call/web", json=payload)
        response.raise_for_status()
        call = response.json()
        if not isinstance(call, dict):
            raise ValueError(f"Unexpected call descriptor: {call!r}")

        self._call = call
        logger.info(f"Voice call created: id={call.get('id', '')!r}")
        return call

    async def stop(self) -> None:
        call, self._call = self._call, None
        if call is None:
            return

        control_url = (call.get("monitor") or {}).get("controlUrl")
        if not control_url:
            logger.warning(f"Call {call.get('id', '')!r} has no control URL — nothing to end")
            return

        response = await self._client.post(control_url, json={"type": "end-call"})
        response.raise_for_status()
        logger.info(f"Voice call ended: id={call.get('id', '')!r}")

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
