"""
Callscreen — Call Registry

Maps session_id → CallController. One controller per connected page.
Extracted for clean separation from the controller itself.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from ..core.interfaces import CallDetailsSource, VoiceSessionClient
from .call_controller import CallController
from .poller import ResultPoller

logger = logging.getLogger("callscreen.registry")


class CallRegistry:
    """Maps session_id → CallController. Single event loop, no locking."""

    def __init__(
        self,
        voice_factory: Callable[[], VoiceSessionClient],
        details_source: CallDetailsSource,
    ) -> None:
        self._voice_factory = voice_factory
        self._details_source = details_source
        self._controllers: Dict[str, CallController] = {}

    def create(
        self,
        session_id: str,
        on_update: Optional[Callable[[Dict[str, Any]], Any]] = None,
    ) -> CallController:
        if session_id in self._controllers:
            raise ValueError(f"Session {session_id} already registered")
        controller = CallController(
            session_id=session_id,
            voice=self._voice_factory(),
            poller=ResultPoller(self._details_source),
            on_update=on_update,
        )
        self._controllers[session_id] = controller
        logger.info(f"CallRegistry: created {session_id} (total: {len(self._controllers)})")
        return controller

    async def remove(self, session_id: str) -> Optional[Dict[str, Any]]:
        controller = self._controllers.pop(session_id, None)
        if controller is None:
            return None
        summary = await controller.close()
        aclose = getattr(controller.voice, "aclose", None)
        if aclose is not None:
            await aclose()
        logger.info(f"CallRegistry: removed {session_id} (total: {len(self._controllers)})")
        return summary

    async def close_all(self) -> None:
        for sid in list(self._controllers.keys()):
            await self.remove(sid)

    def get(self, session_id: str) -> Optional[CallController]:
        return self._controllers.get(session_id)

    @property
    def active_count(self) -> int:
        return len(self._controllers)

    @property
    def all_controllers(self) -> Dict[str, CallController]:
        return dict(self._controllers)
