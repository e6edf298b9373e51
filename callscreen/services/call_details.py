"""
Callscreen — Call Details Client

Thin async HTTP client for `GET /call-details?call_id=<id>`.
One call to `fetch` is exactly one request. The body is parsed as JSON
whatever the status code; transport and parse errors propagate.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ..core.config import polling_cfg

logger = logging.getLogger("callscreen.call_details")

CALL_DETAILS_PATH = "/call-details"


class CallDetailsClient:
    """Implements CallDetailsSource over httpx."""

    def __init__(
        self,
        base_url: str = polling_cfg.call_details_base_url,
        timeout: float = polling_cfg.request_timeout,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def fetch(self, call_id: str) -> Any:
        response = await self._client.get(CALL_DETAILS_PATH, params={"call_id": call_id})
        logger.debug(f"[{call_id}] call-details → HTTP {response.status_code}")
        # ValueError (JSONDecodeError) on a non-JSON body
        return response.json()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
