"""
Callscreen — Query Controller

Minimal state machine behind the free-text query page:

    idle → loading → answered | failed

One `QueryExchange` is kept and overwritten on each submission.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict

from ..core.interfaces import QueryClient
from ..core.models import QueryExchange

logger = logging.getLogger("callscreen.query")

LOADING_TEXT = "Loading..."


class QueryState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    ANSWERED = "answered"
    FAILED = "failed"


class QueryController:
    def __init__(self, client: QueryClient) -> None:
        self._client = client
        self.state = QueryState.IDLE
        self.exchange = QueryExchange()

    @property
    def loading(self) -> bool:
        return self.state == QueryState.LOADING

    @property
    def display_text(self) -> str:
        return LOADING_TEXT if self.loading else self.exchange.response_text

    async def submit(self, text: str) -> QueryExchange:
        """Send one query. Rejects blank text and overlapping submissions."""
        if self.loading:
            raise RuntimeError("A query is already in flight")
        text = (text or "").strip()
        if not text:
            raise ValueError("Query text is empty")

        self.exchange = QueryExchange(input_text=text)
        self.state = QueryState.LOADING
        try:
            answer = await self._client.send_query(text)
        except Exception as e:
            logger.error(f"Query client raised: {e!r}")
            answer = None

        if answer is None:
            self.state = QueryState.FAILED
            logger.info("Query failed — showing empty response")
        else:
            self.exchange.response_text = answer
            self.state = QueryState.ANSWERED
        return self.exchange

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "display_text": self.display_text,
            **self.exchange.to_dict(),
        }
