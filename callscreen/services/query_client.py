"""
Callscreen — Gemini Query Client

Sends one free-text prompt to Gemini with fixed sampling parameters and a
JSON response type, then extracts the `response` field of the reply.
Never raises: every failure is logged and returned as None.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Optional

from google import genai
from google.genai import types

from ..core.config import GenerationConfig, generation_cfg

logger = logging.getLogger("callscreen.query")


class GeminiQueryClient:
    """Implements QueryClient over the google-genai async API."""

    def __init__(
        self,
        cfg: GenerationConfig = generation_cfg,
        client: Any = None,
    ) -> None:
        self._cfg = cfg
        self._client = client
        self._generation_config = types.GenerateContentConfig(
            temperature=cfg.temperature,
            top_p=cfg.top_p,
            top_k=cfg.top_k,
            response_mime_type=cfg.response_mime_type,
        )

    @property
    def generation_config(self) -> types.GenerateContentConfig:
        return self._generation_config

    def _get_client(self) -> Any:
        if self._client is None:
            # Falls back to GOOGLE_API_KEY when no key is configured
            self._client = genai.Client(api_key=self._cfg.api_key or None)
        return self._client

    def build_prompt(self, text: str) -> str:
        return f"{self._cfg.instruction_prompt} {self._cfg.query_marker} {text}"

    async def send_query(self, text: str) -> Optional[str]:
        prompt = self.build_prompt(text)
        try:
            response = await asyncio.wait_for(
                self._get_client().aio.models.generate_content(
                    model=self._cfg.model,
                    contents=prompt,
                    config=self._generation_config,
                ),
                timeout=self._cfg.request_timeout,
            )
            value = json.loads(response.text or "")
            answer = value["response"]
        except asyncio.TimeoutError:
            logger.error(f"Gemini query timed out after {self._cfg.request_timeout}s")
            return None
        except Exception as e:
            logger.error(f"Gemini query failed: {e!r}")
            return None

        if not isinstance(answer, str):
            logger.error(f"Gemini reply `response` is not text: {type(answer).__name__}")
            return None
        return answer
