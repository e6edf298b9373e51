"""
Callscreen — Configuration

Centralised settings from environment variables.
All tuneable constants live here — zero magic numbers in other files.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv
import certifi

os.environ.setdefault("SSL_CERT_FILE", certifi.where())
os.environ.setdefault("REQUESTS_CA_BUNDLE", certifi.where())

load_dotenv()

# ── Bridge env-var naming: Gemini SDK reads GOOGLE_API_KEY ──────────────
_gemini_key = os.getenv("GEMINI_API_KEY", "")
if _gemini_key and not os.getenv("GOOGLE_API_KEY"):
    os.environ["GOOGLE_API_KEY"] = _gemini_key


# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ServerConfig:
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "8080"))
    cors_origins: tuple[str, ...] = (
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:3000",
    )


# ---------------------------------------------------------------------------
# Voice assistant (Vapi web calls)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class VoiceConfig:
    """Keys and endpoints for the hosted voice assistant."""
    api_base_url: str = os.getenv("VAPI_BASE_URL", "https://api.vapi.ai")
    public_key: str = os.getenv("VAPI_PUBLIC_KEY", "")
    assistant_id: str = os.getenv("VAPI_ASSISTANT_ID", "")
    # Hard timeout for a single start/stop request (seconds)
    request_timeout: float = 10.0

    @property
    def has_all_keys(self) -> bool:
        return all([self.public_key, self.assistant_id])


# ---------------------------------------------------------------------------
# Post-call result polling
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PollingConfig:
    # Base URL of the service that exposes GET /call-details
    call_details_base_url: str = os.getenv("CALL_DETAILS_BASE_URL", "http://localhost:8000")
    # Wait between attempts (milliseconds)
    interval_ms: int = int(os.getenv("POLL_INTERVAL_MS", "3000"))
    # Attempt budget before giving up with "no result"
    max_attempts: int = int(os.getenv("POLL_MAX_ATTEMPTS", "20"))
    # Hard timeout for one call-details request (seconds)
    request_timeout: float = 10.0


# ---------------------------------------------------------------------------
# Generative query (Gemini)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GenerationConfig:
    """Sampling parameters are fixed; only the model is env-tunable."""
    api_key: str = os.getenv("GEMINI_API_KEY", "")
    model: str = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
    temperature: float = 1.0
    top_p: float = 0.95
    top_k: int = 64
    response_mime_type: str = "application/json"
    # Hard timeout for a single generation call (seconds)
    request_timeout: float = 30.0
    # Framing placed in front of every user query
    instruction_prompt: str = (
        'Response to the following text that starts after "GEMINI_QUERY ->" '
        "and only that."
    )
    query_marker: str = "GEMINI_QUERY ->"

    @property
    def has_key(self) -> bool:
        return bool(self.api_key)


# ---------------------------------------------------------------------------
# Singletons
# ---------------------------------------------------------------------------

server_cfg = ServerConfig()
voice_cfg = VoiceConfig()
polling_cfg = PollingConfig()
generation_cfg = GenerationConfig()
