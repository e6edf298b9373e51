"""
Callscreen — FastAPI Server

================================================================================
Architecture:
  • One CallController per WebSocket connection (via CallRegistry)
  • The browser runs the voice SDK inside the web call created by the
    server and relays its events (call-start, speech, volume, call-end)
  • After a call ends, the controller polls GET /call-details until the
    post-call analysis is ready, then pushes it to the page
  • The query page posts free text; Gemini answers with JSON
================================================================================

Endpoints:
  WS   /ws/call              — call session stream
  POST /query                — free-text query
  GET  /health               — server health
  GET  /calls                — list live call controllers
  GET  /calls/{session_id}   — single controller snapshot

Client → Server messages:
  { type: "start_call", caller: {...} }        → create a voice call
  { type: "stop_call" }                        → end it, start polling
  { type: "voice_event", event: "...", value } → relayed SDK event
  { type: "cancel_polling" }                   → stop waiting for analysis
  { type: "reset" }                            → back to idle
  { type: "ping" }                             → keepalive

Server → Client messages:
  { type: "call_state", data: {...} }          → controller snapshot
  { type: "call_started", data: {...} }        → voice call descriptor
  { type: "pong" }                             → keepalive ack
  { type: "error", message: "..." }            → error
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any, Dict

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .core.config import generation_cfg, server_cfg, voice_cfg
from .core.interfaces import VOICE_EVENTS
from .core.models import CallerDetails
from .services.call_details import CallDetailsClient
from .services.query_client import GeminiQueryClient
from .services.query_controller import QueryController, QueryState
from .services.registry import CallRegistry
from .services.voice_client import EventedVoiceClient, VapiWebClient

VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logger = logging.getLogger("callscreen")
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)

# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------

details_client = CallDetailsClient()
registry = CallRegistry(voice_factory=VapiWebClient, details_source=details_client)
query_client = GeminiQueryClient()

# ---------------------------------------------------------------------------
# FastAPI Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Callscreen backend starting...")
    logger.info(f"   Voice keys configured: {voice_cfg.has_all_keys}")
    logger.info(f"   Gemini key configured: {generation_cfg.has_key}")
    yield
    logger.info("🛑 Shutting down — closing all calls...")
    await registry.close_all()
    await details_client.aclose()
    logger.info("🛑 Callscreen backend stopped")


# ---------------------------------------------------------------------------
# FastAPI App
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Callscreen — Application Call Assistant",
    version=VERSION,
    description=(
        "Starts a hosted voice-assistant call, waits for its post-call "
        "analysis and answers free-text questions through Gemini."
    ),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(server_cfg.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# REST Endpoints
# ---------------------------------------------------------------------------

class QueryRequest(BaseModel):
    text: str = ""


@app.get("/health")
async def health():
    return {
        "status": "ok",
        "version": VERSION,
        "voice_keys_configured": voice_cfg.has_all_keys,
        "gemini_key_configured": generation_cfg.has_key,
        "active_calls": registry.active_count,
    }


@app.get("/calls")
async def list_calls():
    return {sid: c.snapshot() for sid, c in registry.all_controllers.items()}


@app.get("/calls/{session_id}")
async def call_detail(session_id: str):
    controller = registry.get(session_id)
    if controller is None:
        return JSONResponse(status_code=404, content={"error": "session not found"})
    return controller.snapshot()


@app.post("/query")
async def query(req: QueryRequest):
    # One exchange per request; only the Gemini client is shared
    controller = QueryController(query_client)
    try:
        exchange = await controller.submit(req.text)
    except ValueError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})
    return {
        "response": exchange.response_text if controller.state == QueryState.ANSWERED else None,
        **controller.to_dict(),
    }


# ---------------------------------------------------------------------------
# WebSocket: Per-Page Call Session
# ---------------------------------------------------------------------------

@app.websocket("/ws/call")
async def websocket_call(ws: WebSocket):
    """
    WebSocket endpoint — one CallController per connection.
    Every state change is pushed back as a `call_state` message.
    """
    await ws.accept()

    session_id = uuid.uuid4().hex[:12]
    start_task: Any = None

    # Helper to send JSON safely
    async def send(data: Dict[str, Any]) -> None:
        try:
            await ws.send_text(json.dumps(data))
        except Exception:
            pass

    async def on_update(snapshot: Dict[str, Any]) -> None:
        await send({"type": "call_state", "data": snapshot})

    controller = registry.create(session_id=session_id, on_update=on_update)
    await on_update(controller.snapshot())

    async def _start_call(caller: CallerDetails) -> None:
        try:
            descriptor = await controller.start(caller)
            if descriptor is not None:
                await send({"type": "call_started", "data": descriptor})
        except RuntimeError as e:
            await send({"type": "error", "message": str(e)})

    try:
        while True:
            raw = await ws.receive_text()

            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                continue
            if not isinstance(message, dict):
                continue

            msg_type = message.get("type", "")

            # ── Start a voice call ──
            if msg_type == "start_call":
                if not voice_cfg.has_all_keys:
                    await send({
                        "type": "error",
                        "message": "Voice assistant unavailable. Set VAPI_PUBLIC_KEY and VAPI_ASSISTANT_ID.",
                    })
                    continue
                if not controller.can_start or (start_task and not start_task.done()):
                    await send({"type": "error", "message": "Call already in progress"})
                    continue
                caller = CallerDetails.from_dict(message.get("caller") or {})
                start_task = asyncio.create_task(_start_call(caller))

            # ── Stop the call and wait for the analysis ──
            elif msg_type == "stop_call":
                await controller.stop()

            # ── Relayed voice SDK event ──
            elif msg_type == "voice_event":
                event = message.get("event", "")
                voice = controller.voice
                if event not in VOICE_EVENTS or not isinstance(voice, EventedVoiceClient):
                    await send({"type": "error", "message": f"Unknown voice event: {event}"})
                    continue
                args = (message["value"],) if "value" in message else ()
                await voice.emit(event, *args)

            elif msg_type == "cancel_polling":
                controller.cancel_polling()

            elif msg_type == "reset":
                try:
                    await controller.reset()
                except RuntimeError as e:
                    await send({"type": "error", "message": str(e)})

            # ── Keepalive ──
            elif msg_type == "ping":
                await send({"type": "pong"})

    except WebSocketDisconnect:
        logger.info(f"[{session_id}] WebSocket disconnected")
    except Exception as e:
        logger.error(f"[{session_id}] WebSocket error: {e}", exc_info=True)
    finally:
        if start_task and not start_task.done():
            start_task.cancel()
            try:
                await start_task
            except BaseException:
                pass
        await registry.remove(session_id)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main() -> None:
    import uvicorn
    uvicorn.run(
        "callscreen.server:app",
        host=server_cfg.host,
        port=server_cfg.port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
