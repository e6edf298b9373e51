"""Tests for services/voice_client.py — Vapi web-call adapter and event registry."""

import json

import httpx
import pytest

from callscreen.core.interfaces import CALL_END, CALL_START, VOLUME_LEVEL, VoiceSessionClient
from callscreen.services.voice_client import EventedVoiceClient, VapiWebClient
from tests.conftest import FakeVoiceClient, run

CALL = {
    "id": "vapi-call-1",
    "webCallUrl": "https://vapi.daily.co/room",
    "monitor": {"controlUrl": "https://control.vapi.test/call/vapi-call-1/control"},
}


class _Recorder:
    def __init__(self, call=CALL):
        self.requests = []
        self.call = call

    def __call__(self, request):
        self.requests.append(request)
        if request.url.path == "/call/web":
            return httpx.Response(201, json=self.call)
        return httpx.Response(200, json={})


def _client(recorder):
    http = httpx.AsyncClient(base_url="https://api.vapi.test", transport=httpx.MockTransport(recorder))
    return VapiWebClient(assistant_id="assistant-7", client=http), http


class TestVapiWebClient:
    def test_satisfies_protocol(self):
        client, _ = _client(_Recorder())
        assert isinstance(client, VoiceSessionClient)
        assert isinstance(FakeVoiceClient(), VoiceSessionClient)

    def test_start_creates_web_call_with_variables(self):
        recorder = _Recorder()

        async def scenario():
            client, http = _client(recorder)
            call = await client.start(firstName="Ada", lastName="Lovelace")
            await http.aclose()
            return client, call

        client, call = run(scenario())
        assert call["id"] == "vapi-call-1"
        assert client.current_call == CALL
        request = recorder.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/call/web"
        payload = json.loads(request.content)
        assert payload["assistantId"] == "assistant-7"
        assert payload["assistantOverrides"]["variableValues"] == {"firstName": "Ada", "lastName": "Lovelace"}

    def test_stop_posts_end_call_to_control_url(self):
        recorder = _Recorder()

        async def scenario():
            client, http = _client(recorder)
            await client.start()
            await client.stop()
            await client.stop()
            await http.aclose()
            return client

        client = run(scenario())
        assert client.current_call is None
        assert len(recorder.requests) == 2
        stop_request = recorder.requests[1]
        assert str(stop_request.url) == CALL["monitor"]["controlUrl"]
        assert json.loads(stop_request.content) == {"type": "end-call"}

    def test_stop_without_control_url_is_quiet(self):
        recorder = _Recorder(call={"id": "no-monitor"})

        async def scenario():
            client, http = _client(recorder)
            await client.start()
            await client.stop()
            await http.aclose()

        run(scenario())
        assert len(recorder.requests) == 1

    def test_second_start_rejected(self):
        async def scenario():
            client, http = _client(_Recorder())
            await client.start()
            try:
                with pytest.raises(RuntimeError):
                    await client.start()
            finally:
                await http.aclose()

        run(scenario())

    def test_http_error_propagates(self):
        def handler(request):
            return httpx.Response(401, json={"message": "Invalid key"})

        async def scenario():
            http = httpx.AsyncClient(base_url="https://api.vapi.test", transport=httpx.MockTransport(handler))
            client = VapiWebClient(assistant_id="a", client=http)
            try:
                with pytest.raises(httpx.HTTPStatusError):
                    await client.start()
                assert client.current_call is None
            finally:
                await http.aclose()

        run(scenario())

    def test_remote_call_end_forgets_call(self):
        recorder = _Recorder()

        async def scenario():
            client, http = _client(recorder)
            await client.start()
            await client.emit(CALL_END)
            await client.stop()
            await http.aclose()
            return client

        client = run(scenario())
        assert client.current_call is None
        assert len(recorder.requests) == 1


class TestEventedVoiceClient:
    def test_sync_and_async_handlers(self):
        seen = []

        async def async_handler(level):
            seen.append(("async", level))

        client = EventedVoiceClient()
        client.on(VOLUME_LEVEL, lambda level: seen.append(("sync", level))).on(VOLUME_LEVEL, async_handler)
        run(client.emit(VOLUME_LEVEL, 0.5))
        assert seen == [("sync", 0.5), ("async", 0.5)]

    def test_unknown_event_rejected(self):
        client = EventedVoiceClient()
        with pytest.raises(ValueError):
            client.on("message", lambda: None)
        with pytest.raises(ValueError):
            run(client.emit("message"))

    def test_failing_handler_does_not_stop_others(self):
        seen = []

        def broken():
            raise RuntimeError("handler bug")

        client = EventedVoiceClient()
        client.on(CALL_START, broken).on(CALL_START, lambda: seen.append("ok"))
        run(client.emit(CALL_START))
        assert seen == ["ok"]
