"""Tests for services/call_details.py — GET /call-details client."""

import httpx
import pytest

from callscreen.services.call_details import CallDetailsClient
from tests.conftest import READY_BODY, run


def _fetch(handler, call_id="call-1"):
    async def scenario():
        client = httpx.AsyncClient(base_url="http://details.test", transport=httpx.MockTransport(handler))
        try:
            return await CallDetailsClient(client=client).fetch(call_id)
        finally:
            await client.aclose()
    return run(scenario())


class TestCallDetailsClient:
    def test_requests_call_details_with_call_id(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=READY_BODY)

        body = _fetch(handler, call_id="abc 1")
        assert body == READY_BODY
        assert seen[0].method == "GET"
        assert seen[0].url.path == "/call-details"
        assert seen[0].url.params["call_id"] == "abc 1"

    def test_body_parsed_regardless_of_status(self):
        body = _fetch(lambda request: httpx.Response(404, json={"error": "not found"}))
        assert body == {"error": "not found"}

    def test_non_json_body_raises(self):
        with pytest.raises(ValueError):
            _fetch(lambda request: httpx.Response(502, text="Bad Gateway"))

    def test_transport_error_propagates(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(httpx.ConnectError):
            _fetch(handler)

    def test_injected_client_is_not_closed(self):
        async def scenario():
            client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200, json={})))
            details = CallDetailsClient(client=client)
            await details.aclose()
            closed = client.is_closed
            await client.aclose()
            return closed

        assert run(scenario()) is False
