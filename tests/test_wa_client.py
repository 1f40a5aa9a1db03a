import asyncio

import httpx
import pytest

from cicero_wa.services.wa_client import ChatflowWaClient, WaSendError

CHAT_ID = "628111@s.whatsapp.net"


def _client(handler, **overrides):
    values = {"api_url": "https://chatflow.test/send-text", "token": "tok", "instance_id": "inst"}
    values.update(overrides)
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ChatflowWaClient(http_client=http_client, **values)


class TestChatflowWaClient:
    def test_send_passes_query_params(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"success": True})

        client = _client(handler)
        asyncio.run(client.send_message(CHAT_ID, "halo pak", idempotency_key="out-1"))

        params = requests[0].url.params
        assert params["jid"] == CHAT_ID
        assert params["msg"] == "halo pak"
        assert params["token"] == "tok"
        assert params["instance_id"] == "inst"
        assert params["msg_id"] == "out-1"

    def test_non_200_raises(self):
        client = _client(lambda request: httpx.Response(502, text="bad gateway"))

        with pytest.raises(WaSendError) as exc_info:
            asyncio.run(client.send_message(CHAT_ID, "halo"))

        assert exc_info.value.status_code == 502

    def test_missing_credentials_raise_before_request(self):
        calls = []
        client = _client(lambda request: calls.append(request), token="")

        with pytest.raises(WaSendError):
            asyncio.run(client.send_message(CHAT_ID, "halo"))

        assert calls == []
