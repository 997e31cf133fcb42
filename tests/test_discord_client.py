"""Tests for DiscordPlatformClient against a mocked HTTP transport."""

import json

import httpx
import pytest

from herald.platform.base import (
    Channel,
    EndpointHandle,
    EndpointNotFoundError,
    MalformedUrlError,
    PayloadRejectedError,
    PlatformError,
    PlatformRateLimitError,
    ResourceStatusError,
    ResourceTooLargeError,
)
from herald.platform.discord import DiscordPlatformClient

API = "https://discord.test/api/v10"
ENDPOINT = EndpointHandle(id="900", channel_id="c1", url=f"{API}/webhooks/900/tok", name="Herald")


def _client(handler) -> DiscordPlatformClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return DiscordPlatformClient(bot_token="bot-token", api_base=API, http_client=http)


class TestEndpoints:
    @pytest.mark.asyncio
    async def test_list_skips_foreign_webhooks(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/v10/channels/c1/webhooks"
            assert request.headers["Authorization"] == "Bot bot-token"
            return httpx.Response(200, json=[
                {"id": "1", "channel_id": "c1", "name": "Herald", "token": "abc"},
                {"id": "2", "channel_id": "c1", "name": "Other"},
            ])

        client = _client(handler)
        handles = await client.list_endpoints(Channel("c1"))
        await client.close()

        assert [h.id for h in handles] == ["1"]
        assert handles[0].url == f"{API}/webhooks/1/abc"

    @pytest.mark.asyncio
    async def test_thread_lists_parent(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.path)
            return httpx.Response(200, json=[])

        client = _client(handler)
        await client.list_endpoints(Channel("t1", is_thread=True, parent_id="c1"))
        assert seen == ["/api/v10/channels/c1/webhooks"]

    @pytest.mark.asyncio
    async def test_create(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "POST"
            assert json.loads(request.content) == {"name": "Herald"}
            return httpx.Response(200, json={"id": "5", "channel_id": "c1", "name": "Herald", "token": "t"})

        handle = await _client(handler).create_endpoint(Channel("c1"), "Herald")
        assert handle.id == "5"
        assert handle.name == "Herald"


class TestSend:
    @pytest.mark.asyncio
    async def test_send_waits_for_message(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["wait"] == "true"
            assert "thread_id" not in request.url.params
            assert json.loads(request.content)["content"] == "Hello there."
            return httpx.Response(200, json={"id": "777", "channel_id": "c1", "webhook_id": "900"})

        message = await _client(handler).send(ENDPOINT, {"content": "Hello there.", "username": "Aria"})
        assert message.id == "777"
        assert message.webhook_id == "900"

    @pytest.mark.asyncio
    async def test_thread_id_goes_to_query(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["thread_id"] == "t1"
            assert "thread_id" not in json.loads(request.content)
            return httpx.Response(200, json={"id": "1"})

        await _client(handler).send(ENDPOINT, {"content": "x", "thread_id": "t1"})

    @pytest.mark.asyncio
    async def test_files_sent_as_multipart(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["content-type"].startswith("multipart/form-data")
            body = request.content
            assert b'name="payload_json"' in body
            assert b'filename="notes.txt"' in body
            return httpx.Response(200, json={"id": "1"})

        await _client(handler).send(ENDPOINT, {"content": "x", "files": [("notes.txt", b"hi")]})

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,body,error_type", [
        (429, {"message": "You are being rate limited.", "retry_after": 1.5}, PlatformRateLimitError),
        (404, {"message": "Unknown Webhook", "code": 10015}, EndpointNotFoundError),
        (400, {"message": "Invalid Form Body", "code": 50035}, PayloadRejectedError),
        (502, {"message": "Bad Gateway"}, PlatformError),
    ])
    async def test_status_mapping(self, status, body, error_type):
        client = _client(lambda request: httpx.Response(status, json=body))
        with pytest.raises(error_type) as exc_info:
            await client.send(ENDPOINT, {"content": "x"})
        assert exc_info.value.status_code == status

    @pytest.mark.asyncio
    async def test_retry_after_parsed(self):
        client = _client(lambda request: httpx.Response(429, json={"message": "slow", "retry_after": 2.5}))
        with pytest.raises(PlatformRateLimitError) as exc_info:
            await client.send(ENDPOINT, {"content": "x"})
        assert exc_info.value.retry_after == 2.5

    @pytest.mark.asyncio
    async def test_non_json_error_body(self):
        client = _client(lambda request: httpx.Response(500, text="<html>oops</html>"))
        with pytest.raises(PlatformError, match="oops"):
            await client.send(ENDPOINT, {"content": "x"})


class TestTransportFailures:
    @pytest.mark.asyncio
    async def test_send_network_error_is_platform_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(PlatformError) as exc_info:
            await _client(handler).send(ENDPOINT, {"content": "x"})
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_list_network_error_is_platform_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("read timed out", request=request)

        with pytest.raises(PlatformError):
            await _client(handler).list_endpoints(Channel("c1"))


class TestFetchResource:
    @pytest.mark.asyncio
    async def test_fetch_image(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"PNGDATA", headers={"content-type": "image/png; charset=binary"})

        resource = await _client(handler).fetch_resource("https://images.example.org/a.png")
        assert resource.content == b"PNGDATA"
        assert resource.content_type == "image/png"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("url", ["", "not a url", "ftp://host/a.png"])
    async def test_malformed_url(self, url):
        client = _client(lambda request: httpx.Response(200))
        with pytest.raises(MalformedUrlError):
            await client.fetch_resource(url)

    @pytest.mark.asyncio
    async def test_too_large(self):
        client = _client(lambda request: httpx.Response(200, content=b"x" * 2048))
        with pytest.raises(ResourceTooLargeError):
            await client.fetch_resource("https://images.example.org/a.png", max_bytes=1024)

    @pytest.mark.asyncio
    async def test_error_status(self):
        client = _client(lambda request: httpx.Response(404))
        with pytest.raises(ResourceStatusError) as exc_info:
            await client.fetch_resource("https://images.example.org/a.png")
        assert exc_info.value.status_code == 404
