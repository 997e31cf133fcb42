"""Discord webhook client over the REST API."""

import asyncio
import json
import logging
from typing import Optional
from urllib.parse import urlparse

import httpx

from .base import (
    Channel,
    EndpointHandle,
    EndpointNotFoundError,
    FetchedResource,
    MalformedUrlError,
    PayloadRejectedError,
    PlatformClient,
    PlatformError,
    PlatformRateLimitError,
    ResourceFetchError,
    ResourceStatusError,
    ResourceTimeoutError,
    ResourceTooLargeError,
    SentMessage,
)

logger = logging.getLogger("herald.platform.discord")

# Discord JSON error codes
UNKNOWN_WEBHOOK = 10015
INVALID_FORM_BODY = 50035


def _error_details(resp: httpx.Response) -> tuple[Optional[int], str]:
    """Extract (code, message) from a Discord error body, tolerating non-JSON."""
    try:
        data = resp.json()
    except (json.JSONDecodeError, ValueError):
        return None, resp.text[:200]
    if not isinstance(data, dict):
        return None, str(data)[:200]
    return data.get("code"), data.get("message", "")


def raise_for_platform_status(resp: httpx.Response):
    """Map an error response onto the platform exception hierarchy."""
    if resp.status_code < 400:
        return

    code, message = _error_details(resp)
    status = resp.status_code

    if status == 429:
        retry_after = None
        try:
            retry_after = float(resp.json().get("retry_after"))
        except (ValueError, TypeError, AttributeError, json.JSONDecodeError):
            header = resp.headers.get("retry-after")
            if header:
                try:
                    retry_after = float(header)
                except ValueError:
                    retry_after = None
        raise PlatformRateLimitError(
            f"Rate limited (429): {message}",
            retry_after=retry_after,
            status_code=status,
            code=code,
        )
    if status == 404 or code == UNKNOWN_WEBHOOK:
        raise EndpointNotFoundError(f"Unknown webhook ({status}): {message}", status_code=status, code=code)
    if status == 400 or code == INVALID_FORM_BODY:
        raise PayloadRejectedError(f"Payload rejected ({status}): {message}", status_code=status, code=code)
    raise PlatformError(f"Discord API error {status}: {message}", status_code=status, code=code)


class DiscordPlatformClient(PlatformClient):
    """Discord implementation of the platform client.

    Webhook management uses the bot token; webhook execution uses the
    per-webhook token embedded in the endpoint URL.
    """

    def __init__(
        self,
        bot_token: str,
        api_base: str = "https://discord.com/api/v10",
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.bot_token = bot_token
        self.api_base = api_base.rstrip("/")
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(15.0, connect=10.0),
            headers={"User-Agent": "HeraldBot (https://github.com/herald, 0.1)"},
        )

    def _get_headers(self) -> dict:
        return {"Authorization": f"Bot {self.bot_token}"}

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Issue a request; network failures become PlatformError."""
        try:
            resp = await self._client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            raise PlatformError(f"Discord request failed: {type(e).__name__}: {e}") from e
        raise_for_platform_status(resp)
        return resp

    def _to_handle(self, data: dict) -> Optional[EndpointHandle]:
        token = data.get("token")
        if not token:
            # Webhooks owned by other applications carry no token
            return None
        return EndpointHandle(
            id=str(data["id"]),
            channel_id=str(data.get("channel_id", "")),
            url=f"{self.api_base}/webhooks/{data['id']}/{token}",
            name=data.get("name") or "",
        )

    async def list_endpoints(self, channel: Channel) -> list[EndpointHandle]:
        resp = await self._request(
            "GET",
            f"{self.api_base}/channels/{channel.endpoint_key}/webhooks",
            headers=self._get_headers(),
        )
        handles = [self._to_handle(item) for item in resp.json()]
        return [h for h in handles if h is not None]

    async def create_endpoint(self, channel: Channel, name: str) -> EndpointHandle:
        resp = await self._request(
            "POST",
            f"{self.api_base}/channels/{channel.endpoint_key}/webhooks",
            json={"name": name},
            headers=self._get_headers(),
        )
        handle = self._to_handle(resp.json())
        if handle is None:
            raise PlatformError(f"Created webhook in {channel.endpoint_key} has no token")
        return handle

    async def send(self, endpoint: EndpointHandle, payload: dict) -> SentMessage:
        body = dict(payload)
        params = {"wait": "true"}
        thread_id = body.pop("thread_id", None)
        if thread_id:
            params["thread_id"] = str(thread_id)
        files = body.pop("files", None)

        if files:
            multipart = {
                f"files[{i}]": (filename, data)
                for i, (filename, data) in enumerate(files)
            }
            resp = await self._request(
                "POST",
                endpoint.url,
                params=params,
                data={"payload_json": json.dumps(body)},
                files=multipart,
            )
        else:
            resp = await self._request("POST", endpoint.url, params=params, json=body)

        data = resp.json()
        return SentMessage(
            id=str(data["id"]),
            channel_id=str(data.get("channel_id", "")) or None,
            webhook_id=str(data.get("webhook_id", "")) or endpoint.id,
        )

    async def fetch_resource(
        self,
        url: str,
        timeout: float = 5.0,
        max_bytes: int = 10 * 1024 * 1024,
    ) -> FetchedResource:
        parsed = urlparse(url or "")
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise MalformedUrlError(f"Not a fetchable URL: {url!r}")

        try:
            return await asyncio.wait_for(self._download(url, timeout, max_bytes), timeout=timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise ResourceTimeoutError(f"Fetching {url} timed out after {timeout}s") from e
        except httpx.HTTPError as e:
            raise ResourceFetchError(f"Fetching {url} failed: {e}") from e

    async def _download(self, url: str, timeout: float, max_bytes: int) -> FetchedResource:
        async with self._client.stream("GET", url, timeout=timeout, follow_redirects=True) as resp:
            if resp.status_code >= 400:
                raise ResourceStatusError(f"HTTP {resp.status_code} fetching {url}", resp.status_code)

            declared = resp.headers.get("content-length")
            if declared and declared.isdigit() and int(declared) > max_bytes:
                raise ResourceTooLargeError(f"{url} declares {declared} bytes (max {max_bytes})")

            received = bytearray()
            async for part in resp.aiter_bytes():
                received.extend(part)
                if len(received) > max_bytes:
                    raise ResourceTooLargeError(f"{url} exceeded {max_bytes} bytes")

            content_type = resp.headers.get("content-type", "").split(";")[0].strip().lower()
            return FetchedResource(content=bytes(received), content_type=content_type)

    async def close(self):
        await self._client.aclose()
