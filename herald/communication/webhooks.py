"""Per-channel webhook cache.

Handles are cached with no expiry. They are only dropped when the platform
reports the webhook as unknown, or when the channel is deleted.
"""

import asyncio
import logging
from typing import Optional

from ..platform.base import Channel, EndpointHandle, PlatformClient

logger = logging.getLogger("herald.webhooks")

DEFAULT_WEBHOOK_NAME = "Herald"


class WebhookRegistry:
    """Obtain-or-create a webhook per channel and remember it."""

    def __init__(self, client: PlatformClient, webhook_name: str = DEFAULT_WEBHOOK_NAME):
        self._client = client
        self.webhook_name = webhook_name
        self._cache: dict[str, EndpointHandle] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def get_cached(self, channel_id: str) -> Optional[EndpointHandle]:
        return self._cache.get(channel_id)

    async def get_or_create(self, channel: Channel) -> EndpointHandle:
        """Return the channel's webhook, reusing or creating one on a cache miss.

        Thread channels share the webhook of their parent channel.
        """
        key = channel.endpoint_key
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            # Another delivery may have filled the cache while we waited
            cached = self._cache.get(key)
            if cached is not None:
                return cached

            endpoints = await self._client.list_endpoints(channel)
            logger.debug(f"Found {len(endpoints)} webhooks in channel {channel.name or key}")

            handle = next((e for e in endpoints if e.name == self.webhook_name), None)
            if handle is None:
                logger.info(f"Creating webhook '{self.webhook_name}' in channel {channel.name or key}")
                handle = await self._client.create_endpoint(channel, self.webhook_name)
            else:
                logger.debug(f"Reusing webhook {handle.id} in channel {key}")

            self._cache[key] = handle
            return handle

    def invalidate(self, channel_id: str) -> bool:
        """Drop the cached handle. Returns True if one was cached."""
        removed = self._cache.pop(channel_id, None)
        if removed is not None:
            logger.info(f"Removed webhook {removed.id} from cache for channel {channel_id}")
        return removed is not None

    def on_channel_deleted(self, channel_id: str):
        self.invalidate(channel_id)
        self._locks.pop(channel_id, None)

    def reset(self):
        self._cache.clear()
        self._locks.clear()
