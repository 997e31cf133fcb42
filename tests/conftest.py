"""Pytest configuration and shared fixtures."""

import asyncio

import pytest

from herald.avatars import AvatarManager, MemoryAvatarIndex
from herald.communication.dedup import DeduplicationGuard, PendingSendRegistry
from herald.communication.delivery import DeliveryOrchestrator
from herald.platform.base import (
    Channel,
    EndpointHandle,
    FetchedResource,
    PlatformClient,
    SentMessage,
)
from herald.tracking import ErrorTracker

FALLBACK_URL = "https://cdn.example.com/default.png"
PUBLIC_BASE = "https://herald.example.com/avatars"
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance_ms(self, ms: float):
        self.now += ms / 1000


class FakePlatformClient(PlatformClient):
    """In-memory platform: records every call, fails on demand."""

    def __init__(self):
        self.endpoints: dict[str, list[EndpointHandle]] = {}
        self.resources: dict[str, object] = {}
        self.sent: list[tuple[EndpointHandle, dict]] = []
        self.list_calls = 0
        self.create_calls = 0
        self.fetch_calls: list[str] = []
        self.send_failures: dict[int, Exception] = {}
        self.send_attempts = 0
        self.events: list[str] = []
        self._next_id = 100

    async def list_endpoints(self, channel: Channel) -> list[EndpointHandle]:
        self.list_calls += 1
        await asyncio.sleep(0)
        return list(self.endpoints.get(channel.endpoint_key, []))

    async def create_endpoint(self, channel: Channel, name: str) -> EndpointHandle:
        self.create_calls += 1
        await asyncio.sleep(0)
        handle = EndpointHandle(
            id=f"wh-{channel.endpoint_key}-{self.create_calls}",
            channel_id=channel.endpoint_key,
            url=f"https://platform.example.com/webhooks/{channel.endpoint_key}/{self.create_calls}",
            name=name,
        )
        self.endpoints.setdefault(channel.endpoint_key, []).append(handle)
        return handle

    async def send(self, endpoint: EndpointHandle, payload: dict) -> SentMessage:
        attempt = self.send_attempts
        self.send_attempts += 1
        self.events.append(f"start:{payload.get('username')}")
        await asyncio.sleep(0)
        if attempt in self.send_failures:
            self.events.append(f"fail:{payload.get('username')}")
            raise self.send_failures[attempt]
        self.sent.append((endpoint, payload))
        self.events.append(f"end:{payload.get('username')}")
        self._next_id += 1
        return SentMessage(id=str(self._next_id), channel_id=endpoint.channel_id, webhook_id=endpoint.id)

    async def fetch_resource(self, url: str, timeout: float = 5.0, max_bytes: int = 10 * 1024 * 1024) -> FetchedResource:
        self.fetch_calls.append(url)
        await asyncio.sleep(0)
        resource = self.resources.get(url)
        if isinstance(resource, Exception):
            raise resource
        if resource is None:
            return FetchedResource(content=PNG_BYTES, content_type="image/png")
        return resource

    @property
    def payloads(self) -> list[dict]:
        return [payload for _, payload in self.sent]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def platform():
    return FakePlatformClient()


@pytest.fixture
def tracker(clock):
    return ErrorTracker(window_seconds=30 * 60, escalation_threshold=6, clock=clock)


@pytest.fixture
def avatar_index():
    return MemoryAvatarIndex()


@pytest.fixture
def avatars(platform, avatar_index, tmp_path):
    return AvatarManager(
        client=platform,
        index=avatar_index,
        avatar_dir=str(tmp_path / "avatars"),
        public_base_url=PUBLIC_BASE,
        fallback_url=FALLBACK_URL,
        max_bytes=1024,
        timeout=1.0,
    )


@pytest.fixture
def sleeps():
    """Records pacing delays instead of sleeping."""
    return []


@pytest.fixture
def orchestrator(platform, avatars, tracker, clock, sleeps):
    async def fake_sleep(seconds: float):
        sleeps.append(seconds)
        await asyncio.sleep(0)

    orch = DeliveryOrchestrator(
        client=platform,
        avatars=avatars,
        tracker=tracker,
        dedup=DeduplicationGuard(window_ms=5000, clock=clock),
        pending=PendingSendRegistry(clock=clock),
        chunk_delay=0.75,
        sleep=fake_sleep,
    )
    yield orch
    orch.reset()
