"""Platform-agnostic messaging interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


# ════════════════════════════════════════════════════════
# Platform exception hierarchy: classify failures by type,
# not by string matching.  delivery.py and avatars.py catch these.
# ════════════════════════════════════════════════════════

class PlatformError(Exception):
    """Base class for chat-platform transport errors."""

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code

class PlatformRateLimitError(PlatformError):
    """429 — the platform asked us to slow down."""

    def __init__(self, message: str, retry_after: Optional[float] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after

class EndpointNotFoundError(PlatformError):
    """404 / Unknown Webhook — the cached endpoint no longer exists."""
    pass

class PayloadRejectedError(PlatformError):
    """400 / Invalid Form Body — the platform refused the message payload."""
    pass


class ResourceFetchError(Exception):
    """Base class for remote resource download failures."""
    pass

class MalformedUrlError(ResourceFetchError):
    pass

class ResourceTooLargeError(ResourceFetchError):
    pass

class ResourceTimeoutError(ResourceFetchError):
    pass

class ResourceStatusError(ResourceFetchError):
    """Non-success HTTP status while fetching a resource."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class Channel:
    id: str
    name: Optional[str] = None
    is_thread: bool = False
    parent_id: Optional[str] = None  # set for thread channels

    @property
    def endpoint_key(self) -> str:
        """Channel id that owns webhooks (threads share their parent's)."""
        if self.is_thread and self.parent_id:
            return self.parent_id
        return self.id


@dataclass
class EndpointHandle:
    id: str
    channel_id: str
    url: str
    name: str


@dataclass
class SentMessage:
    id: str
    channel_id: Optional[str] = None
    webhook_id: Optional[str] = None


@dataclass
class FetchedResource:
    content: bytes
    content_type: str


class PlatformClient(ABC):
    """Abstract base class for chat platform clients."""

    @abstractmethod
    async def list_endpoints(self, channel: Channel) -> list[EndpointHandle]:
        """List webhooks that already exist for the channel."""
        ...

    @abstractmethod
    async def create_endpoint(self, channel: Channel, name: str) -> EndpointHandle:
        """Create a new webhook in the channel."""
        ...

    @abstractmethod
    async def send(self, endpoint: EndpointHandle, payload: dict) -> SentMessage:
        """Execute a webhook with the given message payload."""
        ...

    @abstractmethod
    async def fetch_resource(
        self,
        url: str,
        timeout: float = 5.0,
        max_bytes: int = 10 * 1024 * 1024,
    ) -> FetchedResource:
        """Download a binary resource, bounded by size and time."""
        ...

    async def close(self):
        """Release network resources. Default: nothing to release."""
        return None
