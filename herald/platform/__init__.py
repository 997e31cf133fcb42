"""Chat platform clients and the exceptions they raise."""

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

__all__ = [
    "Channel",
    "EndpointHandle",
    "EndpointNotFoundError",
    "FetchedResource",
    "MalformedUrlError",
    "PayloadRejectedError",
    "PlatformClient",
    "PlatformError",
    "PlatformRateLimitError",
    "ResourceFetchError",
    "ResourceStatusError",
    "ResourceTimeoutError",
    "ResourceTooLargeError",
    "SentMessage",
]
