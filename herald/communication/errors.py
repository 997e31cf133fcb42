"""Channel-agnostic error classification for tracking and escalation."""

import asyncio
from enum import Enum

import httpx

from ..platform.base import (
    EndpointNotFoundError,
    PayloadRejectedError,
    PlatformError,
    PlatformRateLimitError,
    ResourceFetchError,
)


class ErrorCategory(str, Enum):
    PLATFORM_TRANSPORT = "platform_transport"
    RATE_LIMIT = "rate_limit"
    ENDPOINT_NOT_FOUND = "endpoint_not_found"
    PAYLOAD_REJECTED = "payload_rejected"
    RESOURCE_FETCH = "resource_fetch"
    INTERNAL_STATE = "internal_state"
    CONTENT_POLICY = "content_policy"
    API_CONTENT = "api_content"
    UNKNOWN = "unknown"


def classify_error(e: BaseException) -> ErrorCategory:
    """Classify any exception into an ErrorCategory.

    Typed platform exceptions are checked first, then raw httpx errors
    (from code that talks HTTP without going through a platform client).
    """
    # 1-4: Typed platform exceptions
    if isinstance(e, PlatformRateLimitError):
        return ErrorCategory.RATE_LIMIT
    if isinstance(e, EndpointNotFoundError):
        return ErrorCategory.ENDPOINT_NOT_FOUND
    if isinstance(e, PayloadRejectedError):
        return ErrorCategory.PAYLOAD_REJECTED
    if isinstance(e, PlatformError):
        return ErrorCategory.PLATFORM_TRANSPORT

    # 5: Resource downloads (avatars)
    if isinstance(e, ResourceFetchError):
        return ErrorCategory.RESOURCE_FETCH

    # 6: httpx HTTP status errors
    if isinstance(e, httpx.HTTPStatusError):
        code = e.response.status_code
        if code == 429:
            return ErrorCategory.RATE_LIMIT
        if code == 404:
            return ErrorCategory.ENDPOINT_NOT_FOUND
        if code == 400:
            return ErrorCategory.PAYLOAD_REJECTED
        return ErrorCategory.PLATFORM_TRANSPORT

    # 7-8: Network / timeout errors
    if isinstance(e, (httpx.TransportError, asyncio.TimeoutError)):
        return ErrorCategory.PLATFORM_TRANSPORT

    # 9: Bookkeeping bugs
    if isinstance(e, (LookupError, RuntimeError)):
        return ErrorCategory.INTERNAL_STATE

    return ErrorCategory.UNKNOWN
