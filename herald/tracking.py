"""Error tracking with frequency-based escalation.

Every tracked failure gets a short correlation id that callers can show to
users. Repeated failures of the same kind are counted in a rolling window;
when a kind reaches the escalation threshold the triggering occurrence is
logged a second time at CRITICAL so it stands out in the logs.
"""

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .communication.errors import ErrorCategory, classify_error
from .platform.base import Channel, EndpointHandle, FetchedResource, PlatformClient, SentMessage

logger = logging.getLogger("herald.tracking")

MAX_METADATA_STRING = 100


@dataclass
class ErrorRecord:
    error_id: str
    category: str
    operation: str
    occurrence_count: int
    first_seen_at: float
    last_seen_at: float


def _fingerprint(error: BaseException) -> str:
    return f"{type(error).__name__}:{str(error)[:100]}"


def _make_error_id(category: str, operation: str) -> str:
    # "platform.send" -> "SEND"
    short_op = operation.rsplit(".", 1)[-1][:6]
    return f"{category[:3].upper()}-{short_op.upper()}-{uuid.uuid4().hex[:8]}"


def sanitize_metadata(value: Any) -> Any:
    """Make call arguments safe to log: long strings are truncated."""
    if isinstance(value, str):
        if len(value) > MAX_METADATA_STRING:
            return f"{value[:MAX_METADATA_STRING]}... [{len(value)} chars]"
        return value
    if isinstance(value, (bytes, bytearray)):
        return f"<{len(value)} bytes>"
    if isinstance(value, dict):
        return {str(k): sanitize_metadata(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [sanitize_metadata(v) for v in value]
    if value is None or isinstance(value, (int, float, bool)):
        return value
    return sanitize_metadata(repr(value))


class ErrorTracker:
    """Tracks failures per (category, operation, fingerprint).

    Records expire lazily: a record whose last occurrence is older than the
    window is dropped the next time the tracker is touched.
    """

    def __init__(
        self,
        window_seconds: float = 30 * 60,
        escalation_threshold: int = 6,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.window = window_seconds
        self.threshold = escalation_threshold
        self._clock = clock
        self._records: dict[tuple[str, str, str], ErrorRecord] = {}

    def _evict_expired(self, now: float):
        expired = [
            key for key, record in self._records.items()
            if now - record.last_seen_at > self.window
        ]
        for key in expired:
            del self._records[key]

    def track(
        self,
        error: BaseException,
        category: "ErrorCategory | str" = ErrorCategory.UNKNOWN,
        operation: str = "unknown",
        metadata: Optional[dict] = None,
        is_critical: bool = False,
    ) -> str:
        """Record one failure and return its correlation id.

        Args:
            error: The exception that occurred
            category: ErrorCategory (or its string value)
            operation: Name of the operation that failed
            metadata: Extra context, sanitized before logging
            is_critical: Log at ERROR instead of WARNING

        Returns:
            A short id like ``PLA-SEND-1a2b3c4d`` for this occurrence.
        """
        category = category.value if isinstance(category, ErrorCategory) else str(category)
        now = self._clock()
        self._evict_expired(now)

        error_id = _make_error_id(category, operation)
        key = (category, operation, _fingerprint(error))
        record = self._records.get(key)
        if record is None:
            record = ErrorRecord(
                error_id=error_id,
                category=category,
                operation=operation,
                occurrence_count=1,
                first_seen_at=now,
                last_seen_at=now,
            )
            self._records[key] = record
        else:
            record.occurrence_count += 1
            record.last_seen_at = now

        details = f" | {sanitize_metadata(metadata)}" if metadata else ""
        level = logging.ERROR if is_critical else logging.WARNING
        logger.log(
            level,
            f"[{error_id}] {category}/{operation}: {type(error).__name__}: {error} "
            f"(occurrence {record.occurrence_count}){details}",
        )

        if record.occurrence_count == self.threshold:
            logger.critical(
                f"[{error_id}] {category}/{operation} failed {record.occurrence_count} times "
                f"in {int(self.window // 60)} minutes: {type(error).__name__}: {error}"
            )

        return error_id

    async def call(
        self,
        operation: str,
        func: Callable,
        *args,
        category: Optional[ErrorCategory] = None,
        **kwargs,
    ):
        """Await ``func(*args, **kwargs)``; track and re-raise any failure.

        The re-raised exception is the original object, with the
        correlation id attached as ``herald_error_id``.
        """
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            e.herald_error_id = self.track(
                e,
                category=category or classify_error(e),
                operation=operation,
                metadata={"args": list(args), "kwargs": kwargs},
            )
            raise

    def wrap(self, client: PlatformClient, operation_prefix: str = "platform") -> "TrackedPlatformClient":
        """Wrap a platform client so every failed call is tracked."""
        if isinstance(client, TrackedPlatformClient):
            return client
        return TrackedPlatformClient(client, self, operation_prefix)

    def get_stats(self) -> list[ErrorRecord]:
        """Return the currently active records (expired ones dropped)."""
        self._evict_expired(self._clock())
        return list(self._records.values())

    def reset(self):
        self._records.clear()


class TrackedPlatformClient(PlatformClient):
    """PlatformClient decorator: same calls, failures tracked and re-raised."""

    def __init__(self, client: PlatformClient, tracker: ErrorTracker, operation_prefix: str = "platform"):
        self.wrapped = client
        self._tracker = tracker
        self._prefix = operation_prefix

    async def list_endpoints(self, channel: Channel) -> list[EndpointHandle]:
        return await self._tracker.call(f"{self._prefix}.list_endpoints", self.wrapped.list_endpoints, channel)

    async def create_endpoint(self, channel: Channel, name: str) -> EndpointHandle:
        return await self._tracker.call(f"{self._prefix}.create_endpoint", self.wrapped.create_endpoint, channel, name)

    async def send(self, endpoint: EndpointHandle, payload: dict) -> SentMessage:
        return await self._tracker.call(f"{self._prefix}.send", self.wrapped.send, endpoint, payload)

    async def fetch_resource(
        self,
        url: str,
        timeout: float = 5.0,
        max_bytes: int = 10 * 1024 * 1024,
    ) -> FetchedResource:
        return await self._tracker.call(
            f"{self._prefix}.fetch_resource",
            self.wrapped.fetch_resource,
            url,
            timeout=timeout,
            max_bytes=max_bytes,
        )

    async def close(self):
        await self.wrapped.close()
