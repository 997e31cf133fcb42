"""Duplicate-send protection.

Two independent mechanisms, each with its own key:

- ``DeduplicationGuard``: content level. A signature of
  (channel, actor, content prefix) seen again inside the window is
  suppressed.
- ``PendingSendRegistry``: persona level. At most one delivery may be in
  flight per (persona, channel); a second one is rejected, not queued.
"""

import hashlib
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from ..models import PendingSend

logger = logging.getLogger("herald.dedup")

# Only the start of the content goes into the signature
SIGNATURE_CONTENT_CHARS = 50


def content_hash(content: str) -> str:
    return hashlib.sha256((content or "").encode("utf-8")).hexdigest()


class DeduplicationGuard:
    """Time-windowed duplicate detection by delivery signature.

    Default: identical signatures within 5 seconds are suppressed.
    """

    def __init__(
        self,
        window_ms: int = 5000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.window = window_ms / 1000
        self._clock = clock
        self._seen: dict[str, float] = {}

    @staticmethod
    def make_signature(channel_id: str, actor_key: str, content: str, position: str = "") -> str:
        """Build the signature for one chunk of content.

        ``position`` (e.g. ``"2/3"``) keeps chunks of one reply that open
        the same way apart from each other.
        """
        prefix = (content or "")[:SIGNATURE_CONTENT_CHARS]
        payload = f"{channel_id}\n{actor_key}\n{position}\n{prefix}"
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    def _evict_stale(self, now: float):
        stale = [sig for sig, ts in self._seen.items() if now - ts >= self.window]
        for sig in stale:
            del self._seen[sig]

    def should_suppress(self, signature: str) -> bool:
        """Check a signature and record it if it is new.

        Returns:
            True if the same signature was accepted within the window.
        """
        now = self._clock()
        self._evict_stale(now)

        if signature in self._seen:
            logger.info(f"Duplicate content suppressed (signature {signature[:12]})")
            return True

        self._seen[signature] = now
        return False

    def forget(self, signature: str):
        """Drop a recorded signature (the send it guarded did not happen)."""
        self._seen.pop(signature, None)

    def reset(self):
        self._seen.clear()


@dataclass(frozen=True)
class PendingToken:
    """Proof of holding the pending slot for one (persona, channel)."""
    persona_key: str
    channel_id: str
    nonce: int


class PendingSendRegistry:
    """At-most-one in-flight delivery per (persona, channel).

    ``try_begin`` never awaits between the existence check and the insert,
    so on a single event loop the check-and-set is atomic.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._pending: dict[tuple[str, str], tuple[int, PendingSend]] = {}
        self._counter = 0

    def try_begin(
        self,
        persona_key: str,
        channel_id: str,
        content: str = "",
        is_error_message: bool = False,
    ) -> Optional[PendingToken]:
        """Claim the slot, or return None if a delivery is already in flight."""
        key = (persona_key, channel_id)
        if key in self._pending:
            logger.info(f"Delivery already pending for {persona_key} in {channel_id}; rejecting")
            return None

        self._counter += 1
        self._pending[key] = (
            self._counter,
            PendingSend(
                persona_key=persona_key,
                channel_id=channel_id,
                content_hash=content_hash(content),
                started_at=self._clock(),
                is_error_message=is_error_message,
            ),
        )
        return PendingToken(persona_key, channel_id, self._counter)

    def end(self, token: Optional[PendingToken]):
        """Release the slot. Safe to call twice or with None."""
        if token is None:
            return
        key = (token.persona_key, token.channel_id)
        held = self._pending.get(key)
        if held is not None and held[0] == token.nonce:
            del self._pending[key]

    def get(self, persona_key: str, channel_id: str) -> Optional[PendingSend]:
        held = self._pending.get((persona_key, channel_id))
        return held[1] if held else None

    def is_pending(self, persona_key: str, channel_id: str) -> bool:
        return (persona_key, channel_id) in self._pending

    def reset(self):
        self._pending.clear()
