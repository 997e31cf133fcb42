"""Communication sub-core — channel-agnostic outbound message handling.

- Chunker: splitting text into platform-sized chunks
- Dedup: content signatures and per-persona pending slots
- Markers: error tagging and the must-not-display sentinel
- Errors: exception → ErrorCategory classification

The webhook registry and the delivery orchestrator live in
``herald.communication.webhooks`` and ``herald.communication.delivery``.
"""

from .chunker import split_message, prepare_and_split, build_chunks
from .dedup import DeduplicationGuard, PendingSendRegistry, PendingToken
from .errors import ErrorCategory, classify_error
from .markers import (
    BOT_ERROR_MESSAGE_PREFIX,
    HARD_BLOCKED_RESPONSE,
    is_blocked,
    is_error_content,
    is_error_response,
    strip_error_marker,
    with_error_reference,
)

__all__ = [
    # Chunker
    "split_message",
    "prepare_and_split",
    "build_chunks",
    # Dedup
    "DeduplicationGuard",
    "PendingSendRegistry",
    "PendingToken",
    # Errors
    "ErrorCategory",
    "classify_error",
    # Markers
    "BOT_ERROR_MESSAGE_PREFIX",
    "HARD_BLOCKED_RESPONSE",
    "is_blocked",
    "is_error_content",
    "is_error_response",
    "strip_error_marker",
    "with_error_reference",
]
