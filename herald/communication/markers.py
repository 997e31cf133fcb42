"""Content markers — error tagging and the must-not-display sentinel.

Upstream layers signal two things inside the text itself:
- ``BOT_ERROR_MESSAGE_PREFIX``: the text is a system failure notice, not
  something the persona said.
- ``HARD_BLOCKED_RESPONSE``: the text must never reach the channel.
"""

import re

BOT_ERROR_MESSAGE_PREFIX = "BOT_ERROR_MESSAGE:"
HARD_BLOCKED_RESPONSE = "HARD_BLOCKED_RESPONSE_DO_NOT_DISPLAY"

# These are almost never part of a normal reply
_HIGH_CONFIDENCE_PATTERNS = (
    "NoneType",
    "AttributeError",
    "TypeError",
    "ValueError",
    "KeyError",
    "IndexError",
    "ModuleNotFoundError",
    "ImportError",
)

_ERROR_LINE_RE = re.compile(r"^Error:", re.MULTILINE)
_SPOILER_REF_RE = re.compile(r"\|\|\*\(([^)]+)\)\*\|\|")
_DEFAULT_SPOILER = "||*(an error has occurred)*||"


def is_blocked(content: str) -> bool:
    """True when the text carries the must-not-display sentinel."""
    return bool(content) and HARD_BLOCKED_RESPONSE in content


def is_error_response(content: str) -> bool:
    """Heuristically detect error output leaking into a generated reply.

    Generic words like "Error" or "Exception" only count with supporting
    context, since personas use them in ordinary conversation.
    """
    if not content:
        return True

    if any(pattern in content for pattern in _HIGH_CONFIDENCE_PATTERNS):
        return True

    if _ERROR_LINE_RE.search(content):
        return True

    if "Traceback" in content and any(w in content for w in ("line", "File", "stack")):
        return True

    if "Exception" in content and any(w in content for w in ("raised", "caught", "thrown", "threw")):
        return True

    return False


def is_error_content(content: str) -> bool:
    """True for text that should be tagged as a system error message."""
    if not content:
        return False
    return content.startswith(BOT_ERROR_MESSAGE_PREFIX) or is_error_response(content)


def strip_error_marker(content: str) -> str:
    """Remove the leading error prefix, if any."""
    if content and content.startswith(BOT_ERROR_MESSAGE_PREFIX):
        return content[len(BOT_ERROR_MESSAGE_PREFIX):].strip()
    return content


def with_error_reference(message: str, error_id: str) -> str:
    """Embed a support reference into a persona's error message.

    The reference goes inside the persona's own spoiler tag when there is
    one, otherwise a new spoiler tag is appended.
    """
    if _DEFAULT_SPOILER in message:
        return message.replace(
            _DEFAULT_SPOILER,
            f"||*(an error has occurred; reference: {error_id})*||",
        )
    if _SPOILER_REF_RE.search(message):
        return _SPOILER_REF_RE.sub(
            lambda m: f"||*({m.group(1)}; reference: {error_id})*||",
            message,
            count=1,
        )
    return f"{message} ||*(an error has occurred; reference: {error_id})*||"
