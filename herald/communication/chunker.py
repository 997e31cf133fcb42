"""Message splitting for platform length limits.

Splits at the coarsest natural boundary that works:
paragraphs → lines → sentences → words → hard cut.

A finer level is only used for a unit that is itself longer than the
limit; units that fit are packed greedily with the separator of their
level, so joining the chunks back with that separator restores the text
(minus surrounding whitespace).
"""

import re
from typing import Optional

from ..models import MessageChunk

DEFAULT_CHAR_LIMIT = 2000

# (split pattern, joiner) from coarsest to finest
_LEVELS = (
    (re.compile(r"\n\s*\n"), "\n\n"),      # paragraphs
    (re.compile(r"\n"), "\n"),             # lines
    (re.compile(r"(?<=[.!?])\s+"), " "),   # sentences
)


def _hard_split(text: str, limit: int) -> list[str]:
    """Slice text at the last space within the limit, or hard-cut.

    A space in the first half of the window is ignored.
    """
    chunks = []
    remaining = text.strip()

    while remaining:
        if len(remaining) <= limit:
            chunks.append(remaining)
            break

        split_at = remaining.rfind(" ", 0, limit + 1)
        if split_at <= limit // 2:
            split_at = limit

        piece = remaining[:split_at].rstrip()
        if piece:
            chunks.append(piece)
        remaining = remaining[split_at:].strip()

    return chunks


def _split_level(text: str, limit: int, level: int) -> list[str]:
    if level >= len(_LEVELS):
        return _hard_split(text, limit)

    pattern, joiner = _LEVELS[level]
    chunks: list[str] = []
    current = ""

    for unit in pattern.split(text):
        if not unit.strip():
            continue

        if len(unit) > limit:
            if current:
                chunks.append(current)
                current = ""
            chunks.extend(_split_level(unit, limit, level + 1))
            continue

        candidate = f"{current}{joiner}{unit}" if current else unit
        if len(candidate) > limit:
            chunks.append(current)
            current = unit
        else:
            current = candidate

    if current:
        chunks.append(current)
    return chunks


def split_message(text: str, limit: int = DEFAULT_CHAR_LIMIT) -> list[str]:
    """Split a long message into chunks respecting the platform length limit.

    Args:
        text: Message text to split
        limit: Maximum characters per chunk (default: 2000 for Discord)

    Returns:
        List of chunks, never empty. ``split_message("")`` is ``[""]``.
    """
    if limit < 1:
        raise ValueError(f"limit must be positive, got {limit}")

    text = (text or "").strip()
    if len(text) <= limit:
        return [text]

    return _split_level(text, limit, 0) or [""]


def prepare_and_split(
    text: str,
    model_indicator: Optional[str] = None,
    limit: int = DEFAULT_CHAR_LIMIT,
) -> list[str]:
    """Append the model indicator, then split.

    The indicator is counted toward the limit. If the combined text is too
    long it is split like any other text, so the indicator simply ends up
    somewhere in the last chunk(s).
    """
    if model_indicator:
        text = f"{text or ''}{model_indicator}"
    return split_message(text, limit)


def build_chunks(parts: list[str], is_error: bool = False) -> list[MessageChunk]:
    """Attach position flags (and the error tag) to split parts."""
    last = len(parts) - 1
    return [
        MessageChunk(
            index=i,
            content=part,
            is_first=i == 0,
            is_last=i == last,
            is_error=is_error,
        )
        for i, part in enumerate(parts)
    ]
