"""Database query helpers for Herald tables."""

from typing import Optional

from ..models import AvatarCacheEntry
from .connection import get_connection


# ============================================================
# AVATAR CACHE
# ============================================================

def _row_to_entry(row) -> AvatarCacheEntry:
    return AvatarCacheEntry(
        persona_key=row["persona_key"],
        original_url=row["original_url"],
        local_filename=row["local_filename"],
        checksum=row["checksum"],
        downloaded_at=row["downloaded_at"],
    )


class PostgresAvatarIndex:
    """AvatarIndex backed by the ``avatar_cache`` table."""

    async def get(self, persona_key: str) -> Optional[AvatarCacheEntry]:
        async with get_connection() as conn:
            row = await conn.fetchrow("""
                SELECT persona_key, original_url, local_filename, checksum, downloaded_at
                FROM avatar_cache WHERE persona_key = $1
            """, persona_key)
            return _row_to_entry(row) if row else None

    async def put(self, entry: AvatarCacheEntry) -> None:
        """Upsert; the last writer wins."""
        async with get_connection() as conn:
            await conn.execute("""
                INSERT INTO avatar_cache (persona_key, original_url, local_filename, checksum, downloaded_at)
                VALUES ($1, $2, $3, $4, $5)
                ON CONFLICT (persona_key) DO UPDATE SET
                    original_url = $2, local_filename = $3, checksum = $4, downloaded_at = $5
            """, entry.persona_key, entry.original_url, entry.local_filename,
                entry.checksum, entry.downloaded_at)

    async def delete(self, persona_key: str) -> None:
        async with get_connection() as conn:
            await conn.execute("DELETE FROM avatar_cache WHERE persona_key = $1", persona_key)

    async def list_entries(self) -> list[AvatarCacheEntry]:
        async with get_connection() as conn:
            rows = await conn.fetch("""
                SELECT persona_key, original_url, local_filename, checksum, downloaded_at
                FROM avatar_cache ORDER BY persona_key
            """)
            return [_row_to_entry(row) for row in rows]

    async def clear(self) -> int:
        """Delete every row; returns the number removed."""
        async with get_connection() as conn:
            result = await conn.execute("DELETE FROM avatar_cache")
            return int(result.split()[-1])
