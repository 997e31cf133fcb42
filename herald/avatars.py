"""Persona avatar cache.

Avatars are downloaded once, stored under a deterministic filename in the
avatar directory, and served from our own public URL so the chat platform
never hot-links the persona's original host. Every failure degrades to the
fallback avatar; resolving an avatar never raises.
"""

import asyncio
import hashlib
import logging
import os
import re
from datetime import datetime, timezone
from typing import Optional, Protocol
from urllib.parse import urlparse

from .models import AvatarCacheEntry, Persona, PersonaDirectory
from .platform.base import FetchedResource, PlatformClient, ResourceFetchError

logger = logging.getLogger("herald.avatars")

DEFAULT_EXTENSION = "png"

_CONTENT_TYPE_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/gif": "gif",
    "image/webp": "webp",
}


class AvatarIndex(Protocol):
    """Durable mapping persona key → AvatarCacheEntry."""

    async def get(self, persona_key: str) -> Optional[AvatarCacheEntry]:
        ...

    async def put(self, entry: AvatarCacheEntry) -> None:
        ...

    async def delete(self, persona_key: str) -> None:
        ...


class MemoryAvatarIndex:
    """In-process AvatarIndex (tests, single-run tools)."""

    def __init__(self):
        self._entries: dict[str, AvatarCacheEntry] = {}

    async def get(self, persona_key: str) -> Optional[AvatarCacheEntry]:
        return self._entries.get(persona_key)

    async def put(self, entry: AvatarCacheEntry) -> None:
        self._entries[entry.persona_key] = entry

    async def delete(self, persona_key: str) -> None:
        self._entries.pop(persona_key, None)

    def reset(self):
        self._entries.clear()


def is_valid_avatar_url(url: Optional[str]) -> bool:
    """Only absolute http(s) URLs with a host are fetched."""
    if not url or not isinstance(url, str) or not url.strip():
        return False
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def extension_for(content_type: str) -> str:
    return _CONTENT_TYPE_EXTENSIONS.get((content_type or "").lower(), DEFAULT_EXTENSION)


def avatar_filename(persona_key: str, content_type: str) -> str:
    """Deterministic filename: sanitized persona key + inferred extension."""
    safe_key = re.sub(r"[^a-z0-9_-]+", "_", persona_key.lower()).strip("_") or "persona"
    return f"{safe_key}.{extension_for(content_type)}"


def checksum(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()


class AvatarManager:
    """Fetch, cache, and serve persona avatars with fallback."""

    def __init__(
        self,
        client: PlatformClient,
        index: AvatarIndex,
        avatar_dir: str,
        public_base_url: str,
        fallback_url: str,
        max_bytes: int = 10 * 1024 * 1024,
        timeout: float = 5.0,
        directory: Optional[PersonaDirectory] = None,
    ):
        self._client = client
        self._index = index
        self.avatar_dir = avatar_dir
        self.public_base_url = public_base_url.rstrip("/")
        self.fallback_url = fallback_url
        self.max_bytes = max_bytes
        self.timeout = timeout
        self._directory = directory
        self._locks: dict[str, asyncio.Lock] = {}

    def _path(self, filename: str) -> str:
        return os.path.join(self.avatar_dir, filename)

    def local_url(self, filename: str) -> str:
        return f"{self.public_base_url}/{filename}"

    def _lock(self, persona_key: str) -> asyncio.Lock:
        return self._locks.setdefault(persona_key, asyncio.Lock())

    async def _fetch(self, url: str) -> FetchedResource:
        resource = await self._client.fetch_resource(url, timeout=self.timeout, max_bytes=self.max_bytes)
        if not resource.content:
            raise ResourceFetchError(f"Empty avatar body from {url}")
        if resource.content_type and not resource.content_type.startswith("image/"):
            raise ResourceFetchError(f"Avatar at {url} is {resource.content_type}, not an image")
        return resource

    @staticmethod
    def _write_file(path: str, content: bytes):
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        tmp_path = f"{path}.tmp"
        with open(tmp_path, "wb") as f:
            f.write(content)
        os.replace(tmp_path, path)

    async def _store(
        self,
        persona_key: str,
        url: str,
        resource: FetchedResource,
        previous: Optional[AvatarCacheEntry],
    ) -> str:
        filename = avatar_filename(persona_key, resource.content_type)
        await asyncio.to_thread(self._write_file, self._path(filename), resource.content)

        # Content type changed → old file has a different extension
        if previous and previous.local_filename != filename:
            try:
                await asyncio.to_thread(os.remove, self._path(previous.local_filename))
            except FileNotFoundError:
                pass

        await self._index.put(AvatarCacheEntry(
            persona_key=persona_key,
            original_url=url,
            local_filename=filename,
            checksum=checksum(resource.content),
            downloaded_at=datetime.now(timezone.utc),
        ))
        logger.info(f"Cached avatar for {persona_key} as {filename} ({len(resource.content)} bytes)")
        return self.local_url(filename)

    async def _is_intact(self, entry: Optional[AvatarCacheEntry]) -> bool:
        if entry is None:
            return False
        return await asyncio.to_thread(os.path.isfile, self._path(entry.local_filename))

    async def resolve_avatar(self, persona_key: str, remote_url: Optional[str]) -> str:
        """Return a stable local URL for the persona's avatar.

        Args:
            persona_key: Persona full name (cache key)
            remote_url: Source-of-truth avatar URL

        Returns:
            Local avatar URL, or the fallback URL on any failure.
        """
        if not is_valid_avatar_url(remote_url):
            logger.debug(f"No usable avatar URL for {persona_key}: {remote_url!r}")
            return self.fallback_url

        remote_url = remote_url.strip()
        try:
            async with self._lock(persona_key):
                entry = await self._index.get(persona_key)
                if await self._is_intact(entry) and entry.original_url == remote_url:
                    return self.local_url(entry.local_filename)

                if entry is not None and not await self._is_intact(entry):
                    logger.info(f"Cached avatar file missing for {persona_key}, re-fetching")

                resource = await self._fetch(remote_url)
                return await self._store(persona_key, remote_url, resource, entry)
        except Exception as e:
            logger.warning(f"Avatar resolution failed for {persona_key} ({remote_url}): {e}")
            return self.fallback_url

    async def needs_refresh(self, persona_key: str, remote_url: Optional[str]) -> bool:
        """True if there is no cache entry, the file is gone, or the image changed.

        A failed fetch while checking keeps the cache (returns False).
        """
        if not is_valid_avatar_url(remote_url):
            return False

        entry = await self._index.get(persona_key)
        if not await self._is_intact(entry):
            return True

        try:
            resource = await self._fetch(remote_url.strip())
        except Exception as e:
            logger.warning(f"Could not check avatar for {persona_key}: {e}")
            return False
        return checksum(resource.content) != entry.checksum

    async def refresh(self, persona_key: str, remote_url: Optional[str]) -> str:
        """Re-download the avatar if its bytes changed; one fetch at most.

        A changed URL that still serves the same image only updates the
        index entry.
        """
        if not is_valid_avatar_url(remote_url):
            return self.fallback_url

        remote_url = remote_url.strip()
        try:
            async with self._lock(persona_key):
                entry = await self._index.get(persona_key)
                resource = await self._fetch(remote_url)
                if await self._is_intact(entry) and checksum(resource.content) == entry.checksum:
                    if entry.original_url != remote_url:
                        logger.info(f"Avatar URL changed but image unchanged for {persona_key}")
                        entry.original_url = remote_url
                        await self._index.put(entry)
                    return self.local_url(entry.local_filename)

                logger.info(f"Avatar changed for {persona_key}, updating local copy")
                return await self._store(persona_key, remote_url, resource, entry)
        except Exception as e:
            logger.warning(f"Avatar refresh failed for {persona_key} ({remote_url}): {e}")
            return self.fallback_url

    async def preload(self, persona: Optional[Persona]) -> Optional[str]:
        """Populate the cache when a persona is registered. Never raises."""
        if persona is None:
            return None

        if not persona.avatar_url:
            logger.info(f"Persona {persona.full_name} has no avatar, assigning fallback")
            if self._directory is not None:
                try:
                    await self._directory.update_avatar(persona.full_name, self.fallback_url)
                except Exception as e:
                    logger.warning(f"Could not store fallback avatar for {persona.full_name}: {e}")
            return self.fallback_url

        logger.info(f"Pre-downloading avatar for {persona.full_name}")
        return await self.resolve_avatar(persona.full_name, persona.avatar_url)

    def reset(self):
        self._locks.clear()
