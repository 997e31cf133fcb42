"""Domain records shared by the delivery engine."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Protocol


@dataclass
class Persona:
    """An AI character identity messages are sent as.

    ``full_name`` is the stable identity key; ``display_name`` is what the
    platform shows as the webhook username.
    """
    full_name: str
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    error_message: Optional[str] = None  # persona-specific text for failures


@dataclass
class AvatarCacheEntry:
    persona_key: str
    original_url: str
    local_filename: str
    checksum: str
    downloaded_at: datetime


@dataclass
class PendingSend:
    persona_key: str
    channel_id: str
    content_hash: str
    started_at: float
    is_error_message: bool = False


@dataclass
class MessageChunk:
    index: int
    content: str
    is_first: bool
    is_last: bool
    is_error: bool = False


@dataclass
class DeliveryOptions:
    """Optional extras for a delivery.

    ``embed`` and ``attachments`` are only ever attached to the last chunk.
    ``actor_key`` keys content-level dedup; it defaults to the persona key.
    """
    embed: Optional[dict] = None
    attachments: Optional[list[Any]] = None
    model_indicator: Optional[str] = None
    is_error_message: Optional[bool] = None
    actor_key: Optional[str] = None


@dataclass
class DeliveryResult:
    first_message_id: Optional[str]
    all_message_ids: list[str] = field(default_factory=list)
    is_duplicate: bool = False


class PersonaDirectory(Protocol):
    """Read access (plus avatar write-back) to the persona store."""

    async def get_persona(self, key: str) -> Optional[Persona]:
        ...

    async def update_avatar(self, key: str, url: str) -> None:
        ...


class MemoryPersonaDirectory:
    """In-process persona directory keyed by ``full_name``."""

    def __init__(self, personas: Optional[list[Persona]] = None):
        self._personas: dict[str, Persona] = {}
        for persona in personas or []:
            self.add(persona)

    def add(self, persona: Persona):
        self._personas[persona.full_name] = persona

    async def get_persona(self, key: str) -> Optional[Persona]:
        return self._personas.get(key)

    async def update_avatar(self, key: str, url: str) -> None:
        persona = self._personas.get(key)
        if persona is not None:
            persona.avatar_url = url
