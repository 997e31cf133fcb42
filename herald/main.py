"""Herald — wiring and logging setup."""

import logging
import os
from typing import Optional

from .avatars import AvatarIndex, AvatarManager, MemoryAvatarIndex
from .communication.dedup import DeduplicationGuard, PendingSendRegistry
from .communication.delivery import DeliveryOrchestrator
from .communication.webhooks import WebhookRegistry
from .config import HeraldSettings
from .models import PersonaDirectory
from .platform.base import PlatformClient
from .tracking import ErrorTracker

_log_format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

logger = logging.getLogger("herald")


def configure_logging(level: int = logging.INFO, log_file: Optional[str] = None):
    """Log to stderr, and to a file when one is given."""
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(os.path.expanduser(log_file), encoding="utf-8"))
    logging.basicConfig(level=level, format=_log_format, handlers=handlers)


def build_orchestrator(
    settings: HeraldSettings,
    client: PlatformClient,
    directory: Optional[PersonaDirectory] = None,
    index: Optional[AvatarIndex] = None,
) -> DeliveryOrchestrator:
    """Assemble a DeliveryOrchestrator and its state stores from settings.

    Without an explicit index the avatar cache is kept in memory; pass a
    ``PostgresAvatarIndex`` for a durable one.
    """
    tracker = ErrorTracker(
        window_seconds=settings.error_window_minutes * 60,
        escalation_threshold=settings.error_escalation_threshold,
    )
    tracked = tracker.wrap(client)

    avatars = AvatarManager(
        client=tracked,
        index=index if index is not None else MemoryAvatarIndex(),
        avatar_dir=settings.avatar_dir,
        public_base_url=settings.avatar_public_base_url,
        fallback_url=settings.fallback_avatar_url,
        max_bytes=settings.avatar_max_bytes,
        timeout=settings.avatar_timeout_seconds,
        directory=directory,
    )

    logger.debug(
        f"Delivery engine: limit={settings.message_char_limit}, delay={settings.chunk_delay_ms}ms, "
        f"dedup window={settings.dedup_window_ms}ms"
    )
    return DeliveryOrchestrator(
        client=tracked,
        avatars=avatars,
        tracker=tracker,
        webhooks=WebhookRegistry(tracked, settings.webhook_name),
        dedup=DeduplicationGuard(window_ms=settings.dedup_window_ms),
        pending=PendingSendRegistry(),
        char_limit=settings.message_char_limit,
        chunk_delay=settings.chunk_delay_ms / 1000,
    )
