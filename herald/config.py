"""Herald configuration management."""

import logging
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings

logger = logging.getLogger("herald.config")


class HeraldSettings(BaseSettings):
    """Settings loaded from environment variables or .env file."""

    # Database: optional, only the avatar index lives there
    database_url: Optional[str] = Field(
        default=None,
        description="PostgreSQL connection string for the avatar index",
    )

    # Platform
    discord_bot_token: Optional[str] = Field(default=None, description="Discord bot token")
    discord_api_base: str = Field(
        default="https://discord.com/api/v10",
        description="Discord REST API base URL",
    )
    webhook_name: str = Field(default="Herald", description="Name of the webhook Herald owns per channel")

    # Delivery
    message_char_limit: int = Field(default=2000, description="Maximum characters per platform message")
    chunk_delay_ms: int = Field(default=750, description="Pause between consecutive chunk sends")
    dedup_window_ms: int = Field(default=5000, description="Window for identical-content suppression")

    # Avatars
    avatar_dir: str = Field(default="./avatars", description="Directory holding cached avatar files")
    avatar_public_base_url: str = Field(
        default="http://localhost:8080/avatars",
        description="Public URL prefix the avatar directory is served under",
    )
    fallback_avatar_url: str = Field(
        default="https://cdn.discordapp.com/embed/avatars/0.png",
        description="Avatar used whenever a persona avatar cannot be resolved",
    )
    avatar_max_bytes: int = Field(default=10 * 1024 * 1024, description="Largest avatar download accepted")
    avatar_timeout_seconds: float = Field(default=5.0, description="Avatar download timeout")

    # Error tracking
    error_window_minutes: int = Field(default=30, description="Rolling window for error frequency counts")
    error_escalation_threshold: int = Field(default=6, description="Occurrences before escalating to CRITICAL")

    model_config = {"env_prefix": "HERALD_", "env_file": ".env", "extra": "ignore"}


def load_settings() -> HeraldSettings:
    """Load settings from environment."""
    settings = HeraldSettings()

    # Platforms refuse or warn on plain-http avatar URLs
    if not settings.avatar_public_base_url.startswith("https://"):
        logger.warning(
            f"Avatar base URL is not https ({settings.avatar_public_base_url}). "
            "The chat platform may not render cached avatars."
        )

    return settings
