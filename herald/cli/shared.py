"""Shared utilities for Herald CLI commands."""

from rich.console import Console

from herald.config import HeraldSettings, load_settings
from herald.platform.discord import DiscordPlatformClient

console = Console()


def make_client(settings: HeraldSettings) -> DiscordPlatformClient:
    """Build the Discord client, or exit with a hint when no token is set."""
    if not settings.discord_bot_token:
        console.print("[red]✗ No bot token. Set HERALD_DISCORD_BOT_TOKEN in .env[/red]")
        raise SystemExit(1)
    return DiscordPlatformClient(settings.discord_bot_token, api_base=settings.discord_api_base)


__all__ = ["console", "load_settings", "make_client"]
