"""Avatar cache commands."""

import asyncio

import click

from . import cli
from .shared import console, load_settings, make_client


@cli.group()
def avatar():
    """Persona avatar cache commands."""
    pass


@avatar.command("resolve")
@click.argument("persona")
@click.argument("url")
@click.option("--refresh", is_flag=True, help="Re-download if the image changed")
def avatar_resolve(persona, url, refresh):
    """Cache PERSONA's avatar from URL and print the local URL."""
    async def _resolve():
        from herald.avatars import AvatarManager
        from herald.db.connection import init_db, close_db
        from herald.db.models import PostgresAvatarIndex

        settings = load_settings()
        if not settings.database_url:
            console.print("[red]✗ HERALD_DATABASE_URL is required for the avatar index[/red]")
            raise SystemExit(1)

        await init_db(settings.database_url)
        client = make_client(settings)
        try:
            manager = AvatarManager(
                client=client,
                index=PostgresAvatarIndex(),
                avatar_dir=settings.avatar_dir,
                public_base_url=settings.avatar_public_base_url,
                fallback_url=settings.fallback_avatar_url,
                max_bytes=settings.avatar_max_bytes,
                timeout=settings.avatar_timeout_seconds,
            )
            if refresh:
                local_url = await manager.refresh(persona, url)
            else:
                local_url = await manager.resolve_avatar(persona, url)
        finally:
            await client.close()
            await close_db()

        if local_url == settings.fallback_avatar_url:
            console.print(f"[yellow]⚠ Could not cache avatar, using fallback:[/yellow] {local_url}")
        else:
            console.print(f"[green]✓[/green] {local_url}")

    asyncio.run(_resolve())
