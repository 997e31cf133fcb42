"""Database management commands."""

import asyncio

from . import cli
from .shared import console, load_settings


@cli.group()
def db():
    """Database management commands."""
    pass


@db.command("init")
def db_init():
    """Initialize the avatar index schema."""
    async def _init():
        from herald.db.connection import init_db, close_db, apply_schema

        settings = load_settings()
        if not settings.database_url:
            console.print("[red]✗ HERALD_DATABASE_URL is not set[/red]")
            raise SystemExit(1)

        pool = await init_db(settings.database_url)
        try:
            await apply_schema(pool)
        finally:
            await close_db()
        console.print("[green]✓ Database schema initialized[/green]")

    asyncio.run(_init())
