"""Send command."""

import asyncio

import click

from . import cli
from .shared import console, load_settings, make_client


@cli.command()
@click.argument("channel_id")
@click.argument("text")
@click.option("--persona", "persona_name", required=True, help="Persona full name")
@click.option("--display-name", default=None, help="Name shown on the message")
@click.option("--avatar-url", default=None, help="Persona avatar source URL")
@click.option("--thread-of", "parent_id", default=None, help="Parent channel id when CHANNEL_ID is a thread")
@click.option("--model-indicator", default=None, help="Suffix appended to the text")
@click.option("--error-message", default=None, help="Persona text posted if delivery fails")
def send(channel_id, text, persona_name, display_name, avatar_url, parent_id, model_indicator, error_message):
    """Deliver TEXT to CHANNEL_ID as a persona."""
    async def _send():
        from herald.db.connection import init_db, close_db
        from herald.db.models import PostgresAvatarIndex
        from herald.main import build_orchestrator
        from herald.models import DeliveryOptions, Persona
        from herald.platform.base import Channel, PlatformError

        settings = load_settings()
        index = None
        if settings.database_url:
            await init_db(settings.database_url)
            index = PostgresAvatarIndex()

        client = make_client(settings)
        orchestrator = build_orchestrator(settings, client, index=index)
        channel = Channel(id=channel_id, is_thread=bool(parent_id), parent_id=parent_id)
        persona = Persona(
            full_name=persona_name,
            display_name=display_name,
            avatar_url=avatar_url,
            error_message=error_message,
        )

        try:
            result = await orchestrator.deliver(
                channel, text, persona, DeliveryOptions(model_indicator=model_indicator),
            )
        except PlatformError as e:
            console.print(f"[red]✗ Delivery failed (reference {getattr(e, 'herald_error_id', '?')}): {e}[/red]")
            try:
                await orchestrator.notify_failure(channel, persona, e)
            except PlatformError as notice_error:
                console.print(f"[yellow]⚠ Could not post the error notice: {notice_error}[/yellow]")
            raise SystemExit(1)
        finally:
            await client.close()
            if index is not None:
                await close_db()

        if result is None:
            console.print("[yellow]⚠ Another delivery for this persona is in progress[/yellow]")
        elif result.is_duplicate:
            console.print("[yellow]⚠ Suppressed as duplicate[/yellow]")
        else:
            console.print(f"[green]✓ Sent {len(result.all_message_ids)} message(s):[/green] {', '.join(result.all_message_ids)}")

    asyncio.run(_send())
