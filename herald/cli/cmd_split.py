"""Chunk preview command."""

import click
from rich.table import Table

from herald.communication.chunker import DEFAULT_CHAR_LIMIT, prepare_and_split
from . import cli
from .shared import console


@cli.command()
@click.argument("file", type=click.File("r", encoding="utf-8"))
@click.option("--limit", default=DEFAULT_CHAR_LIMIT, show_default=True, help="Characters per chunk")
@click.option("--model-indicator", default=None, help="Suffix appended before splitting")
@click.option("--full", is_flag=True, help="Print every chunk in full")
def split(file, limit, model_indicator, full):
    """Preview how FILE would be chunked (use - for stdin)."""
    chunks = prepare_and_split(file.read(), model_indicator, limit)

    table = Table(title=f"{len(chunks)} chunk(s), limit {limit}", padding=(0, 1))
    table.add_column("#", justify="right")
    table.add_column("Length", justify="right")
    table.add_column("Starts with")
    for i, chunk in enumerate(chunks, 1):
        preview = chunk[:60].replace("\n", "⏎")
        table.add_row(str(i), str(len(chunk)), preview)
    console.print(table)

    if full:
        for i, chunk in enumerate(chunks, 1):
            console.rule(f"chunk {i}")
            console.print(chunk, markup=False, highlight=False)
