"""CLI: convo chats list|create"""

import json

import click
from rich.console import Console
from rich.table import Table

console = Console()


def _make_client():
    from convo_sync.cli.main import _make_client
    return _make_client()


def _require_session(client):
    from convo_sync.cli.main import _require_session
    return _require_session(client)


def _run(coro):
    from convo_sync.cli.main import _run
    return _run(coro)


@click.group()
def chats():
    """Chat management."""


@chats.command("list")
@click.option("--json-output", "--json", is_flag=True)
def chats_list(json_output):
    """List chats, most recently active first."""

    async def _list():
        client = _make_client()
        await _require_session(client)
        try:
            result = await client.load_chats()
        finally:
            await client.close()
        if json_output:
            click.echo(json.dumps([c.model_dump(mode="json") for c in result], indent=2))
            return
        table = Table(title=f"Chats ({len(result)} total)")
        table.add_column("ID", style="bold")
        table.add_column("Title")
        table.add_column("Updated")
        for c in result:
            table.add_row(c.id, c.title, c.updated_at.strftime("%Y-%m-%d %H:%M"))
        console.print(table)

    _run(_list())


@chats.command("create")
@click.option("-t", "--title", default=None)
def chats_create(title):
    """Create a new chat."""

    async def _create():
        client = _make_client()
        await _require_session(client)
        try:
            with console.status("Creating chat..."):
                chat = await client.create_chat(title)
        finally:
            await client.close()
        console.print(f"[green]Chat created: {chat.id}[/green] {chat.title}")

    _run(_create())
