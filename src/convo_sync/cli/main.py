"""
Convo CLI — `convo` command.

Commands:
  convo auth signup|login|status|logout   Email/password session
  convo chats list|create                 Chat list
  convo chat [chat-id]                    Interactive REPL with live sync
  convo send <message>                    One-shot message
  convo config show|set                   Endpoints and timeouts
"""

import asyncio
import logging

try:
    import click
    from rich.console import Console
    from rich.logging import RichHandler
    from rich.markup import escape
except ImportError:
    raise SystemExit("CLI requires extras: pip install convo-sync[cli]")

from pydantic import ValidationError

from convo_sync.client import AsyncConvoClient
from convo_sync.config import ClientConfig

console = Console()


def _load_config() -> ClientConfig:
    try:
        return ClientConfig()
    except ValidationError as e:
        console.print(f"[red]Invalid configuration: {escape(str(e))}[/red]")
        raise SystemExit(1)


def _make_client(**kwargs) -> AsyncConvoClient:
    return AsyncConvoClient(config=_load_config(), **kwargs)


async def _require_session(client: AsyncConvoClient) -> None:
    session = await client.restore()
    if session is None:
        console.print("[red]Not logged in. Run `convo auth login` first.[/red]")
        await client.close()
        raise SystemExit(1)


def _run(coro):
    return asyncio.run(coro)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s: %(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    # httpx logs every request at INFO; only show it in verbose mode
    logging.getLogger("httpx").setLevel(logging.INFO if verbose else logging.WARNING)


@click.group()
@click.version_option("0.1.0")
@click.option("-v", "--verbose", is_flag=True, help="Show debug logs")
def main(verbose: bool):
    """Convo CLI — chat with your bot from the terminal."""
    _setup_logging(verbose)


# Register subcommands from separate modules
from convo_sync.cli.auth import auth
from convo_sync.cli.chat import chat_cmd, send_cmd
from convo_sync.cli.chats import chats
from convo_sync.cli.config import config

main.add_command(auth)
main.add_command(chat_cmd)
main.add_command(send_cmd)
main.add_command(chats)
main.add_command(config)


if __name__ == "__main__":
    main()
