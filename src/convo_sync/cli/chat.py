"""CLI: convo chat, convo send"""

import asyncio
import json
from typing import Optional

import click
from rich.console import Console

from convo_sync.errors import ConvoError
from convo_sync.models.chat import Message

console = Console()


def _make_client(**kwargs):
    from convo_sync.cli.main import _make_client
    return _make_client(**kwargs)


def _require_session(client):
    from convo_sync.cli.main import _require_session
    return _require_session(client)


def _run(coro):
    from convo_sync.cli.main import _run
    return _run(coro)


def _print_message(message: Message) -> None:
    if message.is_bot:
        console.print(f"[green]Bot:[/green] {message.content}")
    else:
        console.print(f"[cyan]You:[/cyan] {message.content}")


class _Transcript:
    """Prints each message once, whether it arrived by poll or by send."""

    def __init__(self) -> None:
        self._seen: set[str] = set()

    def show(self, messages: list[Message]) -> None:
        for m in messages:
            if m.id not in self._seen:
                self._seen.add(m.id)
                _print_message(m)

    def mark_seen(self, message: Message) -> None:
        self._seen.add(message.id)

    def on_update(self, _chat_id: str, messages: list[Message]) -> None:
        self.show(messages)


@click.command("chat")
@click.argument("chat_id", required=False)
def chat_cmd(chat_id: Optional[str]):
    """Interactive chat; new messages appear as they are synced."""

    async def _chat():
        transcript = _Transcript()
        client = _make_client(on_messages=transcript.on_update)
        await _require_session(client)
        try:
            if chat_id:
                client.select_chat(chat_id)
            else:
                with console.status("Creating chat..."):
                    chat = await client.create_chat()
                console.print(f"[dim]Chat: {chat.id} ({chat.title})[/dim]")
            console.print("[cyan]Type your message (/quit to exit)[/cyan]\n")
            while True:
                # prompt in a thread so polling keeps running meanwhile
                msg = await asyncio.to_thread(click.prompt, "You", prompt_suffix=": ")
                if msg.lower() in ("/quit", "/exit"):
                    break
                try:
                    with console.status("Waiting for reply..."):
                        result = await client.send(msg)
                except ConvoError as e:
                    console.print(f"[red]{e}[/red]")
                    continue
                transcript.mark_seen(result.user_message)
                transcript.show(client.state.messages)
        except (KeyboardInterrupt, EOFError, click.Abort):
            pass
        finally:
            await client.close()

    _run(_chat())


@click.command("send")
@click.argument("message")
@click.option("-c", "--chat", "chat_id", default=None)
@click.option("--json-output", "--json", is_flag=True)
def send_cmd(message: str, chat_id: Optional[str], json_output: bool):
    """Send a one-shot message and print the reply."""

    async def _send():
        client = _make_client()
        await _require_session(client)
        try:
            if chat_id:
                client.select_chat(chat_id)
            else:
                chat = await client.create_chat()
                if not json_output:
                    console.print(f"[dim]Chat: {chat.id}[/dim]")
            try:
                result = await client.send(message)
            except ConvoError as e:
                console.print(f"[red]{e}[/red]")
                raise SystemExit(1)
        finally:
            await client.close()
        reply = result.bot_message
        if json_output:
            click.echo(json.dumps({
                "chat_id": result.user_message.chat_id,
                "message": result.user_message.model_dump(mode="json"),
                "reply": reply.model_dump(mode="json") if reply else None,
                "fallback": result.fallback,
            }))
        elif reply:
            _print_message(reply)
        else:
            console.print("[yellow]No reply received.[/yellow]")

    _run(_send())
