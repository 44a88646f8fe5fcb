"""CLI: convo config show|set"""

import json

import click
from pydantic import TypeAdapter, ValidationError
from rich.console import Console
from rich.markup import escape

import convo_sync.config as settings
from convo_sync.config import ClientConfig

console = Console()


@click.group()
def config():
    """Endpoints and timeouts."""


@config.command("show")
def config_show():
    """Print the effective configuration (file plus CONVO_* overrides)."""
    from convo_sync.cli.main import _load_config

    click.echo(json.dumps(_load_config().model_dump(), indent=2))


@config.command("set")
@click.argument("key")
@click.argument("value")
def config_set(key, value):
    """Set a configuration value, e.g. `convo config set webhook_url https://...`."""
    field = ClientConfig.model_fields.get(key)
    if field is None:
        console.print(f"[red]Unknown key {key!r}. Known: {', '.join(ClientConfig.model_fields)}[/red]")
        raise SystemExit(1)
    try:
        parsed = TypeAdapter(field.annotation).validate_python(value)
    except ValidationError as e:
        console.print(f"[red]Invalid value for {key}: {escape(str(e))}[/red]")
        raise SystemExit(1)
    # only the file is rewritten; environment overrides stay out of it
    values = settings.load_config_file(settings.CONFIG_FILE)
    values[key] = parsed
    path = settings.save_config_file(values, settings.CONFIG_FILE)
    console.print(f"[green]{key} saved to {path}[/green]")
