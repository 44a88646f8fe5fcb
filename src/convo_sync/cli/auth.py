"""CLI: convo auth signup|login|status|logout"""

import click
from rich.console import Console

console = Console()


def _make_client():
    from convo_sync.cli.main import _make_client
    return _make_client()


def _run(coro):
    from convo_sync.cli.main import _run
    return _run(coro)


@click.group()
def auth():
    """Authentication commands."""


def _authenticate(signup: bool) -> None:
    async def _go():
        client = _make_client()
        try:
            email = click.prompt("Email")
            password = click.prompt("Password", hide_input=True, confirmation_prompt=signup)
            with console.status("Creating account..." if signup else "Signing in..."):
                if signup:
                    result = await client.sign_up(email, password)
                else:
                    result = await client.sign_in(email, password)
        finally:
            await client.close()
        if not result.ok:
            console.print(f"[red]{result.error}[/red]")
            raise SystemExit(1)
        user = result.session.user
        console.print(f"[green]Logged in as {user.email} (ID: {user.id})[/green]")
        console.print(f"[dim]Session saved to {client.config.session_file}[/dim]")

    _run(_go())


@auth.command("signup")
def auth_signup():
    """Create an account and log in."""
    _authenticate(signup=True)


@auth.command("login")
def auth_login():
    """Log in with email and password."""
    _authenticate(signup=False)


@auth.command("status")
def auth_status():
    """Show current auth status."""

    async def _status():
        client = _make_client()
        try:
            return await client.restore()
        finally:
            await client.close()

    session = _run(_status())
    if session:
        name = session.user.display_name or session.user.email
        console.print(f"[green]Logged in[/green] as {name} (ID: {session.user.id})")
    else:
        console.print("[yellow]Not logged in. Run `convo auth login`.[/yellow]")


@auth.command("logout")
def auth_logout():
    """Clear the saved session."""
    from convo_sync.cli.main import _load_config
    from convo_sync.storage import CredentialStore, FileStore

    CredentialStore(FileStore(_load_config().session_file)).clear()
    console.print("[green]Logged out.[/green]")
