"""login / logout commands — manage the stored session."""

from __future__ import annotations

import click
from rich.console import Console

from mrlens_cli.auth import resolve_identity
from mrlens_cli.runtime import build_client, reporting_errors, session_store
from mrlens_core.session import authorize

console = Console()


@click.command("login")
@click.option("--name", default=None, help="Display name to record with your activity.")
@click.pass_context
def login_cmd(ctx, name: str | None):
    """Check your access token against the access gate and start a session.

    \b
    Required environment variables:
      GITHUB_TOKEN           Access token (or use the gh CLI)
      MRLENS_SESSION_SECRET  Key used to sign the stored session
    """
    config = ctx.obj["config"]
    if not config.get("session_secret"):
        raise click.UsageError("MRLENS_SESSION_SECRET environment variable is not set.")

    identity = resolve_identity(name=name)
    if not identity.access_token:
        raise click.UsageError("No access token found. Set GITHUB_TOKEN or run `gh auth login` first.")

    client = build_client(config, identity.access_token)
    with reporting_errors(config):
        session = authorize(identity, client, config, notifier=ctx.obj.get("notifier"))
        session_store(config).save(session)

    minutes = session.max_age // 60
    console.print(f"[green]Signed in as {session.user_name}.[/green] Session valid for {minutes} minutes.")


@click.command("logout")
@click.pass_context
def logout_cmd(ctx):
    """Forget the stored session."""
    session_store(ctx.obj["config"]).clear()
    console.print("Signed out.")
