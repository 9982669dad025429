"""activity command — display recorded logins, runs and actions."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from mrlens_notify.models import ACTION, LOGIN, RUN

console = Console()

_KIND_STYLE = {
    LOGIN: "green",
    RUN: "cyan",
    ACTION: "yellow",
}


@click.command("activity")
@click.option("--user", "user_name", default=None, help="Only show events for this user.")
@click.option("--limit", default=20, show_default=True, help="Maximum number of events to show.")
@click.pass_context
def activity_cmd(ctx, user_name: str | None, limit: int):
    """Show recorded activity, newest first.

    Reads from the configured notifier. Add 'notifier: sqlite' to .mrlens.yml
    to start recording.
    """
    from mrlens_notify.noop import NoOpNotifier

    notifier = ctx.obj.get("notifier") if ctx.obj else None
    if notifier is None or isinstance(notifier, NoOpNotifier):
        raise click.UsageError("No notifier configured. Add 'notifier: sqlite' to .mrlens.yml to record activity.")

    events = notifier.list_events(user_name=user_name, limit=limit)
    if not events:
        console.print("[yellow]No activity recorded.[/yellow]")
        return

    title = f"Activity — {user_name}" if user_name else "Activity"
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("When", width=20)
    table.add_column("User", max_width=24)
    table.add_column("Event", width=8)
    table.add_column("Detail", max_width=28)
    table.add_column("URL", style="dim")

    for e in events:
        style = _KIND_STYLE.get(e.kind, "white")
        table.add_row(
            e.occurred_at[:19].replace("T", " "),
            e.user_name,
            f"[{style}]{e.kind}[/{style}]",
            e.detail,
            e.url,
        )

    console.print(table)
