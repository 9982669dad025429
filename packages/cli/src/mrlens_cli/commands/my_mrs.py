"""my-mrs command — open merge requests waiting for your review."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from mrlens_cli.runtime import build_client, load_session, reporting_errors, save_session
from mrlens_core.actions import DEFAULT_REVIEW_REQUESTS, list_my_review_requests

console = Console()


@click.command("my-mrs")
@click.option(
    "--count",
    type=click.IntRange(1, 100),
    default=DEFAULT_REVIEW_REQUESTS,
    show_default=True,
    help="Maximum number of merge requests to show.",
)
@click.pass_context
def my_mrs_cmd(ctx, count: int):
    """List open merge requests where you are a reviewer, most recently updated first."""
    config = ctx.obj["config"]
    session = load_session(config)
    client = build_client(config, session.access_token)

    with reporting_errors(config):
        merge_requests = list_my_review_requests(session=session, client=client, count=count)
    save_session(config, session)

    if not merge_requests:
        console.print("[yellow]No merge requests are waiting for your review.[/yellow]")
        return

    table = Table(title="Waiting for your review", show_header=True, header_style="bold cyan")
    table.add_column("MR", style="bold", width=8)
    table.add_column("Title", max_width=50)
    table.add_column("URL", style="dim")
    for mr in merge_requests:
        table.add_row(f"!{mr.iid}", mr.title, mr.web_url)
    console.print(table)
    console.print("\nRun `mrlens analyze <URL>` to review one.")
