"""split command — break an issue into smaller issues and create them."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from mrlens_cli.runtime import build_client, build_llm, load_session, reporting_errors, save_session
from mrlens_core.actions import create_issues, propose_issues

console = Console()


@click.command("split")
@click.argument("url")
@click.option(
    "--epic",
    "convert_to_epic",
    is_flag=True,
    help="Group the new issues under a new 'Epic: <title>' milestone.",
)
@click.option("--yes", "-y", is_flag=True, help="Create the issues without asking.")
@click.pass_context
def split_cmd(ctx, url: str, convert_to_epic: bool, yes: bool):
    """Propose a breakdown of the issue at URL and create the smaller issues.

    New issues copy the original's labels and join its milestone.
    """
    config = ctx.obj["config"]
    session = load_session(config)
    llm = build_llm(config)
    client = build_client(config, session.access_token)

    with reporting_errors(config):
        with console.status("Breaking the issue down…", spinner="dots"):
            target, issue, proposed = propose_issues(url, session=session, client=client, llm=llm)

    if not proposed:
        console.print("[yellow]No breakdown was proposed for this issue.[/yellow]")
        save_session(config, session)
        return

    table = Table(title=f"Proposed issues for #{issue.iid} {issue.title}", show_header=True, header_style="bold cyan")
    table.add_column("#", width=3, justify="right")
    table.add_column("Title", style="bold", max_width=40)
    table.add_column("Description")
    for i, p in enumerate(proposed, 1):
        table.add_row(str(i), p.title, p.description)
    console.print(table)

    if not yes:
        where = "a new epic milestone" if convert_to_epic else target.project_path
        click.confirm(f"Create {len(proposed)} issue(s) in {where}?", abort=True)

    with reporting_errors(config):
        created = create_issues(
            target.project_path,
            issue,
            proposed,
            session=session,
            client=client,
            convert_to_epic=convert_to_epic,
            notifier=ctx.obj.get("notifier"),
            max_workers=config.get("max_workers", 8),
        )
    save_session(config, session)

    for c in created:
        console.print(f"[green]Created #{c.iid}[/green] {c.title}  [dim]{c.web_url}[/dim]")
