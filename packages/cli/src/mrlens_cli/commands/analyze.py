"""analyze command — analyze a merge request, issue or epic."""

from __future__ import annotations

import click
from rich.console import Console

from mrlens_cli.render import record_to_json, render_record
from mrlens_cli.runtime import build_client, build_llm, load_session, reporting_errors, save_session
from mrlens_core.analysis.review_types import ReviewType
from mrlens_core.pipeline import analyze

console = Console()

REVIEW_TYPE_CHOICE = click.Choice([rt.value for rt in ReviewType], case_sensitive=False)


def run_analysis(ctx, url: str, review_type: str, custom_prompt: str | None):
    """Shared by `analyze` and `chat`: run the pipeline and persist the renewed session.

    Returns ``(record, session, llm)``.
    """
    config = ctx.obj["config"]
    session = load_session(config)
    llm = build_llm(config)
    client = build_client(config, session.access_token)

    with reporting_errors(config):
        with console.status("Fetching and analyzing…", spinner="dots"):
            record = analyze(
                url,
                ReviewType(review_type.title()),
                custom_prompt,
                session=session,
                client=client,
                llm=llm,
                config=config,
                notifier=ctx.obj.get("notifier"),
            )
    save_session(config, session)
    return record, session, llm


@click.command("analyze")
@click.argument("url")
@click.option(
    "--review-type",
    type=REVIEW_TYPE_CHOICE,
    default=ReviewType.GENERAL.value,
    show_default=True,
    help="Focus of the per-file review (merge requests only).",
)
@click.option(
    "--prompt",
    "custom_prompt",
    default=None,
    help="Extra instructions for the per-file review (merge requests only).",
)
@click.option("--json", "as_json", is_flag=True, help="Print the composite record as JSON.")
@click.pass_context
def analyze_cmd(ctx, url: str, review_type: str, custom_prompt: str | None, as_json: bool):
    """Analyze the merge request, issue or epic at URL.

    \b
    Required environment variables:
      MRLENS_SESSION_SECRET  Key the session was signed with (run `mrlens login` first)
      ANTHROPIC_API_KEY      Required when using --provider anthropic
      OPENAI_API_KEY         Required when using --provider openai
    """
    record, _, _ = run_analysis(ctx, url, review_type, custom_prompt)
    if as_json:
        click.echo(record_to_json(record))
        return
    render_record(console, record)
