"""chat command — analyze, then ask follow-up questions about the result."""

from __future__ import annotations

import click
from rich.console import Console
from rich.markup import escape

from mrlens_cli.commands.analyze import REVIEW_TYPE_CHOICE, run_analysis
from mrlens_cli.render import render_record
from mrlens_cli.runtime import reporting_errors, save_session
from mrlens_core.analysis.review_types import ReviewType
from mrlens_core.chat import ASSISTANT, HUMAN, ChatTurn, send_chat_message
from mrlens_core.errors import UpstreamError
from mrlens_core.pipeline import requires_sign_out

console = Console()

_EXIT_WORDS = {"exit", "quit", ":q"}


def _stream_reply(stream) -> str:
    """Print the reply as it arrives. Ctrl-C stops this reply, not the session."""
    chunks: list[str] = []
    try:
        for chunk in stream:
            chunks.append(chunk)
            console.print(chunk, end="", markup=False, highlight=False)
    except KeyboardInterrupt:
        stream.close()
        console.print("\n[dim](reply cancelled)[/dim]")
    console.print()
    return "".join(chunks)


@click.command("chat")
@click.argument("url")
@click.option(
    "--review-type",
    type=REVIEW_TYPE_CHOICE,
    default=ReviewType.GENERAL.value,
    show_default=True,
    help="Focus of the per-file review (merge requests only).",
)
@click.option("--prompt", "custom_prompt", default=None, help="Extra instructions for the per-file review.")
@click.option("--quiet", "-q", is_flag=True, help="Skip printing the analysis before the chat starts.")
@click.pass_context
def chat_cmd(ctx, url: str, review_type: str, custom_prompt: str | None, quiet: bool):
    """Analyze URL, then chat about it. Type `exit` or press Ctrl-D to leave.

    Answers are grounded in the analysis shown; nothing is fetched again.
    """
    config = ctx.obj["config"]
    record, session, llm = run_analysis(ctx, url, review_type, custom_prompt)
    if not quiet:
        render_record(console, record)

    turns: list[ChatTurn] = []
    while True:
        try:
            question = click.prompt("\nYou", default="", show_default=False, prompt_suffix="> ")
        except click.Abort:
            break
        question = question.strip()
        if not question:
            continue
        if question.lower() in _EXIT_WORDS:
            break

        turns.append(ChatTurn(sender=HUMAN, content=question))
        reply = ""
        with reporting_errors(config):
            try:
                stream = send_chat_message(turns, record, session=session, llm=llm, notifier=ctx.obj.get("notifier"))
                console.print("[bold green]Assistant[/bold green]")
                reply = _stream_reply(stream)
            except UpstreamError as e:
                if requires_sign_out(e):
                    raise
                console.print(f"\n[red]Error:[/red] {escape(str(e))}\n[dim]Ask again, or type `exit` to leave.[/dim]")
        save_session(config, session)

        if not reply:
            # An unanswered question is dropped so the history stays well-formed.
            turns.pop()
            continue
        turns.append(ChatTurn(sender=ASSISTANT, content=reply))
