"""CLI entry point for mrlens.

Commands:
  login     — check the code-host token against the access gate and store a session
  logout    — forget the stored session
  analyze   — analyze a merge request, issue or epic
  chat      — analyze, then ask follow-up questions about the result
  my-mrs    — open merge requests waiting for your review
  split     — break an issue into smaller issues and create them
  activity  — recorded logins, runs and actions
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from mrlens_cli.commands.activity import activity_cmd
from mrlens_cli.commands.analyze import analyze_cmd
from mrlens_cli.commands.chat import chat_cmd
from mrlens_cli.commands.login import login_cmd, logout_cmd
from mrlens_cli.commands.my_mrs import my_mrs_cmd
from mrlens_cli.commands.split import split_cmd

console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=verbose)],
        force=True,
    )


def _build_notifier(config: dict):
    """Instantiate the configured notifier from .mrlens.yml settings.

    Notifier selection:
      notifier: sqlite → SQLiteNotifier (notifier_path, default .mrlens.db)
      (default)        → NoOpNotifier  (nothing recorded)

    This factory lives in cli.py so neither mrlens_core nor mrlens_notify
    know about the CLI config format.
    """
    from mrlens_notify.noop import NoOpNotifier

    if config.get("notifier", "noop") == "sqlite":
        from mrlens_notify.sqlite import SQLiteNotifier

        return SQLiteNotifier(db_path=config.get("notifier_path", ".mrlens.db"))

    return NoOpNotifier()


@click.group()
@click.version_option(
    version=importlib.metadata.version("mrlens"),
    prog_name="mrlens",
)
@click.option(
    "--config",
    "config_path",
    default=".mrlens.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="MRLENS_CONFIG",
)
@click.option(
    "--provider",
    type=click.Choice(["anthropic", "openai"]),
    default=None,
    help="LLM provider. Overrides config file.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, config_path: str, provider: str | None, verbose: bool):
    """LLM-assisted review of merge requests, issues and epics."""
    from mrlens_core.config import load_config

    _configure_logging(verbose)
    ctx.ensure_object(dict)

    config = load_config(config_path, cli_overrides={"provider": provider})

    notifier = _build_notifier(config)
    ctx.obj["notifier"] = notifier
    ctx.obj["config"] = config
    ctx.call_on_close(notifier.close)


main.add_command(login_cmd)
main.add_command(logout_cmd)
main.add_command(analyze_cmd)
main.add_command(chat_cmd)
main.add_command(my_mrs_cmd)
main.add_command(split_cmd)
main.add_command(activity_cmd)
