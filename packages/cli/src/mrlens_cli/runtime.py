"""Glue shared by the commands: session loading, client/LLM construction, error mapping.

Library code raises typed mrlens errors; this is the only place they are
turned into click exceptions.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager

import click

from mrlens_core.errors import AuthError, InvalidInputError, UpstreamError
from mrlens_core.gh.client import CodeHostClient
from mrlens_core.pipeline import get_llm, requires_sign_out
from mrlens_core.session import AuthenticatedSession, SessionStore

logger = logging.getLogger(__name__)

_SIGNED_OUT_HINT = "You have been signed out. Run `mrlens login` to sign in again."


def session_store(config: dict) -> SessionStore:
    return SessionStore(config["session_path"], config.get("session_secret"))


def load_session(config: dict) -> AuthenticatedSession:
    """Return the stored session or raise a UsageError telling the user to log in."""
    if not config.get("session_secret"):
        raise click.UsageError("MRLENS_SESSION_SECRET environment variable is not set.")
    session = session_store(config).load()
    if session is None:
        raise click.UsageError("No session found. Run `mrlens login` first.")
    return session


def save_session(config: dict, session: AuthenticatedSession) -> None:
    """Persist the session after use so sliding renewal survives between commands."""
    session_store(config).save(session)


def build_client(config: dict, token: str | None) -> CodeHostClient:
    return CodeHostClient(token, base_url=config["api_url"])


def build_llm(config: dict):
    """Instantiate the configured provider, failing early when its key is missing."""
    provider = config["provider"]
    if provider == "anthropic" and not config.get("anthropic_api_key"):
        raise click.UsageError("ANTHROPIC_API_KEY environment variable is not set.")
    if provider == "openai" and not config.get("openai_api_key"):
        raise click.UsageError("OPENAI_API_KEY environment variable is not set.")
    try:
        return get_llm(config)
    except (ValueError, ImportError) as e:
        raise click.UsageError(str(e))


@contextmanager
def reporting_errors(config: dict):
    """Map mrlens errors to click exceptions; an API-error failure also signs the user out."""
    try:
        yield
    except InvalidInputError as e:
        raise click.UsageError(str(e))
    except AuthError as e:
        raise click.ClickException(str(e))
    except UpstreamError as e:
        if requires_sign_out(e):
            logger.debug("Clearing stored session after: %s", e)
            session_store(config).clear()
            raise click.ClickException(f"{e}. {_SIGNED_OUT_HINT}")
        raise click.ClickException(str(e))
