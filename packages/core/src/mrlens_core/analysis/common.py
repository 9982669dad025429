"""Helpers shared by the analysis generators: batching, placeholders, prompt rendering."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import Callable, Iterable, Sequence, TypeVar

from mrlens_core.gh.entities import Discussion, IssueRef
from mrlens_core.providers.base import FAST
from mrlens_core.utils.code import truncate

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

ERROR_PLACEHOLDER = "Error generating summary"

_DEFAULT_WORKERS = 8

ISSUE_SUMMARY_MAX_TOKENS = 8000
_ISSUE_DESCRIPTION_CHARS = 8000


def run_batch(
    fn: Callable[[T], R],
    items: Sequence[T],
    on_error: Callable[[T, Exception], R],
    max_workers: int = _DEFAULT_WORKERS,
) -> list[R]:
    """Apply ``fn`` to every item concurrently, preserving input order.

    One failing item is replaced by ``on_error(item, exc)`` and never fails
    the batch, so the output always has exactly ``len(items)`` entries.
    """
    if not items:
        return []

    def _safe(item: T) -> R:
        try:
            return fn(item)
        except Exception as e:
            logger.warning("Batch item failed, using placeholder: %s", e)
            return on_error(item, e)

    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(items)))) as pool:
        return list(pool.map(_safe, items))


def render_discussions(discussions: Iterable[Discussion], include_system: bool = False) -> str:
    """Render discussions for a prompt, notes in fetch order."""
    blocks = []
    for discussion in discussions:
        for note in discussion.notes:
            if note.system and not include_system:
                continue
            blocks.append(f"Author: {note.author}\nDate: {note.created_at}\nLink: {note.permalink}\nMessage: {note.body}")
    return "\n\n".join(blocks) if blocks else "(no discussions)"


def get_issue_summaries(llm, client, issues: Sequence[IssueRef], max_workers: int = _DEFAULT_WORKERS) -> list[IssueRef]:
    """Summarize each related issue together with its own notes.

    The notes fetch and the LLM call both happen per item, so a single
    inaccessible issue only degrades its own summary.
    """

    def _summarize(issue: IssueRef) -> IssueRef:
        notes = client.get_issue_notes(issue.project_id, issue.iid)
        rendered = "\n".join(
            f"Author: {(n.get('author') or {}).get('name', 'Unknown')}\nMessage: {n.get('body', '')}"
            for n in notes
            if not n.get("system")
        )
        prompt = f"""Summarize the following issue in a short paragraph. Focus on the problem,
the agreed direction and anything still open.

Title: {issue.title}
Description: {truncate(issue.description, _ISSUE_DESCRIPTION_CHARS)}

Discussions:
------------
{rendered or "(no discussions)"}
------------"""
        return replace(issue, summary=llm.complete(prompt, FAST, ISSUE_SUMMARY_MAX_TOKENS))

    return run_batch(
        _summarize,
        issues,
        lambda issue, _: replace(issue, summary=ERROR_PLACEHOLDER),
        max_workers,
    )
