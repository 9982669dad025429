"""Chat grounded in an already-analyzed composite record.

The record is turned into a System turn once per conversation; the model only
ever sees what the pipeline already fetched, nothing is re-fetched here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterator, Sequence

from mrlens_core.analysis.merge_request import render_changes
from mrlens_core.providers.base import DEEP
from mrlens_core.records import CompositeRecord, EpicRecord, IssueRecord, MergeRequestRecord
from mrlens_core.session import AuthenticatedSession, require_session
from mrlens_notify.models import action_event

SYSTEM = "System"
HUMAN = "Human"
ASSISTANT = "Assistant"

CHAT_MAX_TOKENS = 4096
_CHAT_DIFF_CHARS = 60_000

_PERSONA = """You need to respond to the user as if you are a senior software engineer.
Be as specific as possible, and try to include examples and code snippets where relevant.
Be as friendly and professional as possible.
Be as concise as possible.
If you don't know the answer, just say "I don't know" and don't make up an answer."""


@dataclass(frozen=True)
class ChatTurn:
    sender: str  # "System" | "Human" | "Assistant"
    content: str
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


def _lines(items) -> str:
    return "\n".join(items) or "(none)"


def _merge_request_context(record: MergeRequestRecord) -> str:
    mr = record.merge_request
    actions = "\n".join(
        f"- Action: {a.action}\n  Owner: {a.owner}\n  URL: {a.web_url}" for a in record.discussions_analysis.actions
    )
    file_reviews = "\n".join(
        f"- {c.new_path}\n  Summary: {c.summary}\n  Impact: {c.impact}\n  Review: {c.review}"
        for c in record.code_changes
    )
    failing = "\n".join(f"- {j.name} ({j.stage}): {j.reason}" for j in record.failing_jobs)
    return f"""You are a helpful assistant and an expert software engineer.
You are reviewing the merge request "{mr.title}" by {mr.author}.
The description is:
{mr.description}

The code changes are:
{render_changes(record.code_changes, 20000, budget=_CHAT_DIFF_CHARS)}

The discussions are:
{_lines(d.message for d in record.discussions)}

You have already shown the user the following information

----------
Summary:
{record.summary.summary}

----------
Key Changes:
{record.summary.key_changes}

----------
Per-file review:
{file_reviews or "(none)"}

----------
Analysis:
{record.analysis.review_approach}
{record.analysis.breakdown}
{record.analysis.testing_strategy}
{record.analysis.suggested_questions}
{record.analysis.architectural_components}

----------
Discussion Analysis:
{record.discussions_analysis.summary}
{record.discussions_analysis.sentiment}

----------
Open Actions:
{actions or "(none)"}

----------
Failing CI jobs:
{failing or "(none)"}

----------
Security Review:
{record.security_review}

{_PERSONA}"""


def _issue_context(record: IssueRecord) -> str:
    issue = record.issue
    understanding = record.understanding
    return f"""You are a helpful assistant and an expert software engineer.
You are reviewing the issue "{issue.title}".
The description is:
{issue.description}

The discussions are:
{_lines(d.message for d in record.discussions)}

----------
Understanding:
{understanding.main_problem}
{understanding.requirements}
{understanding.use_case}
{understanding.unfamiliar_terms}
{understanding.key_terms}

----------
Discussion Summary:
{record.discussion_summary.insights}
{record.discussion_summary.concerns}

----------
Linked issues:
{_lines(f'- {i.title}: {i.summary}' for i in record.linked_issues)}

----------
Related merge requests:
{_lines(f'- {m.title}: {m.summary}' for m in record.merge_requests)}

----------
Security recommendations:
{record.security_recommendations}

{_PERSONA}"""


def _epic_context(record: EpicRecord) -> str:
    epic = record.epic
    return f"""You are a helpful assistant and an expert software engineer.
You are helping the user understand the epic "{epic.title}".
The description is:
{epic.description}

The issues are:
{_lines(f'- {i.title} ({i.state})' for i in record.issues)}

The child epics are:
{_lines(f'- {e.title} ({e.state})' for e in record.child_epics)}

The discussions are:
{_lines(d.message for d in epic.discussions)}

----------
Overview:
{record.overview.summary}

Progress:
{record.overview.progress}

Risks:
{record.overview.risks}

{_PERSONA}"""


_CONTEXT_BUILDERS = {
    MergeRequestRecord: _merge_request_context,
    IssueRecord: _issue_context,
    EpicRecord: _epic_context,
}


def build_system_turn(record: CompositeRecord) -> ChatTurn:
    try:
        builder = _CONTEXT_BUILDERS[type(record)]
    except KeyError:
        raise ValueError("No MR, issue or epic provided")
    return ChatTurn(sender=SYSTEM, content=builder(record))


def send_chat_message(
    turns: Sequence[ChatTurn],
    record: CompositeRecord,
    *,
    session: AuthenticatedSession | None,
    llm,
    notifier=None,
) -> Iterator[str]:
    """Return a lazy generator of reply text increments.

    The session is checked immediately, before anything is sent. The returned
    generator is single-use; closing it early closes the provider stream.
    """
    session = require_session(session)
    if notifier is not None:
        notifier.notify(action_event(session.user_name, "chat_message"))

    turns = list(turns)
    if not any(t.sender == SYSTEM for t in turns):
        turns.insert(0, build_system_turn(record))

    system = "\n\n".join(t.content for t in turns if t.sender == SYSTEM)
    messages: list[dict] = []
    for t in turns:
        if t.sender == SYSTEM or not t.content.strip():
            continue
        role = "user" if t.sender == HUMAN else "assistant"
        # Roles must alternate; neighbours left by a dropped empty turn are merged.
        if messages and messages[-1]["role"] == role:
            messages[-1]["content"] += "\n\n" + t.content
        else:
            messages.append({"role": role, "content": t.content})
    # The conversation sent to the model must open with a user turn.
    while messages and messages[0]["role"] != "user":
        messages.pop(0)

    return llm.stream(messages, DEEP, system=system, max_tokens=CHAT_MAX_TOKENS)
