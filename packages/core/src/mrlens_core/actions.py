"""User-initiated actions outside the analysis pipeline.

- list_my_review_requests: open merge requests waiting on the signed-in user
- propose_issues / create_issues: split an issue into smaller ones, optionally
  grouped under an "Epic: <title>" milestone
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Sequence

from mrlens_core.analysis.issue import ProposedIssue, breakdown_issue
from mrlens_core.errors import InvalidInputError
from mrlens_core.gh.entities import Issue, MergeRequestRef, User
from mrlens_core.gh.urls import IssueTarget, parse_target
from mrlens_core.session import AuthenticatedSession, require_session
from mrlens_notify.models import action_event

logger = logging.getLogger(__name__)

DEFAULT_REVIEW_REQUESTS = 3


@dataclass(frozen=True)
class CreatedIssue:
    id: int
    iid: int
    title: str
    web_url: str

    @classmethod
    def from_api(cls, raw: dict) -> CreatedIssue:
        return cls(
            id=raw.get("id", 0),
            iid=raw.get("iid", 0),
            title=raw.get("title", ""),
            web_url=raw.get("web_url", ""),
        )


def list_my_review_requests(
    *, session: AuthenticatedSession | None, client, count: int = DEFAULT_REVIEW_REQUESTS
) -> list[MergeRequestRef]:
    """Return up to ``count`` open merge requests where the current user is a reviewer."""
    require_session(session)
    user = User.from_api(client.get_current_user())
    raw = client.list_review_requests(user.username, count=count)
    return [MergeRequestRef.from_api(m) for m in raw or []]


def propose_issues(
    url: str, *, session: AuthenticatedSession | None, client, llm
) -> tuple[IssueTarget, Issue, list[ProposedIssue]]:
    """Fetch the issue at ``url`` and ask the model how to split it."""
    target = parse_target(url)
    if not isinstance(target, IssueTarget):
        raise InvalidInputError(f"Only issues can be split, got a {target.kind.replace('_', ' ')} URL: {url}")
    require_session(session)
    issue = Issue.from_api(client.get_issue(target.project_path, target.iid))
    return target, issue, breakdown_issue(llm, issue)


def create_issues(
    project_path: str,
    original: Issue,
    proposed: Sequence[ProposedIssue],
    *,
    session: AuthenticatedSession | None,
    client,
    convert_to_epic: bool = False,
    notifier=None,
    max_workers: int = 8,
) -> list[CreatedIssue]:
    """Create ``proposed`` issues next to ``original``, carrying over its labels.

    New issues join the original's milestone, or a fresh "Epic: <title>"
    milestone when ``convert_to_epic`` is set. Any failed request raises
    UpstreamError; issues created before the failure are not rolled back.
    """
    session = require_session(session)
    if notifier is not None:
        notifier.notify(action_event(session.user_name, "create_issue"))

    milestone_id = original.milestone_id
    if convert_to_epic:
        milestone = client.create_milestone(
            project_path,
            f"Epic: {original.title}",
            description=original.description,
            due_date=original.due_date,
        )
        milestone_id = milestone["id"]
        logger.info("Created milestone %s for %s", milestone_id, original.web_url)

    if not proposed:
        return []

    def _create(issue: ProposedIssue) -> CreatedIssue:
        raw = client.create_issue(
            project_path,
            issue.title,
            issue.description,
            labels=list(original.labels),
            milestone_id=milestone_id,
        )
        return CreatedIssue.from_api(raw)

    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(proposed)))) as pool:
        return list(pool.map(_create, proposed))
