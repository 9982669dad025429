"""Tests for review-request listing and issue splitting."""

from unittest.mock import MagicMock

import pytest

from mrlens_core.actions import create_issues, list_my_review_requests, propose_issues
from mrlens_core.analysis.issue import ProposedIssue
from mrlens_core.errors import AuthError, InvalidInputError
from mrlens_core.gh.entities import Issue
from mrlens_core.providers.base import BaseLLM
from mrlens_core.session import AuthenticatedSession, ProviderIdentity


class _StubLLM(BaseLLM):
    MODELS = {"fast": "f", "deep": "d"}

    def _call_api(self, prompt, model, max_tokens):
        return "<issue><title>Add index</title><description>users.email</description></issue>"

    def _stream_api(self, messages, model, system, max_tokens):
        yield from ()


def _session():
    return AuthenticatedSession.start(ProviderIdentity("tok"), "Alice", "alice@x.io")


def _issue(**overrides):
    fields = dict(
        id=2001,
        iid=9,
        project_id=7,
        title="Users page is slow",
        description="8 seconds",
        author="Bob",
        created_at="",
        state="opened",
        web_url="https://github.com/org/repo/-/issues/9",
        labels=("perf", "backend"),
        milestone_id=4,
        due_date="2024-09-30",
    )
    fields.update(overrides)
    return Issue(**fields)


class TestListMyReviewRequests:
    def test_uses_current_username(self):
        client = MagicMock()
        client.get_current_user.return_value = {"id": 17, "username": "alice"}
        client.list_review_requests.return_value = [{"id": 1, "iid": 5, "title": "Fix", "web_url": "u"}]

        result = list_my_review_requests(session=_session(), client=client, count=5)

        client.list_review_requests.assert_called_once_with("alice", count=5)
        assert [(m.iid, m.title) for m in result] == [(5, "Fix")]

    def test_requires_session(self):
        client = MagicMock()
        with pytest.raises(AuthError):
            list_my_review_requests(session=None, client=client)
        client.get_current_user.assert_not_called()


class TestProposeIssues:
    def test_rejects_non_issue_urls(self):
        with pytest.raises(InvalidInputError):
            propose_issues(
                "https://github.com/org/repo/-/merge_requests/1",
                session=_session(),
                client=MagicMock(),
                llm=_StubLLM(),
            )

    def test_returns_breakdown(self):
        client = MagicMock()
        client.get_issue.return_value = {"id": 2001, "iid": 9, "title": "Users page is slow"}
        target, issue, proposed = propose_issues(
            "https://github.com/org/repo/-/issues/9", session=_session(), client=client, llm=_StubLLM()
        )
        client.get_issue.assert_called_once_with("org/repo", 9)
        assert target.project_path == "org/repo"
        assert issue.title == "Users page is slow"
        assert [p.title for p in proposed] == ["Add index"]


class TestCreateIssues:
    def test_issues_join_original_milestone_with_labels(self):
        client = MagicMock()
        client.create_issue.side_effect = lambda path, title, desc, labels, milestone_id: {
            "id": 1,
            "iid": 10,
            "title": title,
            "web_url": "u",
        }
        proposed = [ProposedIssue("Add index", "d1"), ProposedIssue("Paginate", "d2")]

        created = create_issues("org/repo", _issue(), proposed, session=_session(), client=client)

        assert [c.title for c in created] == ["Add index", "Paginate"]
        client.create_milestone.assert_not_called()
        for call in client.create_issue.call_args_list:
            assert call.kwargs["labels"] == ["perf", "backend"]
            assert call.kwargs["milestone_id"] == 4

    def test_convert_to_epic_creates_milestone_first(self):
        client = MagicMock()
        client.create_milestone.return_value = {"id": 99}
        client.create_issue.return_value = {"id": 1, "iid": 10, "title": "t", "web_url": "u"}

        create_issues(
            "org/repo",
            _issue(),
            [ProposedIssue("Add index", "d1")],
            session=_session(),
            client=client,
            convert_to_epic=True,
        )

        client.create_milestone.assert_called_once_with(
            "org/repo", "Epic: Users page is slow", description="8 seconds", due_date="2024-09-30"
        )
        assert client.create_issue.call_args.kwargs["milestone_id"] == 99

    def test_tracks_action(self):
        notifier = MagicMock()
        create_issues("org/repo", _issue(), [], session=_session(), client=MagicMock(), notifier=notifier)
        assert notifier.notify.call_args.args[0].detail == "create_issue"
