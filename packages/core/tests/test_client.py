"""Tests for the code-host client.

The PyGithub requester is replaced by a MagicMock, so these tests check the
paths, parameters and error translation without any network access.
"""

from unittest.mock import MagicMock

import pytest
from github import GithubException

from mrlens_core.errors import AuthError, UpstreamError
from mrlens_core.gh.client import CodeHostClient


def _client(data=None, graphql=None):
    requester = MagicMock()
    requester.requestJsonAndCheck.return_value = ({}, data)
    requester.graphql_query.return_value = ({}, graphql or {})
    return CodeHostClient("tok", requester=requester), requester


class TestTokenGuard:
    def test_no_token_raises_before_any_request(self):
        requester = MagicMock()
        client = CodeHostClient(None, requester=requester)
        with pytest.raises(AuthError, match="Access token not found"):
            client.get_merge_request("org/repo", 1)
        requester.requestJsonAndCheck.assert_not_called()

    def test_empty_token_raises(self):
        with pytest.raises(AuthError):
            CodeHostClient("").get_current_user()

    def test_real_requester_built_lazily(self, mocker):
        mock_github = mocker.patch("mrlens_core.gh.client.Github")
        client = CodeHostClient("tok", base_url="https://git.example.com/api/v4")
        mock_github.assert_not_called()
        assert client.requester is mock_github.return_value.requester
        assert mock_github.call_args.kwargs["base_url"] == "https://git.example.com/api/v4"
        assert mock_github.call_args.kwargs["retry"] is None


class TestPaths:
    def test_project_path_is_url_encoded(self):
        client, requester = _client({"id": 1})
        client.get_merge_request("org/sub group/repo", 42)
        verb, path = requester.requestJsonAndCheck.call_args.args
        assert verb == "GET"
        assert path == "/projects/org%2Fsub%20group%2Frepo/merge_requests/42"

    def test_discussions_request_full_page(self):
        client, requester = _client([])
        client.get_merge_request_discussions("org/repo", 3)
        path = requester.requestJsonAndCheck.call_args.args[1]
        assert path == "/projects/org%2Frepo/merge_requests/3/discussions"
        assert requester.requestJsonAndCheck.call_args.kwargs["parameters"] == {"per_page": 100}

    def test_issue_notes_accept_numeric_project_id(self):
        client, requester = _client([])
        client.get_issue_notes(321, 5)
        assert requester.requestJsonAndCheck.call_args.args[1] == "/projects/321/issues/5/notes"

    def test_group_membership_path(self):
        client, requester = _client({"state": "active"})
        client.get_group_membership(9970, 17)
        assert requester.requestJsonAndCheck.call_args.args[1] == "/groups/9970/members/17"

    def test_failed_jobs_scope(self):
        client, requester = _client([])
        client.get_pipeline_jobs("org/repo", 88)
        params = requester.requestJsonAndCheck.call_args.kwargs["parameters"]
        assert params["scope[]"] == "failed"

    def test_review_requests_query(self):
        client, requester = _client([])
        client.list_review_requests("alice", count=5)
        params = requester.requestJsonAndCheck.call_args.kwargs["parameters"]
        assert params["reviewer_username"] == "alice"
        assert params["state"] == "opened"
        assert params["per_page"] == 5


class TestJobTrace:
    def test_plain_text_body_unwrapped(self):
        client, _ = _client({"data": "line 1\nERROR: boom"})
        assert client.get_job_trace("org/repo", 9) == "line 1\nERROR: boom"

    def test_empty_body(self):
        client, _ = _client(None)
        assert client.get_job_trace("org/repo", 9) == ""


class TestWrites:
    def test_create_issue_joins_labels(self):
        client, requester = _client({"id": 1})
        client.create_issue("org/repo", "Title", "Body", labels=["bug", "backend"], milestone_id=7)
        verb, path = requester.requestJsonAndCheck.call_args.args
        body = requester.requestJsonAndCheck.call_args.kwargs["input"]
        assert verb == "POST"
        assert path == "/projects/org%2Frepo/issues"
        assert body == {"title": "Title", "description": "Body", "labels": "bug,backend", "milestone_id": 7}

    def test_create_milestone_without_due_date(self):
        client, requester = _client({"id": 3})
        client.create_milestone("org/repo", "Epic: X", "desc")
        body = requester.requestJsonAndCheck.call_args.kwargs["input"]
        assert "due_date" not in body


class TestErrors:
    def test_non_2xx_becomes_upstream_error(self):
        client, requester = _client()
        requester.requestJsonAndCheck.side_effect = GithubException(401, {"message": "401 Unauthorized"}, None)
        with pytest.raises(UpstreamError) as exc_info:
            client.get_issue("org/repo", 1)
        assert exc_info.value.status == 401
        assert exc_info.value.url == "/projects/org%2Frepo/issues/1"

    def test_transport_failure_becomes_upstream_error(self):
        client, requester = _client()
        requester.requestJsonAndCheck.side_effect = ConnectionError("reset")
        with pytest.raises(UpstreamError, match="reset"):
            client.get_issue("org/repo", 1)


class TestEpic:
    def test_returns_work_item(self):
        work_item = {"id": "gid://1", "iid": "12", "title": "Platform"}
        client, requester = _client(graphql={"data": {"group": {"workItem": work_item}}})
        assert client.get_epic("org/platform", 12) == work_item
        variables = requester.graphql_query.call_args.args[1]
        assert variables == {"groupFullPath": "org/platform", "workItemIID": "12"}

    def test_missing_work_item_is_404(self):
        client, _ = _client(graphql={"data": {"group": {"workItem": None}}})
        with pytest.raises(UpstreamError) as exc_info:
            client.get_epic("org/platform", 12)
        assert exc_info.value.status == 404
