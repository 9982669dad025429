"""Thin code-host REST/GraphQL client built on PyGithub's requester.

PyGithub has no object model for merge requests, epics or group membership,
so every call goes through ``Github.requester`` (the documented escape hatch
for endpoints PyGithub does not wrap). Responses are returned as raw JSON;
mrlens_core.gh.entities turns them into dataclasses.

Every method refuses to run without a token (AuthError, no request issued) and
converts non-2xx statuses and transport failures into UpstreamError.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

from github import Auth, Github, GithubException

from mrlens_core.errors import AuthError, UpstreamError

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://github.com/api/v4"
_PER_PAGE = 100

EPIC_QUERY = """query EpicsAsWorkItem($groupFullPath: ID!, $workItemIID: String!) {
  group(fullPath: $groupFullPath) {
    workItem(iid: $workItemIID) {
      id
      iid
      title
      description
      state
      webUrl
      createdAt
      closedAt
      author { name }
      widgets {
        ... on WorkItemWidgetHierarchy {
          parent { title description }
          children {
            nodes {
              iid
              id
              title
              description
              state
              webUrl
              workItemType { name }
              project { id }
              widgets {
                ... on WorkItemWidgetMilestone { milestone { title } }
              }
            }
          }
        }
        ... on WorkItemWidgetNotes {
          discussions {
            nodes {
              id
              notes {
                edges {
                  node { id body createdAt url system author { name } }
                }
              }
            }
          }
        }
      }
    }
  }
}"""


class _BearerToken(Auth.Token):
    """OAuth access tokens are sent as ``Authorization: Bearer <token>``."""

    @property
    def token_type(self) -> str:
        return "Bearer"


def _project(path: str | int) -> str:
    return quote(str(path), safe="")


class CodeHostClient:
    def __init__(self, token: str | None, base_url: str = DEFAULT_API_URL, requester=None):
        self._token = token
        self._base_url = base_url
        self._requester = requester

    @property
    def requester(self):
        if not self._token:
            raise AuthError("Access token not found. Please log in.")
        if self._requester is None:
            gh = Github(
                base_url=self._base_url,
                auth=_BearerToken(self._token),
                retry=None,
                seconds_between_requests=None,
                seconds_between_writes=None,
            )
            self._requester = gh.requester
        return self._requester

    # ------------------------------------------------------------------ #
    # Transport                                                            #
    # ------------------------------------------------------------------ #

    def _request(self, verb: str, path: str, parameters: dict | None = None, body: dict | None = None) -> Any:
        requester = self.requester
        logger.debug("%s %s", verb, path)
        try:
            _, data = requester.requestJsonAndCheck(verb, path, parameters=parameters, input=body)
        except GithubException as e:
            raise UpstreamError(f"{verb} {path} returned {e.status}", status=e.status, url=path) from e
        except OSError as e:
            # requests' exceptions derive from OSError
            raise UpstreamError(f"{verb} {path} failed: {e}", url=path) from e
        return data

    def _get(self, path: str, **parameters) -> Any:
        return self._request("GET", path, parameters=parameters or None)

    def _post(self, path: str, body: dict) -> Any:
        return self._request("POST", path, body=body)

    def _graphql(self, query: str, variables: dict) -> dict:
        requester = self.requester
        try:
            _, data = requester.graphql_query(query, variables)
        except GithubException as e:
            raise UpstreamError(f"GraphQL query returned {e.status}", status=e.status, url="graphql") from e
        except OSError as e:
            raise UpstreamError(f"GraphQL query failed: {e}", url="graphql") from e
        return data.get("data") or {}

    # ------------------------------------------------------------------ #
    # Users and groups                                                     #
    # ------------------------------------------------------------------ #

    def get_current_user(self) -> dict:
        return self._get("/user")

    def get_group_membership(self, group_id: int, user_id: int) -> dict:
        return self._get(f"/groups/{group_id}/members/{user_id}")

    def list_review_requests(self, username: str, count: int = 3) -> list[dict]:
        """Open merge requests where ``username`` is a reviewer, most recently updated first."""
        return self._get(
            "/merge_requests",
            reviewer_username=username,
            scope="all",
            state="opened",
            order_by="updated_at",
            per_page=count,
        )

    # ------------------------------------------------------------------ #
    # Merge requests                                                       #
    # ------------------------------------------------------------------ #

    def _mr_path(self, project_path: str, iid: int) -> str:
        return f"/projects/{_project(project_path)}/merge_requests/{iid}"

    def get_merge_request(self, project_path: str, iid: int) -> dict:
        return self._get(self._mr_path(project_path, iid))

    def get_merge_request_commits(self, project_path: str, iid: int) -> list[dict]:
        return self._get(f"{self._mr_path(project_path, iid)}/commits", per_page=_PER_PAGE)

    def get_merge_request_related_issues(self, project_path: str, iid: int) -> list[dict]:
        return self._get(f"{self._mr_path(project_path, iid)}/related_issues", per_page=_PER_PAGE)

    def get_merge_request_diffs(self, project_path: str, iid: int) -> list[dict]:
        return self._get(f"{self._mr_path(project_path, iid)}/diffs", per_page=_PER_PAGE)

    def get_merge_request_discussions(self, project_path: str, iid: int) -> list[dict]:
        return self._get(f"{self._mr_path(project_path, iid)}/discussions", per_page=_PER_PAGE)

    def get_merge_request_pipelines(self, project_path: str, iid: int) -> list[dict]:
        return self._get(f"{self._mr_path(project_path, iid)}/pipelines")

    def get_pipeline_jobs(self, project_path: str, pipeline_id: int, scope: str = "failed") -> list[dict]:
        return self._get(
            f"/projects/{_project(project_path)}/pipelines/{pipeline_id}/jobs",
            **{"scope[]": scope, "per_page": _PER_PAGE},
        )

    def get_job_trace(self, project_path: str, job_id: int) -> str:
        data = self._get(f"/projects/{_project(project_path)}/jobs/{job_id}/trace")
        # Plain-text bodies come back wrapped as {"data": "<text>"}
        if isinstance(data, dict):
            return data.get("data", "") or ""
        return data or ""

    # ------------------------------------------------------------------ #
    # Issues                                                               #
    # ------------------------------------------------------------------ #

    def _issue_path(self, project_path: str | int, iid: int) -> str:
        return f"/projects/{_project(project_path)}/issues/{iid}"

    def get_issue(self, project_path: str, iid: int) -> dict:
        return self._get(self._issue_path(project_path, iid))

    def get_issue_discussions(self, project_path: str, iid: int) -> list[dict]:
        return self._get(f"{self._issue_path(project_path, iid)}/discussions", per_page=_PER_PAGE)

    def get_issue_notes(self, project: str | int, iid: int) -> list[dict]:
        return self._get(f"{self._issue_path(project, iid)}/notes", per_page=_PER_PAGE)

    def get_issue_links(self, project_path: str, iid: int) -> list[dict]:
        return self._get(f"{self._issue_path(project_path, iid)}/links")

    def get_issue_related_merge_requests(self, project_path: str, iid: int) -> list[dict]:
        return self._get(f"{self._issue_path(project_path, iid)}/related_merge_requests", per_page=_PER_PAGE)

    def create_milestone(
        self, project_path: str, title: str, description: str = "", due_date: str | None = None
    ) -> dict:
        body = {"title": title, "description": description}
        if due_date:
            body["due_date"] = due_date
        return self._post(f"/projects/{_project(project_path)}/milestones", body)

    def create_issue(
        self,
        project_path: str,
        title: str,
        description: str,
        labels: list[str] | None = None,
        milestone_id: int | None = None,
    ) -> dict:
        body: dict = {"title": title, "description": description}
        if labels:
            body["labels"] = ",".join(labels)
        if milestone_id is not None:
            body["milestone_id"] = milestone_id
        return self._post(f"/projects/{_project(project_path)}/issues", body)

    # ------------------------------------------------------------------ #
    # Epics                                                                #
    # ------------------------------------------------------------------ #

    def get_epic(self, group_path: str, iid: int) -> dict:
        """Fetch an epic work item with its hierarchy and notes via GraphQL."""
        data = self._graphql(EPIC_QUERY, {"groupFullPath": group_path, "workItemIID": str(iid)})
        work_item = (data.get("group") or {}).get("workItem")
        if not work_item:
            raise UpstreamError(f"Epic &{iid} not found in group {group_path}", status=404, url="graphql")
        return work_item
