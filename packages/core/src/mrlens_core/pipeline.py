"""Aggregation pipeline: fetch an MR, issue or epic with its relations, analyze it, merge.

States:
    IDLE → FETCHING → ANALYZING → MERGED → RETURNED
    FETCHING / ANALYZING → FAILED

All sibling fetches for one entity are issued at once and joined; if any
required fetch fails nothing is analyzed and the run fails with
ReauthenticationRequired (an expired token is the usual cause). Optional
fetches degrade to an empty value. Analysis facets run concurrently and never
fail the run: a facet that raises is replaced by its placeholder and listed in
``record.degraded``. A pipeline instance runs once; there is no retry.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import replace
from enum import Enum
from typing import Any, Callable

from mrlens_core.analysis.common import ERROR_PLACEHOLDER, get_issue_summaries
from mrlens_core.analysis.discussions import (
    DiscussionAnalysis,
    IssueDiscussionSummary,
    analyse_discussions,
    extract_related_mrs,
    get_discussion_summary,
)
from mrlens_core.analysis.epic import EpicOverview, generate_epic_overview
from mrlens_core.analysis.issue import (
    IssueUnderstanding,
    breakdown_issue,
    get_issue_security_recommendations,
    get_issue_understanding,
    get_merge_request_summaries,
)
from mrlens_core.analysis.merge_request import (
    MRAnalysis,
    MRSummary,
    generate_mr_analysis,
    generate_mr_summary,
    get_change_summaries,
    get_security_review,
)
from mrlens_core.analysis.pipeline_failures import find_reasons_for_failure
from mrlens_core.analysis.review_types import ReviewType
from mrlens_core.analysis.tags import NOT_FOUND
from mrlens_core.errors import AuthError, DegradedAnalysisError, ReauthenticationRequired, UpstreamError
from mrlens_core.gh.entities import (
    Change,
    Commit,
    Discussion,
    Epic,
    Issue,
    IssueRef,
    Job,
    MergeRequest,
    MergeRequestRef,
)
from mrlens_core.gh.urls import EpicTarget, IssueTarget, MergeRequestTarget, Target, parse_target
from mrlens_core.providers.anthropic import AnthropicLLM
from mrlens_core.providers.openai import OpenAILLM
from mrlens_core.records import CompositeRecord, EpicRecord, IssueRecord, MergeRequestRecord
from mrlens_core.session import AuthenticatedSession, require_session
from mrlens_notify.models import action_event, run_event

logger = logging.getLogger(__name__)

API_ERROR_SIGNATURE = "API error"
_FETCH_FAILED = "GitHub API error in one or more requests"


class PipelineState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    ANALYZING = "analyzing"
    MERGED = "merged"
    RETURNED = "returned"
    FAILED = "failed"


def requires_sign_out(error: BaseException) -> bool:
    """True when an error carries the API-error signature that means "sign in again"."""
    return isinstance(error, ReauthenticationRequired) or (
        isinstance(error, UpstreamError) and API_ERROR_SIGNATURE in str(error)
    )


def get_llm(config: dict):
    provider = config["provider"]
    if provider == "anthropic":
        return AnthropicLLM(api_key=config["anthropic_api_key"])
    if provider == "openai":
        return OpenAILLM(api_key=config["openai_api_key"])
    raise ValueError(f"Unknown model provider: {provider!r}. Choose 'anthropic' or 'openai'.")


class AggregationPipeline:
    def __init__(self, client, llm, config: dict | None = None, user_name: str = "Unknown"):
        config = config or {}
        self.client = client
        self.llm = llm
        self.user_name = user_name
        self.max_workers = config.get("max_workers", 8)
        self.max_chars = config.get("max_chars_per_file", 20000)
        self.state = PipelineState.IDLE
        self.history: list[PipelineState] = [PipelineState.IDLE]
        self.degraded: list[str] = []

    def _transition(self, state: PipelineState) -> None:
        logger.debug("Pipeline %s → %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)

    # ------------------------------------------------------------------ #
    # Entry point                                                          #
    # ------------------------------------------------------------------ #

    def run(
        self,
        target: Target,
        review_type: ReviewType | str = ReviewType.GENERAL,
        custom_prompt: str | None = None,
    ) -> CompositeRecord:
        if self.state is not PipelineState.IDLE:
            raise RuntimeError("A pipeline runs once; start a new one for another submission.")
        try:
            if isinstance(target, MergeRequestTarget):
                record = self._run_merge_request(target, review_type, custom_prompt)
            elif isinstance(target, IssueTarget):
                record = self._run_issue(target)
            elif isinstance(target, EpicTarget):
                record = self._run_epic(target)
            else:
                raise TypeError(f"Unsupported target: {target!r}")
        except Exception:
            self._transition(PipelineState.FAILED)
            raise
        self._transition(PipelineState.RETURNED)
        return record

    # ------------------------------------------------------------------ #
    # Join barriers                                                        #
    # ------------------------------------------------------------------ #

    def _fetch_all(
        self,
        required: dict[str, Callable[[], Any]],
        optional: dict[str, Callable[[], Any]] | None = None,
    ) -> dict[str, Any]:
        """Run every fetch concurrently and wait for all of them to settle.

        Any failed required fetch fails the whole stage. Optional fetches that
        fail resolve to an empty list.
        """
        self._transition(PipelineState.FETCHING)
        optional = optional or {}
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = {name: pool.submit(fn) for name, fn in required.items()}
            optional_futures = {name: pool.submit(fn) for name, fn in optional.items()}
            wait([*futures.values(), *optional_futures.values()])

        failures = [(name, f.exception()) for name, f in futures.items() if f.exception() is not None]
        if failures:
            for name, exc in failures:
                logger.error("Required fetch '%s' failed: %s", name, exc)
            first = failures[0][1]
            if isinstance(first, AuthError):
                raise first
            raise ReauthenticationRequired(
                _FETCH_FAILED,
                status=getattr(first, "status", None),
                url=getattr(first, "url", None),
            ) from first

        results = {name: f.result() for name, f in futures.items()}
        for name, future in optional_futures.items():
            exc = future.exception()
            if exc is not None:
                logger.warning("Optional fetch '%s' failed, continuing without it: %s", name, exc)
                results[name] = []
            else:
                results[name] = future.result()
        return results

    def _analyze(self, facets: dict[str, tuple[Callable[[], Any], Callable[[], Any]]]) -> dict[str, Any]:
        """Run every facet concurrently; a facet that raises resolves to its fallback."""
        if self.state is not PipelineState.ANALYZING:
            self._transition(PipelineState.ANALYZING)
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = {name: pool.submit(fn) for name, (fn, _) in facets.items()}
            wait(list(futures.values()))

        results = {}
        for name, future in futures.items():
            exc = future.exception()
            if exc is None:
                results[name] = future.result()
                continue
            logger.warning("Analysis facet degraded: %s", DegradedAnalysisError(name, exc))
            self.degraded.append(name)
            results[name] = facets[name][1]()
        return results

    # ------------------------------------------------------------------ #
    # Merge requests                                                       #
    # ------------------------------------------------------------------ #

    def _failing_jobs(self, project_path: str, iid: int) -> list[Job]:
        pipelines = self.client.get_merge_request_pipelines(project_path, iid)
        if not pipelines:
            return []
        # Newest pipeline first
        latest = pipelines[0]
        if latest.get("status") != "failed":
            return []
        return [Job.from_api(j) for j in self.client.get_pipeline_jobs(project_path, latest["id"], "failed")]

    def _run_merge_request(
        self,
        target: MergeRequestTarget,
        review_type: ReviewType | str,
        custom_prompt: str | None,
    ) -> MergeRequestRecord:
        client, llm = self.client, self.llm
        path, iid = target.project_path, target.iid

        raw = self._fetch_all(
            {
                "merge_request": lambda: client.get_merge_request(path, iid),
                "commits": lambda: client.get_merge_request_commits(path, iid),
                "related_issues": lambda: client.get_merge_request_related_issues(path, iid),
                "changes": lambda: client.get_merge_request_diffs(path, iid),
                "discussions": lambda: client.get_merge_request_discussions(path, iid),
            },
            optional={"failing_jobs": lambda: self._failing_jobs(path, iid)},
        )

        mr = MergeRequest.from_api(raw["merge_request"])
        commits = tuple(Commit.from_api(c) for c in raw["commits"])
        issues = [IssueRef.from_api(i) for i in raw["related_issues"]]
        changes = [Change.from_api(c, mr.web_url) for c in raw["changes"]]
        discussions = tuple(Discussion.from_api(d, mr.web_url) for d in raw["discussions"])
        jobs: list[Job] = raw["failing_jobs"]
        related_mrs = tuple(extract_related_mrs(discussions))

        first = self._analyze(
            {
                "related_issues": (
                    lambda: get_issue_summaries(llm, client, issues, self.max_workers),
                    lambda: [replace(i, summary=ERROR_PLACEHOLDER) for i in issues],
                ),
                "code_changes": (
                    lambda: get_change_summaries(
                        llm, changes, mr, review_type, custom_prompt, self.max_chars, self.max_workers
                    ),
                    lambda: [
                        replace(c, summary=ERROR_PLACEHOLDER, impact=NOT_FOUND, review=NOT_FOUND) for c in changes
                    ],
                ),
                "security_review": (
                    lambda: get_security_review(llm, changes, self.max_chars),
                    lambda: ERROR_PLACEHOLDER,
                ),
                "failing_jobs": (
                    lambda: find_reasons_for_failure(llm, client, path, jobs, mr, changes, self.max_workers),
                    lambda: [replace(j, reason=ERROR_PLACEHOLDER) for j in jobs],
                ),
            }
        )
        reviewed_changes = first["code_changes"]

        second = self._analyze(
            {
                "summary": (
                    lambda: generate_mr_summary(llm, mr, commits, reviewed_changes, review_type),
                    MRSummary.failed,
                ),
                "analysis": (
                    lambda: generate_mr_analysis(llm, mr, changes, review_type, self.max_chars),
                    MRAnalysis.failed,
                ),
                "discussions_analysis": (
                    lambda: analyse_discussions(llm, discussions, mr, self.user_name),
                    DiscussionAnalysis.failed,
                ),
            }
        )

        self._transition(PipelineState.MERGED)
        return MergeRequestRecord(
            project_path=path,
            merge_request=mr,
            commits=commits,
            related_issues=tuple(first["related_issues"]),
            discussions=discussions,
            code_changes=tuple(reviewed_changes),
            related_mrs=related_mrs,
            summary=second["summary"],
            analysis=second["analysis"],
            security_review=first["security_review"],
            discussions_analysis=second["discussions_analysis"],
            failing_jobs=tuple(first["failing_jobs"]),
            degraded=tuple(self.degraded),
        )

    # ------------------------------------------------------------------ #
    # Issues                                                               #
    # ------------------------------------------------------------------ #

    def _run_issue(self, target: IssueTarget) -> IssueRecord:
        client, llm = self.client, self.llm
        path, iid = target.project_path, target.iid

        raw = self._fetch_all(
            {
                "issue": lambda: client.get_issue(path, iid),
                "discussions": lambda: client.get_issue_discussions(path, iid),
                "linked_issues": lambda: client.get_issue_links(path, iid),
                "merge_requests": lambda: client.get_issue_related_merge_requests(path, iid),
            }
        )

        issue = Issue.from_api(raw["issue"])
        discussions = tuple(Discussion.from_api(d, issue.web_url) for d in raw["discussions"])
        linked = [IssueRef.from_api(i) for i in raw["linked_issues"]]
        merge_requests = [MergeRequestRef.from_api(m) for m in raw["merge_requests"]]

        results = self._analyze(
            {
                "understanding": (lambda: get_issue_understanding(llm, issue), IssueUnderstanding.failed),
                "discussion_summary": (
                    lambda: get_discussion_summary(llm, issue, discussions),
                    IssueDiscussionSummary.failed,
                ),
                "linked_issues": (
                    lambda: get_issue_summaries(llm, client, linked, self.max_workers),
                    lambda: [replace(i, summary=ERROR_PLACEHOLDER) for i in linked],
                ),
                "merge_requests": (
                    lambda: get_merge_request_summaries(llm, merge_requests, self.max_workers),
                    lambda: [replace(m, summary=ERROR_PLACEHOLDER) for m in merge_requests],
                ),
                "security_recommendations": (
                    lambda: get_issue_security_recommendations(llm, issue),
                    lambda: ERROR_PLACEHOLDER,
                ),
                "breakdown": (lambda: breakdown_issue(llm, issue), list),
            }
        )

        self._transition(PipelineState.MERGED)
        return IssueRecord(
            project_path=path,
            issue=issue,
            discussions=discussions,
            linked_issues=tuple(results["linked_issues"]),
            merge_requests=tuple(results["merge_requests"]),
            understanding=results["understanding"],
            discussion_summary=results["discussion_summary"],
            security_recommendations=results["security_recommendations"],
            breakdown=tuple(results["breakdown"]),
            degraded=tuple(self.degraded),
        )

    # ------------------------------------------------------------------ #
    # Epics                                                                #
    # ------------------------------------------------------------------ #

    def _run_epic(self, target: EpicTarget) -> EpicRecord:
        client, llm = self.client, self.llm
        raw = self._fetch_all({"epic": lambda: client.get_epic(target.group_path, target.iid)})
        epic = Epic.from_graphql(raw["epic"])

        results = self._analyze({"overview": (lambda: generate_epic_overview(llm, epic), EpicOverview.failed)})

        self._transition(PipelineState.MERGED)
        return EpicRecord(
            group_path=target.group_path,
            epic=epic,
            overview=results["overview"],
            degraded=tuple(self.degraded),
        )


def analyze(
    url: str,
    review_type: ReviewType | str = ReviewType.GENERAL,
    custom_prompt: str | None = None,
    *,
    session: AuthenticatedSession | None,
    client,
    llm,
    config: dict | None = None,
    notifier=None,
) -> CompositeRecord:
    """Analyze the MR, issue or epic at ``url`` and return its composite record.

    The URL and the session are both validated before any network call.
    """
    target = parse_target(url)
    session = require_session(session)

    if notifier is not None:
        notifier.notify(run_event(session.user_name, session.user_email, url, target.kind))
        if custom_prompt:
            notifier.notify(action_event(session.user_name, "custom_prompt_code_comments"))

    pipeline = AggregationPipeline(client, llm, config, user_name=session.user_name)
    return pipeline.run(target, review_type, custom_prompt)
