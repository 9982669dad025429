"""Composite records handed back by the aggregation pipeline.

One variant per entity kind, each carrying only its own relations and facets.
A record is complete when returned: a facet that failed holds the
"Error generating summary" placeholder and is named in ``degraded``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from mrlens_core.analysis.discussions import DiscussionAnalysis, IssueDiscussionSummary
from mrlens_core.analysis.epic import EpicOverview
from mrlens_core.analysis.issue import IssueUnderstanding, ProposedIssue
from mrlens_core.analysis.merge_request import MRAnalysis, MRSummary
from mrlens_core.gh.entities import (
    Change,
    Commit,
    Discussion,
    Epic,
    EpicChild,
    Issue,
    IssueRef,
    Job,
    MergeRequest,
    MergeRequestRef,
    RelatedMRReference,
)


@dataclass(frozen=True)
class MergeRequestRecord:
    project_path: str
    merge_request: MergeRequest
    commits: tuple[Commit, ...]
    related_issues: tuple[IssueRef, ...]
    discussions: tuple[Discussion, ...]
    code_changes: tuple[Change, ...]
    related_mrs: tuple[RelatedMRReference, ...]
    summary: MRSummary
    analysis: MRAnalysis
    security_review: str
    discussions_analysis: DiscussionAnalysis
    failing_jobs: tuple[Job, ...]
    degraded: tuple[str, ...] = ()

    kind = "merge_request"

    @property
    def id(self) -> int:
        return self.merge_request.id

    @property
    def title(self) -> str:
        return self.merge_request.title

    @property
    def web_url(self) -> str:
        return self.merge_request.web_url


@dataclass(frozen=True)
class IssueRecord:
    project_path: str
    issue: Issue
    discussions: tuple[Discussion, ...]
    linked_issues: tuple[IssueRef, ...]
    merge_requests: tuple[MergeRequestRef, ...]
    understanding: IssueUnderstanding
    discussion_summary: IssueDiscussionSummary
    security_recommendations: str
    breakdown: tuple[ProposedIssue, ...]
    degraded: tuple[str, ...] = ()

    kind = "issue"

    @property
    def id(self) -> int:
        return self.issue.id

    @property
    def title(self) -> str:
        return self.issue.title

    @property
    def web_url(self) -> str:
        return self.issue.web_url


@dataclass(frozen=True)
class EpicRecord:
    group_path: str
    epic: Epic
    overview: EpicOverview
    degraded: tuple[str, ...] = ()

    kind = "epic"

    @property
    def id(self) -> str:
        return self.epic.id

    @property
    def title(self) -> str:
        return self.epic.title

    @property
    def web_url(self) -> str:
        return self.epic.web_url

    @property
    def issues(self) -> list[EpicChild]:
        return [c for c in self.epic.children if not c.is_epic]

    @property
    def child_epics(self) -> list[EpicChild]:
        return [c for c in self.epic.children if c.is_epic]


CompositeRecord = Union[MergeRequestRecord, IssueRecord, EpicRecord]
