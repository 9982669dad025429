"""Discussion facets: related MR mentions, MR discussion digest, issue comment insights."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Sequence

from mrlens_core.analysis.common import ERROR_PLACEHOLDER, render_discussions
from mrlens_core.analysis.tags import extract_all, parse_tagged
from mrlens_core.gh.entities import Discussion, Issue, MergeRequest, RelatedMRReference
from mrlens_core.providers.base import DEEP

DISCUSSIONS_ANALYSIS_MAX_TOKENS = 8192

_MR_REFERENCE_RE = re.compile(r"!([0-9]+)")


@dataclass(frozen=True)
class OpenAction:
    action: str
    owner: str
    web_url: str


@dataclass(frozen=True)
class DiscussionAnalysis:
    summary: str
    sentiment: str
    actions: tuple[OpenAction, ...] = field(default_factory=tuple)

    @classmethod
    def failed(cls) -> DiscussionAnalysis:
        return cls(ERROR_PLACEHOLDER, ERROR_PLACEHOLDER)


@dataclass(frozen=True)
class IssueDiscussionSummary:
    insights: str
    concerns: str

    @classmethod
    def failed(cls) -> IssueDiscussionSummary:
        return cls(ERROR_PLACEHOLDER, ERROR_PLACEHOLDER)


def extract_related_mrs(discussions: Sequence[Discussion]) -> list[RelatedMRReference]:
    """Collect every ``!<iid>`` mention, note by note in fetch order.

    Each occurrence is recorded; repeated mentions are kept as separate entries.
    """
    related: list[RelatedMRReference] = []
    for discussion in discussions:
        for note in discussion.notes:
            for match in _MR_REFERENCE_RE.finditer(note.body):
                related.append(RelatedMRReference(related_merge_request=match.group(1), link=note.permalink))
    return related


def analyse_discussions(
    llm,
    discussions: Sequence[Discussion],
    mr: MergeRequest,
    user_name: str,
) -> DiscussionAnalysis:
    """Digest the MR discussion and pull out the actions still open for ``user_name``."""
    prompt = f"""Analyze the discussions on the following merge request.

Title: {mr.title}
Description:
{mr.description}

Discussions:
----------------
{render_discussions(discussions)}
----------------

The person reading this is {user_name}.

Respond in the following format:
<summary>What has been discussed and decided so far? Which threads are still unresolved?</summary>
<sentiment>What is the overall tone of the discussion (e.g. aligned, contentious, blocked) and why?</sentiment>
<actions>
<action><owner>Who needs to act</owner><description>What needs to be done</description><link>The Link of the note that raised it</link></action>
</actions>
List one <action> per open action item, prioritising those that {user_name} needs to act on. Leave <actions> empty if there are none."""
    response = llm.complete(prompt, DEEP, DISCUSSIONS_ANALYSIS_MAX_TOKENS)
    parsed = parse_tagged(response, ("summary", "sentiment"))
    actions = []
    for block in extract_all(response, "action"):
        fields_ = parse_tagged(block, ("owner", "description", "link"))
        actions.append(OpenAction(action=fields_["description"], owner=fields_["owner"], web_url=fields_["link"]))
    return DiscussionAnalysis(summary=parsed["summary"], sentiment=parsed["sentiment"], actions=tuple(actions))


def get_discussion_summary(llm, issue: Issue, discussions: Sequence[Discussion]) -> IssueDiscussionSummary:
    prompt = f"""Analyze the discussions on the following issue and provide a detailed summary of the discussions.

Issue Details:
Title: {issue.title}
Description: {issue.description}

Discussions:
----------------
{render_discussions(discussions)}
----------------

Respond in the following format:
<insights>Are there any comments from team members or stakeholders that provide useful insights or clarify expectations for this issue?</insights>
<concerns>Have there been any suggestions or concerns raised in the comments that I need to address or keep in mind?</concerns>"""
    response = llm.complete(prompt, DEEP, DISCUSSIONS_ANALYSIS_MAX_TOKENS)
    parsed = parse_tagged(response, ("insights", "concerns"))
    return IssueDiscussionSummary(insights=parsed["insights"], concerns=parsed["concerns"])
