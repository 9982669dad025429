"""Issue facets: understanding, security recommendations, breakdown, related MR summaries."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Sequence

from mrlens_core.analysis.common import ERROR_PLACEHOLDER, run_batch
from mrlens_core.analysis.tags import NOT_FOUND, extract_all, extract_tag, parse_tagged
from mrlens_core.gh.entities import Issue, MergeRequestRef
from mrlens_core.providers.base import DEEP, FAST

ISSUE_ANALYSIS_MAX_TOKENS = 8192
SECURITY_RECOMMENDATIONS_MAX_TOKENS = 4096
BREAKDOWN_MAX_TOKENS = 8192
MR_SUMMARY_MAX_TOKENS = 2048


@dataclass(frozen=True)
class IssueUnderstanding:
    main_problem: str
    requirements: str
    use_case: str
    unfamiliar_terms: str
    key_terms: str

    @classmethod
    def failed(cls) -> IssueUnderstanding:
        return cls(*(ERROR_PLACEHOLDER for _ in fields(cls)))


@dataclass(frozen=True)
class ProposedIssue:
    title: str
    description: str


def get_issue_understanding(llm, issue: Issue) -> IssueUnderstanding:
    prompt = f"""Analyze the following issue and provide a comprehensive breakdown:

Title: {issue.title}
Description: {issue.description}

Please provide the following analysis:
- Main problem and desired outcome
- Key requirements and details
- Use case analysis (real-world scenario, failure implications, success criteria)
- Unfamiliar terms or concepts
- Key terms and concepts

Respond in the following format:
<mainProblem>What is the main problem described in the issue, and what outcome is expected?</mainProblem>
<requirements>Are there any specific requirements or details mentioned in the issue description that I need to consider while working on this?</requirements>
<useCase>What is a real world use case scenario for this issue? What does failure of this issue look like or imply for the user? What does success imply for the user?</useCase>
<unfamiliarTerms>Are there any unfamiliar terms or keywords in the issue? What do they mean?</unfamiliarTerms>
<keyTerms>What are the key terms or concepts in this issue that I need to fully understand to work effectively?</keyTerms>"""
    response = llm.complete(prompt, DEEP, ISSUE_ANALYSIS_MAX_TOKENS)
    parsed = parse_tagged(response, ("mainProblem", "requirements", "useCase", "unfamiliarTerms", "keyTerms"))
    return IssueUnderstanding(
        main_problem=parsed["mainProblem"],
        requirements=parsed["requirements"],
        use_case=parsed["useCase"],
        unfamiliar_terms=parsed["unfamiliarTerms"],
        key_terms=parsed["keyTerms"],
    )


def get_issue_security_recommendations(llm, issue: Issue) -> str:
    prompt = f"""You are an application security engineer. Before any code is written for the issue
below, list the security considerations the implementer must keep in mind: threat model,
authorization checks, input validation, data handling and anything that needs a security review.

Title: {issue.title}
Description: {issue.description}

Respond in the following format:
<recommendations>Your recommendations as GitHub-flavored markdown.</recommendations>"""
    response = llm.complete(prompt, DEEP, SECURITY_RECOMMENDATIONS_MAX_TOKENS)
    return extract_tag(response, "recommendations")


def breakdown_issue(llm, issue: Issue) -> list[ProposedIssue]:
    """Propose smaller, independently shippable issues that together deliver ``issue``.

    Blocks whose title is missing are dropped; an untagged response yields an empty list.
    """
    prompt = f"""Break the following issue down into smaller issues that can each be implemented,
reviewed and shipped independently. Keep the list short and ordered by implementation order.

Title: {issue.title}
Description: {issue.description}

Respond with one block per proposed issue, in the following format:
<issue><title>Short imperative title</title><description>What needs to be done and how to verify it, in markdown.</description></issue>"""
    response = llm.complete(prompt, DEEP, BREAKDOWN_MAX_TOKENS)
    proposed = []
    for block in extract_all(response, "issue"):
        parsed = parse_tagged(block, ("title", "description"))
        if parsed["title"] == NOT_FOUND:
            continue
        proposed.append(ProposedIssue(title=parsed["title"], description=parsed["description"]))
    return proposed


def get_merge_request_summaries(
    llm, merge_requests: Sequence[MergeRequestRef], max_workers: int = 8
) -> list[MergeRequestRef]:
    def _summarize(mr: MergeRequestRef) -> MergeRequestRef:
        prompt = f"""Summarize the following merge request in two or three sentences.
Say what it changes and whether it is merged, open or closed.

Title: {mr.title}
State: {mr.state}
Description: {mr.description}"""
        return replace(mr, summary=llm.complete(prompt, FAST, MR_SUMMARY_MAX_TOKENS))

    return run_batch(_summarize, merge_requests, lambda mr, _: replace(mr, summary=ERROR_PLACEHOLDER), max_workers)
