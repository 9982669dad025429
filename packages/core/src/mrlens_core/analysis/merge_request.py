"""Merge request facets: summary, review approach, per-file review, security review."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Sequence

from mrlens_core.analysis.common import ERROR_PLACEHOLDER, run_batch
from mrlens_core.analysis.review_types import ReviewType, review_focus
from mrlens_core.analysis.tags import NOT_FOUND, extract_tag, parse_tagged
from mrlens_core.gh.entities import Change, Commit, MergeRequest
from mrlens_core.providers.base import DEEP
from mrlens_core.utils.code import is_code_file, truncate

MR_SUMMARY_MAX_TOKENS = 4096
MR_ANALYSIS_MAX_TOKENS = 8192
CHANGE_SUMMARY_MAX_TOKENS = 4096
SECURITY_REVIEW_MAX_TOKENS = 8192

SKIPPED_FILE = "Skipped: not a code file."

# Ceiling on the combined diff text embedded in whole-MR prompts.
_MAX_DIFF_CHARS = 120_000
_DIFF_TRUNCATED = "\n... [diff truncated]"


@dataclass(frozen=True)
class MRSummary:
    summary: str
    key_changes: str

    @classmethod
    def failed(cls) -> MRSummary:
        return cls(ERROR_PLACEHOLDER, ERROR_PLACEHOLDER)


@dataclass(frozen=True)
class MRAnalysis:
    review_approach: str
    breakdown: str
    testing_strategy: str
    suggested_questions: str
    architectural_components: str

    @classmethod
    def failed(cls) -> MRAnalysis:
        return cls(*(ERROR_PLACEHOLDER for _ in fields(cls)))


def render_changes(changes: Sequence[Change], max_chars_per_file: int, budget: int = _MAX_DIFF_CHARS) -> str:
    blocks = []
    used = 0
    for change in changes:
        header = f"File: {change.new_path}"
        if change.old_path and change.old_path != change.new_path:
            header = f"File: {change.old_path} -> {change.new_path}"
        diff = truncate(change.diff, max_chars_per_file, _DIFF_TRUNCATED)
        if used + len(diff) > budget:
            blocks.append(f"{header}\n(diff omitted: prompt budget reached)")
            continue
        used += len(diff)
        blocks.append(f"{header}\n```diff\n{diff}\n```")
    return "\n\n".join(blocks) if blocks else "(no changes)"


def _render_commits(commits: Sequence[Commit]) -> str:
    return "\n".join(f"- {c.title}" for c in commits) or "(no commits)"


def _render_change_summaries(changes: Sequence[Change]) -> str:
    return "\n".join(f"- {c.new_path}: {c.summary}" for c in changes) or "(no changes)"


def generate_mr_summary(
    llm,
    mr: MergeRequest,
    commits: Sequence[Commit],
    changes: Sequence[Change],
    review_type: ReviewType | str = ReviewType.GENERAL,
) -> MRSummary:
    prompt = f"""You are summarizing a merge request for a reviewer.
{review_focus(review_type)}

Title: {mr.title}
Author: {mr.author}
Description:
{mr.description}

Commits:
{_render_commits(commits)}

Per-file summaries:
{_render_change_summaries(changes)}

Respond in the following format:
<summary>A concise summary of what this merge request does and why.</summary>
<keyChanges>A markdown bullet list of the most important changes, grouped by area.</keyChanges>"""
    response = llm.complete(prompt, DEEP, MR_SUMMARY_MAX_TOKENS)
    parsed = parse_tagged(response, ("summary", "keyChanges"))
    return MRSummary(summary=parsed["summary"], key_changes=parsed["keyChanges"])


def generate_mr_analysis(
    llm,
    mr: MergeRequest,
    changes: Sequence[Change],
    review_type: ReviewType | str = ReviewType.GENERAL,
    max_chars_per_file: int = 20000,
) -> MRAnalysis:
    prompt = f"""You are helping an engineer plan their review of a merge request.
{review_focus(review_type)}

Title: {mr.title}
Description:
{mr.description}

Code changes:
{render_changes(changes, max_chars_per_file)}

Respond in the following format:
<reviewApproach>In which order should the files be reviewed, and what should the reviewer look at first?</reviewApproach>
<breakdown>Break the change down into logical parts and explain each one.</breakdown>
<testingStrategy>How should this change be tested, manually and automatically? What is missing?</testingStrategy>
<suggestedQuestions>Questions the reviewer should ask the author.</suggestedQuestions>
<architecturalComponents>Which components, services or layers does this change touch, and how do they interact?</architecturalComponents>"""
    response = llm.complete(prompt, DEEP, MR_ANALYSIS_MAX_TOKENS)
    parsed = parse_tagged(
        response,
        ("reviewApproach", "breakdown", "testingStrategy", "suggestedQuestions", "architecturalComponents"),
    )
    return MRAnalysis(
        review_approach=parsed["reviewApproach"],
        breakdown=parsed["breakdown"],
        testing_strategy=parsed["testingStrategy"],
        suggested_questions=parsed["suggestedQuestions"],
        architectural_components=parsed["architecturalComponents"],
    )


def _build_change_prompt(
    change: Change,
    mr: MergeRequest,
    review_type: ReviewType | str,
    custom_prompt: str | None,
    max_chars_per_file: int,
) -> str:
    custom_section = f"\nAdditional reviewer instructions:\n{custom_prompt}\n" if custom_prompt else ""
    return f"""You are reviewing `{change.new_path}` as part of the merge request "{mr.title}".
{review_focus(review_type)}
{custom_section}
Merge request description:
{mr.description}

Diff:
```diff
{truncate(change.diff, max_chars_per_file, _DIFF_TRUNCATED)}
```

Rules:
- Focus on added lines (starting with '+') for direct issues.
- Also consider implications of removed lines (starting with '-').
- Be concise and actionable; use GitHub-flavored markdown.

Respond in the following format:
<summary>One or two sentences describing what changed in this file.</summary>
<impact>What is the impact of this change on the rest of the system? Mention risk level.</impact>
<review>Review comments for this file, or "No issues found." if there are none.</review>"""


def get_change_summaries(
    llm,
    changes: Sequence[Change],
    mr: MergeRequest,
    review_type: ReviewType | str = ReviewType.GENERAL,
    custom_prompt: str | None = None,
    max_chars_per_file: int = 20000,
    max_workers: int = 8,
) -> list[Change]:
    """Review every changed file in parallel; one result per input change, in input order."""

    def _review(change: Change) -> Change:
        if not is_code_file(change.new_path):
            return replace(change, summary=SKIPPED_FILE, impact=NOT_FOUND, review=NOT_FOUND)
        prompt = _build_change_prompt(change, mr, review_type, custom_prompt, max_chars_per_file)
        response = llm.complete(prompt, DEEP, CHANGE_SUMMARY_MAX_TOKENS)
        parsed = parse_tagged(response, ("summary", "impact", "review"))
        return replace(change, summary=parsed["summary"], impact=parsed["impact"], review=parsed["review"])

    return run_batch(
        _review,
        changes,
        lambda change, _: replace(change, summary=ERROR_PLACEHOLDER, impact=NOT_FOUND, review=NOT_FOUND),
        max_workers,
    )


def get_security_review(llm, changes: Sequence[Change], max_chars_per_file: int = 20000) -> str:
    prompt = f"""You are an application security engineer reviewing a merge request.
Identify security vulnerabilities introduced or exposed by the code changes below: injection,
broken authentication or authorization, sensitive data exposure, insecure dependencies,
unsafe deserialization, missing input validation and secrets committed to the repository.

For each finding give the file, the risk (critical, high, medium, low), an explanation and a fix.
If nothing is found, say so explicitly.

Code changes:
{render_changes(changes, max_chars_per_file)}

Respond in the following format:
<securityReview>Your findings as GitHub-flavored markdown.</securityReview>"""
    response = llm.complete(prompt, DEEP, SECURITY_REVIEW_MAX_TOKENS)
    return extract_tag(response, "securityReview")
