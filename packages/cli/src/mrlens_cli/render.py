"""Terminal rendering of composite records with rich."""

from __future__ import annotations

import dataclasses
import json

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from mrlens_core.records import CompositeRecord, EpicRecord, IssueRecord, MergeRequestRecord


def record_to_json(record: CompositeRecord) -> str:
    return json.dumps({"kind": record.kind, **dataclasses.asdict(record)}, indent=2, default=str)


def _section(console: Console, title: str, body: str) -> None:
    console.print(Panel(Markdown(body or "_(empty)_"), title=title, title_align="left", border_style="cyan"))


def _render_merge_request(console: Console, record: MergeRequestRecord) -> None:
    mr = record.merge_request
    console.print(f"[bold]!{mr.iid} {mr.title}[/bold]  by {mr.author}  [dim]{mr.state}[/dim]")
    console.print(f"[dim]{mr.source_branch} → {mr.target_branch}  pipeline: {mr.pipeline_status or 'none'}[/dim]\n")

    _section(console, "Summary", record.summary.summary)
    _section(console, "Key Changes", record.summary.key_changes)
    _section(console, "Review Approach", record.analysis.review_approach)
    _section(console, "Breakdown", record.analysis.breakdown)
    _section(console, "Testing Strategy", record.analysis.testing_strategy)
    _section(console, "Suggested Questions", record.analysis.suggested_questions)
    _section(console, "Architectural Components", record.analysis.architectural_components)

    files = Table(title="Files", show_header=True, header_style="bold cyan")
    files.add_column("File", style="bold", max_width=50)
    files.add_column("Summary")
    files.add_column("Impact")
    for change in record.code_changes:
        files.add_row(change.new_path, change.summary, change.impact)
    console.print(files)

    _section(console, "Security Review", record.security_review)
    _section(
        console,
        f"Discussions ({record.discussions_analysis.sentiment})",
        record.discussions_analysis.summary,
    )

    if record.discussions_analysis.actions:
        actions = Table(title="Open Actions", show_header=True, header_style="bold cyan")
        actions.add_column("Owner", width=20)
        actions.add_column("Action")
        actions.add_column("Link", style="dim")
        for action in record.discussions_analysis.actions:
            actions.add_row(action.owner, action.action, action.web_url)
        console.print(actions)

    if record.failing_jobs:
        jobs = Table(title="Failing Jobs", show_header=True, header_style="bold red")
        jobs.add_column("Job", style="bold")
        jobs.add_column("Stage", width=12)
        jobs.add_column("Likely Reason")
        for job in record.failing_jobs:
            jobs.add_row(job.name, job.stage, job.reason)
        console.print(jobs)

    for issue in record.related_issues:
        _section(console, f"Related issue #{issue.iid}: {issue.title}", issue.summary)

    if record.related_mrs:
        console.print("[bold]Mentioned merge requests[/bold]")
        for ref in record.related_mrs:
            console.print(f"  {ref.related_merge_request}  [dim]{ref.link}[/dim]")


def _render_issue(console: Console, record: IssueRecord) -> None:
    issue = record.issue
    console.print(f"[bold]#{issue.iid} {issue.title}[/bold]  by {issue.author}  [dim]{issue.state}[/dim]\n")

    u = record.understanding
    _section(console, "Main Problem", u.main_problem)
    _section(console, "Requirements", u.requirements)
    _section(console, "Use Case", u.use_case)
    _section(console, "Unfamiliar Terms", u.unfamiliar_terms)
    _section(console, "Key Terms", u.key_terms)
    _section(console, "Discussion Insights", record.discussion_summary.insights)
    _section(console, "Concerns", record.discussion_summary.concerns)
    _section(console, "Security Recommendations", record.security_recommendations)

    for linked in record.linked_issues:
        _section(console, f"Linked issue #{linked.iid}: {linked.title}", linked.summary)
    for mr in record.merge_requests:
        _section(console, f"Merge request !{mr.iid}: {mr.title}", mr.summary)

    if record.breakdown:
        table = Table(title="Suggested Breakdown", show_header=True, header_style="bold cyan")
        table.add_column("#", width=3, justify="right")
        table.add_column("Title", style="bold", max_width=40)
        table.add_column("Description")
        for i, proposed in enumerate(record.breakdown, 1):
            table.add_row(str(i), proposed.title, proposed.description)
        console.print(table)


def _render_epic(console: Console, record: EpicRecord) -> None:
    epic = record.epic
    console.print(f"[bold]&{epic.iid} {epic.title}[/bold]  by {epic.author}  [dim]{epic.state}[/dim]")
    if epic.parent_title:
        console.print(f"[dim]Parent: {epic.parent_title}[/dim]")
    console.print()

    _section(console, "Overview", record.overview.summary)
    _section(console, "Progress", record.overview.progress)
    _section(console, "Risks", record.overview.risks)

    if epic.children:
        table = Table(title="Children", show_header=True, header_style="bold cyan")
        table.add_column("Type", width=8)
        table.add_column("Title", max_width=50)
        table.add_column("State", width=8)
        table.add_column("Milestone", width=16)
        for child in epic.children:
            table.add_row(child.work_item_type, child.title, child.state, child.milestone)
        console.print(table)


_RENDERERS = {
    MergeRequestRecord: _render_merge_request,
    IssueRecord: _render_issue,
    EpicRecord: _render_epic,
}


def render_record(console: Console, record: CompositeRecord) -> None:
    _RENDERERS[type(record)](console, record)
    if record.degraded:
        console.print(f"[yellow]Some sections could not be generated: {', '.join(record.degraded)}[/yellow]")
