"""Epic facet: an overview of the epic, its children and its discussion."""

from __future__ import annotations

from dataclasses import dataclass

from mrlens_core.analysis.common import ERROR_PLACEHOLDER, render_discussions
from mrlens_core.analysis.tags import parse_tagged
from mrlens_core.gh.entities import Epic
from mrlens_core.providers.base import DEEP

EPIC_OVERVIEW_MAX_TOKENS = 8192


@dataclass(frozen=True)
class EpicOverview:
    summary: str
    progress: str
    risks: str

    @classmethod
    def failed(cls) -> EpicOverview:
        return cls(ERROR_PLACEHOLDER, ERROR_PLACEHOLDER, ERROR_PLACEHOLDER)


def _render_children(epic: Epic) -> str:
    lines = []
    for child in epic.children:
        milestone = f" [milestone: {child.milestone}]" if child.milestone else ""
        lines.append(f"- ({child.work_item_type or 'Item'}, {child.state}) {child.title}{milestone}")
    return "\n".join(lines) or "(no child items)"


def generate_epic_overview(llm, epic: Epic) -> EpicOverview:
    prompt = f"""You are helping an engineer understand an epic.

Title: {epic.title}
Parent: {epic.parent_title or "none"}
State: {epic.state}
Description:
{epic.description}

Child issues and epics:
{_render_children(epic)}

Discussions:
----------------
{render_discussions(epic.discussions)}
----------------

Respond in the following format:
<summary>What is this epic trying to achieve?</summary>
<progress>How far along is it, judging by the state of the child items? What is left?</progress>
<risks>What risks, blockers or open questions stand out?</risks>"""
    response = llm.complete(prompt, DEEP, EPIC_OVERVIEW_MAX_TOKENS)
    parsed = parse_tagged(response, ("summary", "progress", "risks"))
    return EpicOverview(summary=parsed["summary"], progress=parsed["progress"], risks=parsed["risks"])
