"""Snapshot dataclasses for everything fetched from the code host.

Built once per request from raw API JSON and never written back. Generated
fields on Change, Job and the *Ref types are filled by returning a new
instance (``dataclasses.replace``), never by mutating a fetched one.
"""

from __future__ import annotations

from dataclasses import dataclass


def _author_name(raw: dict | None) -> str:
    raw = raw or {}
    return raw.get("name") or raw.get("username") or "Unknown"


@dataclass(frozen=True)
class User:
    id: int
    username: str
    email: str
    name: str
    state: str

    @classmethod
    def from_api(cls, raw: dict) -> User:
        return cls(
            id=raw["id"],
            username=raw.get("username", ""),
            email=raw.get("email") or raw.get("public_email") or "",
            name=raw.get("name", ""),
            state=raw.get("state", ""),
        )


@dataclass(frozen=True)
class Note:
    id: str
    author: str
    body: str
    created_at: str
    permalink: str
    system: bool = False

    @classmethod
    def from_api(cls, raw: dict, entity_url: str = "") -> Note:
        note_id = str(raw.get("id", ""))
        permalink = raw.get("web_url") or raw.get("url") or (f"{entity_url}#note_{note_id}" if entity_url else "")
        return cls(
            id=note_id,
            author=_author_name(raw.get("author")),
            body=raw.get("body") or "",
            created_at=raw.get("created_at") or raw.get("createdAt") or "",
            permalink=permalink,
            system=bool(raw.get("system", False)),
        )


@dataclass(frozen=True)
class Discussion:
    id: str
    notes: tuple[Note, ...] = ()

    @property
    def message(self) -> str:
        return "\n".join(f"{n.author}: {n.body}" for n in self.notes)

    @classmethod
    def from_api(cls, raw: dict, entity_url: str = "") -> Discussion:
        return cls(
            id=str(raw.get("id", "")),
            notes=tuple(Note.from_api(n, entity_url) for n in raw.get("notes") or []),
        )

    @classmethod
    def from_graphql(cls, raw: dict, entity_url: str = "") -> Discussion:
        edges = ((raw.get("notes") or {}).get("edges")) or []
        return cls(
            id=str(raw.get("id", "")),
            notes=tuple(Note.from_api(e.get("node") or {}, entity_url) for e in edges),
        )


@dataclass(frozen=True)
class Commit:
    id: str
    title: str
    message: str
    author_name: str
    web_url: str

    @classmethod
    def from_api(cls, raw: dict) -> Commit:
        return cls(
            id=raw.get("id", ""),
            title=raw.get("title", ""),
            message=raw.get("message", ""),
            author_name=raw.get("author_name", ""),
            web_url=raw.get("web_url", ""),
        )


@dataclass(frozen=True)
class Change:
    old_path: str
    new_path: str
    diff: str
    new_file: bool = False
    deleted_file: bool = False
    renamed_file: bool = False
    web_url: str = ""
    summary: str = ""
    impact: str = ""
    review: str = ""

    @classmethod
    def from_api(cls, raw: dict, mr_url: str = "") -> Change:
        return cls(
            old_path=raw.get("old_path", ""),
            new_path=raw.get("new_path", ""),
            diff=raw.get("diff") or "",
            new_file=bool(raw.get("new_file", False)),
            deleted_file=bool(raw.get("deleted_file", False)),
            renamed_file=bool(raw.get("renamed_file", False)),
            web_url=f"{mr_url}/diffs" if mr_url else "",
        )


@dataclass(frozen=True)
class Job:
    id: int
    name: str
    stage: str
    status: str
    web_url: str
    failure_reason: str = ""
    reason: str = ""

    @classmethod
    def from_api(cls, raw: dict) -> Job:
        return cls(
            id=raw["id"],
            name=raw.get("name", ""),
            stage=raw.get("stage", ""),
            status=raw.get("status", ""),
            web_url=raw.get("web_url", ""),
            failure_reason=raw.get("failure_reason") or "",
        )


@dataclass(frozen=True)
class IssueRef:
    """An issue linked from the entity under review."""

    id: int
    iid: int
    project_id: int | str
    title: str
    description: str
    state: str
    web_url: str
    summary: str = ""

    @classmethod
    def from_api(cls, raw: dict) -> IssueRef:
        return cls(
            id=raw.get("id", 0),
            iid=raw.get("iid", 0),
            project_id=raw.get("project_id", ""),
            title=raw.get("title", ""),
            description=raw.get("description") or "",
            state=raw.get("state", ""),
            web_url=raw.get("web_url", ""),
        )


@dataclass(frozen=True)
class MergeRequestRef:
    """A merge request linked from an issue."""

    id: int
    iid: int
    project_id: int | str
    title: str
    description: str
    state: str
    web_url: str
    summary: str = ""

    @classmethod
    def from_api(cls, raw: dict) -> MergeRequestRef:
        return cls(
            id=raw.get("id", 0),
            iid=raw.get("iid", 0),
            project_id=raw.get("project_id", ""),
            title=raw.get("title", ""),
            description=raw.get("description") or "",
            state=raw.get("state", ""),
            web_url=raw.get("web_url", ""),
        )


@dataclass(frozen=True)
class RelatedMRReference:
    """A ``!<iid>`` mention found in a discussion note."""

    related_merge_request: str
    link: str


@dataclass(frozen=True)
class EpicChild:
    id: str
    iid: str
    title: str
    description: str
    state: str
    web_url: str
    work_item_type: str
    milestone: str = ""

    @property
    def is_epic(self) -> bool:
        return self.work_item_type.lower() == "epic"

    @classmethod
    def from_graphql(cls, raw: dict) -> EpicChild:
        milestone = ""
        for widget in raw.get("widgets") or []:
            if widget and widget.get("milestone"):
                milestone = widget["milestone"].get("title", "")
        return cls(
            id=str(raw.get("id", "")),
            iid=str(raw.get("iid", "")),
            title=raw.get("title", ""),
            description=raw.get("description") or "",
            state=raw.get("state", ""),
            web_url=raw.get("webUrl", ""),
            work_item_type=(raw.get("workItemType") or {}).get("name", ""),
            milestone=milestone,
        )


@dataclass(frozen=True)
class Epic:
    """The flattened GraphQL work item: hierarchy and notes widgets unpacked."""

    id: str
    iid: str
    title: str
    description: str
    state: str
    web_url: str
    author: str
    created_at: str
    closed_at: str | None
    parent_title: str | None = None
    children: tuple[EpicChild, ...] = ()
    discussions: tuple[Discussion, ...] = ()

    @classmethod
    def from_graphql(cls, raw: dict) -> Epic:
        web_url = raw.get("webUrl", "")
        parent_title = None
        children: tuple[EpicChild, ...] = ()
        discussions: tuple[Discussion, ...] = ()
        for widget in raw.get("widgets") or []:
            if not widget:
                continue
            if "children" in widget:
                nodes = (widget.get("children") or {}).get("nodes") or []
                children = tuple(EpicChild.from_graphql(n) for n in nodes)
                parent_title = (widget.get("parent") or {}).get("title")
            if "discussions" in widget:
                nodes = (widget.get("discussions") or {}).get("nodes") or []
                discussions = tuple(Discussion.from_graphql(n, web_url) for n in nodes)
        return cls(
            id=str(raw.get("id", "")),
            iid=str(raw.get("iid", "")),
            title=raw.get("title", ""),
            description=raw.get("description") or "",
            state=raw.get("state", ""),
            web_url=web_url,
            author=_author_name(raw.get("author")),
            created_at=raw.get("createdAt", ""),
            closed_at=raw.get("closedAt"),
            parent_title=parent_title,
            children=children,
            discussions=discussions,
        )


@dataclass(frozen=True)
class MergeRequest:
    id: int
    iid: int
    project_id: int | str
    title: str
    description: str
    author: str
    created_at: str
    state: str
    web_url: str
    sha: str
    source_branch: str
    target_branch: str
    pipeline_status: str | None
    approval_status: str

    @classmethod
    def from_api(cls, raw: dict) -> MergeRequest:
        pipeline = raw.get("head_pipeline") or raw.get("pipeline") or {}
        return cls(
            id=raw["id"],
            iid=raw.get("iid", 0),
            project_id=raw.get("project_id", ""),
            title=raw.get("title", ""),
            description=raw.get("description") or "",
            author=_author_name(raw.get("author")),
            created_at=raw.get("created_at", ""),
            state=raw.get("state", ""),
            web_url=raw.get("web_url", ""),
            sha=raw.get("sha", ""),
            source_branch=raw.get("source_branch", ""),
            target_branch=raw.get("target_branch", ""),
            pipeline_status=pipeline.get("status"),
            approval_status=raw.get("detailed_merge_status") or raw.get("merge_status") or "",
        )


@dataclass(frozen=True)
class Issue:
    id: int
    iid: int
    project_id: int | str
    title: str
    description: str
    author: str
    created_at: str
    state: str
    web_url: str
    labels: tuple[str, ...] = ()
    milestone_id: int | None = None
    due_date: str | None = None

    @classmethod
    def from_api(cls, raw: dict) -> Issue:
        return cls(
            id=raw["id"],
            iid=raw.get("iid", 0),
            project_id=raw.get("project_id", ""),
            title=raw.get("title", ""),
            description=raw.get("description") or "",
            author=_author_name(raw.get("author")),
            created_at=raw.get("created_at", ""),
            state=raw.get("state", ""),
            web_url=raw.get("web_url", ""),
            labels=tuple(raw.get("labels") or ()),
            milestone_id=(raw.get("milestone") or {}).get("id"),
            due_date=raw.get("due_date"),
        )
