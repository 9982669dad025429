"""Classify and parse merge request, issue and epic URLs.

Classification is by substring, first match wins: anything mentioning
``merge_requests`` is a merge request, then ``issues``, and everything else is
treated as an epic. Each shape is then parsed with a strict pattern so a
malformed URL is rejected before any network call is made.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Union

from mrlens_core.errors import InvalidInputError

_MR_RE = re.compile(r"^https?://[^/]+/(?P<path>[^?#]+?)/-/merge_requests/(?P<iid>\d+)(?:[/?#].*)?$")
_ISSUE_RE = re.compile(r"^https?://[^/]+/(?P<path>[^?#]+?)/-/issues/(?P<iid>\d+)(?:[/?#].*)?$")
_EPIC_RE = re.compile(r"^https?://[^/]+/groups/(?P<path>[^?#]+?)/-/epics/(?P<iid>\d+)(?:[/?#].*)?$")


@dataclass(frozen=True)
class MergeRequestTarget:
    project_path: str
    iid: int
    url: str

    kind = "merge_request"


@dataclass(frozen=True)
class IssueTarget:
    project_path: str
    iid: int
    url: str

    kind = "issue"


@dataclass(frozen=True)
class EpicTarget:
    group_path: str
    iid: int
    url: str

    kind = "epic"


Target = Union[MergeRequestTarget, IssueTarget, EpicTarget]


def parse_target(url: str) -> Target:
    """Return the target a URL points at, or raise InvalidInputError."""
    url = (url or "").strip()
    if "merge_requests" in url:
        match = _MR_RE.match(url)
        if not match:
            raise InvalidInputError(f"Invalid merge request URL: {url!r}")
        return MergeRequestTarget(project_path=match.group("path"), iid=int(match.group("iid")), url=url)
    if "issues" in url:
        match = _ISSUE_RE.match(url)
        if not match:
            raise InvalidInputError(f"Invalid issue URL: {url!r}")
        return IssueTarget(project_path=match.group("path"), iid=int(match.group("iid")), url=url)
    match = _EPIC_RE.match(url)
    if not match:
        raise InvalidInputError(f"Invalid epic URL: {url!r}")
    return EpicTarget(group_path=match.group("path"), iid=int(match.group("iid")), url=url)
