"""Parser for the tagged response format every analysis prompt asks for.

Prompts pin the output to ``<tag>...</tag>`` blocks. Parsing never raises: a
tag that is missing, unterminated or empty in the response resolves to an
explicit default so callers never see ``None``.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable

NOT_FOUND = "Not found."


@lru_cache(maxsize=None)
def _tag_re(tag: str) -> re.Pattern:
    name = re.escape(tag)
    return re.compile(rf"<{name}>(.*?)</{name}>", re.DOTALL)


def extract_tag(response: str | None, tag: str, default: str = NOT_FOUND) -> str:
    """Return the trimmed text of the first ``<tag>`` block, or ``default``."""
    if not isinstance(response, str):
        return default
    match = _tag_re(tag).search(response)
    if not match:
        return default
    return match.group(1).strip()


def parse_tagged(response: str | None, tags: Iterable[str], default: str = NOT_FOUND) -> dict[str, str]:
    """Extract every tag in ``tags`` independently; absent ones get ``default``."""
    return {tag: extract_tag(response, tag, default) for tag in tags}


def extract_all(response: str | None, tag: str) -> list[str]:
    """Return the raw inner text of every ``<tag>`` block, in order of appearance."""
    if not isinstance(response, str):
        return []
    return [m.group(1) for m in _tag_re(tag).finditer(response)]
