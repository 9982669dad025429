"""Review types the user can pick; each one steers the reviewer focus in MR prompts."""

from __future__ import annotations

from enum import Enum


class ReviewType(str, Enum):
    GENERAL = "General"
    SECURITY = "Security"
    PERFORMANCE = "Performance"
    TESTING = "Testing"
    READABILITY = "Readability"


_FOCUS = {
    ReviewType.GENERAL: (
        "Review as a pragmatic senior engineer: correctness first, then error handling, "
        "maintainability and consistency with the surrounding code."
    ),
    ReviewType.SECURITY: (
        "Review as an application security engineer: injection, authentication and authorization "
        "gaps, secrets in code, unsafe deserialization, missing input validation and data exposure."
    ),
    ReviewType.PERFORMANCE: (
        "Review for performance: algorithmic complexity, N+1 queries, unnecessary allocations, "
        "blocking I/O on hot paths and missing caching or pagination."
    ),
    ReviewType.TESTING: (
        "Review for testability and test coverage: missing tests for new behaviour, untested edge "
        "cases, brittle assertions and mocks that hide real behaviour."
    ),
    ReviewType.READABILITY: (
        "Review for readability: naming, function size, dead code, misleading comments and "
        "unnecessary cleverness."
    ),
}


def review_focus(review_type: ReviewType | str) -> str:
    """Return the focus instructions for a review type; unknown values fall back to General."""
    try:
        return _FOCUS[ReviewType(review_type)]
    except ValueError:
        return _FOCUS[ReviewType.GENERAL]
