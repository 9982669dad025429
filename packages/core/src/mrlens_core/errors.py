"""Error taxonomy shared by every mrlens layer.

The CLI maps these to click exceptions; library code never prints.
"""

from __future__ import annotations


class MrLensError(Exception):
    """Base class for all mrlens errors."""


class InvalidInputError(MrLensError):
    """The submitted URL does not match any supported shape."""


class AuthError(MrLensError):
    """No usable session or token, or the identity is not authorized."""


class UpstreamError(MrLensError):
    """The code host or LLM API answered with a non-success status or could not be reached."""

    def __init__(self, message: str, status: int | None = None, url: str | None = None):
        super().__init__(message)
        self.status = status
        self.url = url


class ReauthenticationRequired(UpstreamError):
    """An API error that most likely means the stored credential has expired.

    Callers must sign the user out before surfacing the message.
    """


class DegradedAnalysisError(MrLensError):
    """A single analysis facet failed and was replaced with a placeholder."""

    def __init__(self, facet: str, cause: BaseException):
        super().__init__(f"{facet}: {cause}")
        self.facet = facet
        self.cause = cause
