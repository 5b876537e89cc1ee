"""Failure taxonomy for GitHub API calls."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    RATE_LIMITED_OR_FORBIDDEN = "rate_limited_or_forbidden"
    CONFLICT = "conflict"
    NO_CONTENT = "no_content"
    UNCLASSIFIED = "unclassified"


_STATUS_KINDS = {
    204: ErrorKind.NO_CONTENT,
    401: ErrorKind.UNAUTHORIZED,
    403: ErrorKind.RATE_LIMITED_OR_FORBIDDEN,
    404: ErrorKind.NOT_FOUND,
    409: ErrorKind.CONFLICT,
    429: ErrorKind.RATE_LIMITED_OR_FORBIDDEN,
}

# Kinds that usually describe the repository rather than a broken call.
SOFT_KINDS = frozenset({ErrorKind.CONFLICT, ErrorKind.NO_CONTENT})


def classify_status(status: Optional[int]) -> ErrorKind:
    """Map an HTTP status code onto the failure taxonomy."""
    if status is None:
        return ErrorKind.UNCLASSIFIED
    return _STATUS_KINDS.get(status, ErrorKind.UNCLASSIFIED)


class GitHubAPIError(Exception):
    """Raised by the low-level request helper for any unusable response."""

    def __init__(self, kind: ErrorKind, url: str, status: Optional[int] = None,
                 message: str = "") -> None:
        self.kind = kind
        self.url = url
        self.status = status
        self.message = message
        detail = f"HTTP {status}" if status is not None else "transport error"
        super().__init__(f"{kind.value} ({detail}) for {url}: {message}".rstrip(": "))


class AuthenticationError(Exception):
    """Raised when the configured token is rejected or missing."""


__all__ = [
    "ErrorKind",
    "SOFT_KINDS",
    "classify_status",
    "GitHubAPIError",
    "AuthenticationError",
]
