"""Exception hierarchy for the childcare sync package."""

from __future__ import annotations


class ChildcareSyncError(Exception):
    """Base class for all sync errors."""


class AuthenticationError(ChildcareSyncError):
    """Credentials were rejected, or the session response carried no token."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class UpstreamRequestError(ChildcareSyncError):
    """The Procare API answered with a non-success HTTP status.

    Attributes:
        status_code: HTTP status returned by the API.
        body:        Response body text (may be empty).
        path:        Request path, without base URL or credentials.
    """

    def __init__(self, status_code: int, body: str, path: str) -> None:
        super().__init__(
            f"Procare API request failed ({status_code}) for {path}: {body or '<empty body>'}"
        )
        self.status_code = status_code
        self.body = body
        self.path = path

    @property
    def is_auth_error(self) -> bool:
        """True for 401/403, which callers may retry under another auth mode."""
        return self.status_code in (401, 403)


class StorageError(ChildcareSyncError):
    """A storage backend failed to read or write."""
