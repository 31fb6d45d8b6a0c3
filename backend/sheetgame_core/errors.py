from __future__ import annotations


class NetworkError(RuntimeError):
    """Remote store could not be reached or rejected the request."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class ValidationError(ValueError):
    """Input rejected before any flow starts."""


class NotFoundError(ValueError):
    """A lookup by Roll matched no record."""


class MalformedRecordError(ValueError):
    """A remote row could not be turned into a StudentRecord."""
