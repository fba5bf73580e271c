"""Exception types raised across the console core."""

from __future__ import annotations


class OpsConsoleError(Exception):
    """Base class for errors surfaced to the boundary layer."""


class ValidationError(OpsConsoleError):
    """A request or parameter violates exactly one named constraint."""


class PermissionDeniedError(OpsConsoleError):
    """The caller's role is not authorized for the action or template."""


class NotFoundError(OpsConsoleError):
    """An action or query template id does not exist in the catalog."""


class DurableRuntimeError(OpsConsoleError):
    """The remote durable workflow runtime rejected or failed a request."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
