"""Domain exceptions for incident and incident-org operations.

Services raise these; the FastAPI app maps them to HTTP responses in
``nics_api.main``.
"""

from __future__ import annotations

from typing import Any


class IncidentAccessError(Exception):
    """Base class for errors surfaced to API callers."""

    error_code = "incident_error"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details


class NotFoundError(IncidentAccessError):
    """A referenced incident, organization or user does not exist."""

    error_code = "not_found"


class InvalidArgumentError(IncidentAccessError):
    """Required input is missing or malformed (e.g. an empty org id set)."""

    error_code = "invalid_argument"


class LockoutError(IncidentAccessError):
    """The change would leave a restricted incident hidden from its owning org."""

    error_code = "owning_org_lockout"


class PermissionDeniedError(IncidentAccessError):
    """The requesting user may not change this incident."""

    error_code = "permission_denied"


class ConflictError(IncidentAccessError):
    """The request collides with existing state (e.g. duplicate incident name)."""

    error_code = "conflict"


class UnknownUserError(IncidentAccessError):
    """The requesting username has no user record."""

    error_code = "unknown_user"
