"""Request context utilities.

Carries a correlation/request ID and the requesting username into log lines
for the duration of an API request.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar, Token
from uuid import uuid4

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
_remote_user_var: ContextVar[str | None] = ContextVar("remote_user", default=None)


def get_request_id() -> str | None:
    """Get the current request correlation ID (if any)."""

    return _request_id_var.get()


def get_remote_user() -> str | None:
    """Get the username the current request was made on behalf of (if any)."""

    return _remote_user_var.get()


def new_request_id() -> str:
    """Generate a new correlation ID."""

    return str(uuid4())


@contextmanager
def request_context(request_id: str | None, remote_user: str | None = None):
    """Bind the correlation ID and requesting user for the duration."""

    tokens: list[tuple[ContextVar, Token]] = [
        (_request_id_var, _request_id_var.set(request_id)),
        (_remote_user_var, _remote_user_var.set(remote_user)),
    ]
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)
