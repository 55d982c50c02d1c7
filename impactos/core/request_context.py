"""Request context utilities.

Carries the correlation ID and the resolved actor (user and active
organization) of the current request so log lines can be tied together.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar, Token
from uuid import UUID, uuid4

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
_actor_var: ContextVar[tuple[UUID | None, UUID | None]] = ContextVar(
    "actor", default=(None, None)
)


def get_request_id() -> str | None:
    """Get the current request correlation ID (if any)."""

    return _request_id_var.get()


def new_request_id() -> str:
    return str(uuid4())


@contextmanager
def request_id_context(request_id: str | None):
    """Context manager that sets the correlation ID for the duration."""

    token: Token[str | None] = _request_id_var.set(request_id)
    try:
        yield
    finally:
        _request_id_var.reset(token)


def set_actor(user_id: UUID | None, organization_id: UUID | None = None) -> None:
    """Record who is acting in this request.

    Called by the authorization dependencies once the user (and, for
    tenant-scoped routes, the active organization) has been resolved.
    """

    _actor_var.set((user_id, organization_id))


def get_actor() -> tuple[UUID | None, UUID | None]:
    return _actor_var.get()
