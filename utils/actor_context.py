"""Propagate the acting user and their company through the call stack using contextvars."""

from contextlib import contextmanager
from contextvars import ContextVar
from uuid import UUID

_current_user_id: ContextVar[UUID | None] = ContextVar("current_user_id", default=None)
_current_company_id: ContextVar[UUID | None] = ContextVar("current_company_id", default=None)
_current_user_name: ContextVar[str | None] = ContextVar("current_user_name", default=None)


def get_current_user_id() -> UUID:
    """
    Get current user ID from context.

    Raises RuntimeError if no actor context is set.
    This is fail-fast behavior - if you're in a code path that
    requires an actor and it's not set, that's a bug.
    """
    user_id = _current_user_id.get()
    if user_id is None:
        raise RuntimeError(
            "No actor context set. This usually means you're calling "
            "company-scoped code outside of an authenticated request."
        )
    return user_id


def get_current_company_id() -> UUID:
    """
    Get the company the current actor works for.

    Every shipment, expense and invoice query is scoped by this id.
    Raises RuntimeError if no actor context is set.
    """
    company_id = _current_company_id.get()
    if company_id is None:
        raise RuntimeError(
            "No company context set. This usually means you're calling "
            "company-scoped code outside of an authenticated request."
        )
    return company_id


def get_current_user_name() -> str | None:
    """Display name of the current actor, if the auth layer provided one."""
    return _current_user_name.get()


def set_actor(user_id: UUID, company_id: UUID, user_name: str | None = None) -> None:
    """
    Set the current actor in context.

    Called by the API middleware once the host's auth layer has identified the user.
    """
    _current_user_id.set(user_id)
    _current_company_id.set(company_id)
    _current_user_name.set(user_name)


def clear_actor() -> None:
    """
    Clear actor context.

    Must be called in finally block to prevent context leakage.
    """
    _current_user_id.set(None)
    _current_company_id.set(None)
    _current_user_name.set(None)


@contextmanager
def actor_context(user_id: UUID, company_id: UUID, user_name: str | None = None):
    """
    Context manager for temporarily acting as a user of a company.

    Useful for:
    - Tests
    - Request handling
    - Maintenance scripts run on behalf of an agency

    Example:
        with actor_context(user_id, company_id, "Mamadou"):
            invoice = invoice_service.issue(invoice_id)
    """
    previous = (
        _current_user_id.get(),
        _current_company_id.get(),
        _current_user_name.get(),
    )
    set_actor(user_id, company_id, user_name)
    try:
        yield
    finally:
        if previous[0] is None:
            clear_actor()
        else:
            set_actor(*previous)
