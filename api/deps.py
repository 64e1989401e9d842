"""Route dependencies: role checks on the authenticated actor."""

from typing import Callable

from fastapi import Request

from core.models import Actor, UserRole


class ForbiddenError(Exception):
    """The actor's role may not perform this operation."""


def current_actor(request: Request) -> Actor:
    """Actor placed on the request by the host's authentication layer."""
    return request.state.actor


def require_role(*roles: UserRole) -> Callable[[Request], Actor]:
    """
    Dependency factory restricting a route to some roles.

    Usage:
        @router.patch("/{invoice_id}/cancel", dependencies=[Depends(require_role(UserRole.DIRECTOR))])
    """
    allowed = frozenset(roles)

    def dependency(request: Request) -> Actor:
        actor = current_actor(request)
        if actor.role not in allowed:
            raise ForbiddenError(
                f"Role {actor.role.value} may not perform this action "
                f"(requires {', '.join(sorted(r.value for r in allowed))})"
            )
        return actor

    return dependency
