"""Request-scoped middleware for API requests."""

from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from core.models import Actor
from utils.actor_context import clear_actor, set_actor


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assigns a unique request ID to every request."""

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class ActorContextMiddleware(BaseHTTPMiddleware):
    """Binds the authenticated actor to the request's context.

    The host's authentication layer puts an `Actor` on `request.state.actor`.
    This middleware:
    1. Rejects requests without one (except public paths)
    2. Sets user, company and display name in the actor context
    3. Clears the context after the request completes
    """

    PUBLIC_PATHS = [
        "/health",
        "/docs",
        "/openapi.json",
    ]

    def _is_public_path(self, path: str) -> bool:
        return any(path == public or path.startswith(public + "/") for public in self.PUBLIC_PATHS)

    async def dispatch(self, request: Request, call_next):
        if self._is_public_path(request.url.path):
            return await call_next(request)

        actor = getattr(request.state, "actor", None)
        if not isinstance(actor, Actor):
            return JSONResponse(
                status_code=401,
                content=error_response(
                    ErrorCodes.NOT_AUTHENTICATED,
                    "Authentication required",
                    getattr(request.state, "request_id", None),
                ).model_dump(mode="json"),
            )

        set_actor(actor.user_id, actor.company_id, actor.name)
        try:
            return await call_next(request)
        finally:
            clear_actor()
