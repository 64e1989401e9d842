"""Response envelope shared by every billing endpoint, and its error codes."""

from typing import Any
from datetime import datetime
from uuid import uuid4

from pydantic import BaseModel, Field
from starlette.requests import Request

from utils.timezone import now_utc


class APIError(BaseModel):
    code: str = Field(..., description="One of ErrorCodes")
    message: str = Field(..., description="Human-readable explanation, safe to show the accountant")


class APIMeta(BaseModel):
    timestamp: datetime = Field(..., description="Response time (UTC)")
    request_id: str = Field(..., description="Echoes X-Request-ID")


class APIResponse(BaseModel):
    """
    `{success, data, error, meta}` envelope.

    Exactly one of `data` / `error` is meaningful: `data` when `success` is
    true (it may still be None, e.g. after a delete), `error` otherwise.
    """

    success: bool
    data: Any | None = None
    error: APIError | None = None
    meta: APIMeta


def _meta(request_id: str | None) -> APIMeta:
    return APIMeta(timestamp=now_utc(), request_id=request_id or str(uuid4()))


def success_response(data: Any, request_id: str | None = None) -> APIResponse:
    return APIResponse(success=True, data=data, meta=_meta(request_id))


def error_response(code: str, message: str, request_id: str | None = None) -> APIResponse:
    return APIResponse(success=False, error=APIError(code=code, message=message), meta=_meta(request_id))


def respond(request: Request, data: Any) -> dict:
    """Success envelope for a route handler, tagged with the request's ID."""
    request_id = getattr(request.state, "request_id", None)
    return success_response(data, request_id).model_dump(mode="json")


class ErrorCodes:
    # 401 / 403
    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    FORBIDDEN = "FORBIDDEN"

    # 404: shipment, invoice, company or expense outside the caller's company
    NOT_FOUND = "NOT_FOUND"

    # 400 / 422
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_REQUEST = "INVALID_REQUEST"

    # 409: illegal invoice transition, edits to a paid expense
    INVALID_STATUS_TRANSITION = "INVALID_STATUS_TRANSITION"

    # 500 / 503
    INTERNAL_ERROR = "INTERNAL_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
