"""/api/audit: company-wide audit trail, directors only."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request

from api.base import respond
from api.deps import require_role
from core.models import UserRole


def create_audit_router(services: dict) -> APIRouter:
    router = APIRouter(prefix="/audit", dependencies=[Depends(require_role(UserRole.DIRECTOR))])

    audit = services["audit"]

    @router.get("")
    async def list_audit_entries(
        request: Request,
        entity: str | None = Query(None, max_length=50),
        action: str | None = Query(None, max_length=50),
        user_id: UUID | None = Query(None),
        entity_id: UUID | None = Query(None),
        date_from: datetime | None = Query(None, alias="from"),
        date_to: datetime | None = Query(None, alias="to"),
        page: int = Query(1, ge=1),
        limit: int = Query(30, ge=1, le=100),
    ):
        result = audit.search(
            entity=entity,
            action=action,
            user_id=user_id,
            entity_id=entity_id,
            date_from=date_from,
            date_to=date_to,
            page=page,
            limit=limit,
        )
        return respond(request, result.to_json("entries"))

    @router.get("/stats")
    async def audit_stats(request: Request):
        return respond(request, audit.stats().model_dump(mode="json"))

    return router
