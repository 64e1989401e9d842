"""Audit trail read models."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class AuditEntry(BaseModel):
    """One audit_log row. Append-only."""

    id: UUID
    company_id: UUID
    user_id: UUID
    action: str
    entity: str
    entity_id: UUID
    details: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime

    model_config = {"from_attributes": True}


class ActionCount(BaseModel):
    action: str
    count: int


class AuditStats(BaseModel):
    """Company activity: all time, and over the recent window."""

    total: int
    recent: int
    recent_days: int
    top_actions: list[ActionCount]
