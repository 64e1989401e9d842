"""Shipment timeline models."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class TimelineEventCreate(BaseModel):
    """A narrative entry to append to a shipment's timeline."""

    shipment_id: UUID
    action: str = Field(..., min_length=1, max_length=255)
    description: str | None = None


class TimelineEvent(BaseModel):
    """Timeline entry as stored. Append-only."""

    id: UUID
    shipment_id: UUID
    action: str
    description: str | None
    user_id: UUID | None
    user_name: str | None
    created_at: datetime

    model_config = {"from_attributes": True}
