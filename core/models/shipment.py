"""Shipment (customs dossier) domain models."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel


class ShipmentStatus(str, Enum):
    """Dossier progress through clearance, delivery and billing, in pipeline order."""

    DRAFT = "DRAFT"
    PENDING = "PENDING"
    ARRIVED = "ARRIVED"
    DDI_OBTAINED = "DDI_OBTAINED"
    DECLARATION_FILED = "DECLARATION_FILED"
    LIQUIDATION_ISSUED = "LIQUIDATION_ISSUED"
    CUSTOMS_PAID = "CUSTOMS_PAID"
    BAE_ISSUED = "BAE_ISSUED"
    TERMINAL_PAID = "TERMINAL_PAID"
    DO_RELEASED = "DO_RELEASED"
    EXIT_NOTE_ISSUED = "EXIT_NOTE_ISSUED"
    IN_DELIVERY = "IN_DELIVERY"
    DELIVERED = "DELIVERED"
    INVOICED = "INVOICED"
    CLOSED = "CLOSED"
    ARCHIVED = "ARCHIVED"


class Shipment(BaseModel):
    """
    Shipment fields the billing core reads.

    Intake, customs and delivery fields live with the dossier screens and are
    not loaded here.
    """

    id: UUID
    company_id: UUID
    tracking_number: str
    client_name: str
    client_nif: str | None = None
    client_phone: str | None = None
    client_address: str | None = None
    status: ShipmentStatus
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
