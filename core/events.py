"""
Domain events for billing.

Immutable event objects published after a billing transaction commits.
Services publish what happened; handlers (audit trail, notifications) react
without the publisher knowing who's listening.

Event Categories:
- InvoiceEvent: Invoice lifecycle (generated, issued, paid, cancelled)
- ExpenseEvent: Expense ledger (created, updated, paid, deleted)
- ShipmentEvent: Shipment status moved by billing

Events carry the full domain object so handlers don't need to re-fetch state,
plus the shipment tracking number that audit entries quote.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from utils.timezone import now_utc


@dataclass(frozen=True, kw_only=True)
class BillingEvent:
    """Base class for all billing domain events."""
    event_id: str = field(default_factory=lambda: str(uuid4()))
    occurred_at: datetime = field(default_factory=now_utc)
    user_id: UUID | None = None
    company_id: UUID | None = None


# =============================================================================
# INVOICE EVENTS
# =============================================================================


@dataclass(frozen=True, kw_only=True)
class InvoiceEvent(BillingEvent):
    """Events related to invoice lifecycle."""
    invoice: Any = None  # Invoice
    tracking_number: str | None = None


@dataclass(frozen=True, kw_only=True)
class InvoiceGenerated(InvoiceEvent):
    """An invoice was generated from a shipment's expenses (DRAFT or ISSUED)."""

    @classmethod
    def create(cls, invoice: Any, tracking_number: str, **actor: Any) -> "InvoiceGenerated":
        return cls(invoice=invoice, tracking_number=tracking_number, **actor)


@dataclass(frozen=True, kw_only=True)
class InvoiceIssued(InvoiceEvent):
    """A draft invoice was issued to the client."""

    @classmethod
    def create(cls, invoice: Any, tracking_number: str, **actor: Any) -> "InvoiceIssued":
        return cls(invoice=invoice, tracking_number=tracking_number, **actor)


@dataclass(frozen=True, kw_only=True)
class InvoicePaid(InvoiceEvent):
    """An invoice was paid."""

    @classmethod
    def create(cls, invoice: Any, tracking_number: str, **actor: Any) -> "InvoicePaid":
        return cls(invoice=invoice, tracking_number=tracking_number, **actor)


@dataclass(frozen=True, kw_only=True)
class InvoiceCancelled(InvoiceEvent):
    """An invoice was cancelled."""

    @classmethod
    def create(cls, invoice: Any, tracking_number: str, **actor: Any) -> "InvoiceCancelled":
        return cls(invoice=invoice, tracking_number=tracking_number, **actor)


# =============================================================================
# EXPENSE EVENTS
# =============================================================================


@dataclass(frozen=True, kw_only=True)
class ExpenseEvent(BillingEvent):
    """Events related to the expense ledger."""
    expense: Any = None  # Expense
    tracking_number: str | None = None


@dataclass(frozen=True, kw_only=True)
class ExpenseCreated(ExpenseEvent):
    """A provision or disbursement was recorded."""


@dataclass(frozen=True, kw_only=True)
class ExpenseUpdated(ExpenseEvent):
    """An unpaid expense was edited."""
    changes: dict = field(default_factory=dict)


@dataclass(frozen=True, kw_only=True)
class ExpensePaid(ExpenseEvent):
    """A disbursement was paid out."""


@dataclass(frozen=True, kw_only=True)
class ExpenseDeleted(ExpenseEvent):
    """An unpaid expense was removed."""


# =============================================================================
# SHIPMENT EVENTS
# =============================================================================


@dataclass(frozen=True, kw_only=True)
class ShipmentStatusAdvanced(BillingEvent):
    """An invoice transition moved the shipment forward."""
    shipment_id: UUID | None = None
    tracking_number: str | None = None
    old_status: str | None = None
    new_status: str | None = None
    invoice_number: str | None = None
