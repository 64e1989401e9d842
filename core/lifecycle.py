"""
Invoice state machine and its coupling to shipment status.

    DRAFT --issue--> ISSUED --pay--> PAID
      |                 |
      +----cancel-------+--> CANCELLED

Paying a DRAFT directly is allowed. PAID and CANCELLED are final.

Some invoice transitions also move the shipment forward. That coupling is
kept in SHIPMENT_ADVANCES below rather than spread through the service code.
"""

from enum import Enum

from core.exceptions import InvalidStateError
from core.models import InvoiceStatus, ShipmentStatus


class InvoiceTransition(str, Enum):
    """Operations that change an invoice's status."""

    ISSUE = "issue"
    PAY = "pay"
    CANCEL = "cancel"


# transition -> (statuses it may start from, resulting status)
TRANSITIONS: dict[InvoiceTransition, tuple[frozenset[InvoiceStatus], InvoiceStatus]] = {
    InvoiceTransition.ISSUE: (frozenset({InvoiceStatus.DRAFT}), InvoiceStatus.ISSUED),
    InvoiceTransition.PAY: (frozenset({InvoiceStatus.DRAFT, InvoiceStatus.ISSUED}), InvoiceStatus.PAID),
    InvoiceTransition.CANCEL: (frozenset({InvoiceStatus.DRAFT, InvoiceStatus.ISSUED}), InvoiceStatus.CANCELLED),
}

# (transition, shipment status required) -> new shipment status
SHIPMENT_ADVANCES: dict[tuple[InvoiceTransition, ShipmentStatus], ShipmentStatus] = {
    (InvoiceTransition.ISSUE, ShipmentStatus.DELIVERED): ShipmentStatus.INVOICED,
    (InvoiceTransition.PAY, ShipmentStatus.INVOICED): ShipmentStatus.CLOSED,
}

_REJECTIONS: dict[tuple[InvoiceTransition, InvoiceStatus], str] = {
    (InvoiceTransition.ISSUE, InvoiceStatus.ISSUED): "is already issued",
    (InvoiceTransition.ISSUE, InvoiceStatus.PAID): "is already paid; only draft invoices can be issued",
    (InvoiceTransition.ISSUE, InvoiceStatus.CANCELLED): "is cancelled; only draft invoices can be issued",
    (InvoiceTransition.PAY, InvoiceStatus.PAID): "is already paid",
    (InvoiceTransition.PAY, InvoiceStatus.CANCELLED): "is cancelled and cannot be paid",
    (InvoiceTransition.CANCEL, InvoiceStatus.PAID): "is paid and cannot be cancelled",
    (InvoiceTransition.CANCEL, InvoiceStatus.CANCELLED): "is already cancelled",
}


def apply_transition(
    transition: InvoiceTransition,
    current: InvoiceStatus,
    invoice_number: str,
) -> InvoiceStatus:
    """
    Status an invoice moves to, or the reason it can't.

    Args:
        transition: Requested operation
        current: Invoice status right now
        invoice_number: Used in the error message only

    Returns:
        The resulting status

    Raises:
        InvalidStateError: If `current` is not a legal starting point
    """
    sources, target = TRANSITIONS[transition]
    if current not in sources:
        reason = _REJECTIONS.get((transition, current), f"cannot {transition.value} from {current.value}")
        raise InvalidStateError(f"Invoice {invoice_number} {reason}")
    return target


def shipment_advance(transition: InvoiceTransition, shipment_status: ShipmentStatus) -> ShipmentStatus | None:
    """New shipment status triggered by `transition`, or None to leave it alone."""
    return SHIPMENT_ADVANCES.get((transition, shipment_status))
