"""
Shipment timeline entries written by billing operations.

The timeline is the dossier's human-readable history, shown to agency staff
in French. Entries are appended inside the same transaction as the change
they describe.
"""

from uuid import UUID

from core.database import BillingDatabase
from core.models import (
    Expense, ExpenseType, Invoice, InvoiceStatus, ShipmentStatus, TimelineEvent, TimelineEventCreate,
)
from utils.actor_context import get_current_user_id, get_current_user_name
from utils.money import format_gnf


def record(db: BillingDatabase, shipment_id: UUID, action: str, description: str | None = None) -> TimelineEvent:
    """Append an entry attributed to the current actor."""
    return db.insert_timeline_event(
        TimelineEventCreate(shipment_id=shipment_id, action=action, description=description),
        user_id=get_current_user_id(),
        user_name=get_current_user_name(),
    )


def invoice_created(db: BillingDatabase, invoice: Invoice) -> TimelineEvent:
    state = "créée (brouillon)" if invoice.status == InvoiceStatus.DRAFT else "émise"
    balance = f"{invoice.balance_label} : {format_gnf(abs(invoice.amount_due))}"
    return record(
        db,
        invoice.shipment_id,
        f"Facture {invoice.invoice_number} {state}",
        f"Montant : {format_gnf(invoice.total_amount)} — {balance}",
    )


def invoice_issued(db: BillingDatabase, invoice: Invoice) -> TimelineEvent:
    return record(db, invoice.shipment_id, f"Facture {invoice.invoice_number} émise")


def invoice_paid(db: BillingDatabase, invoice: Invoice) -> TimelineEvent:
    return record(
        db,
        invoice.shipment_id,
        f"Facture {invoice.invoice_number} payée",
        f"Paiement reçu : {format_gnf(invoice.total_amount)}",
    )


def shipment_advanced(db: BillingDatabase, shipment_id: UUID, status: ShipmentStatus, description: str) -> TimelineEvent:
    return record(db, shipment_id, f"Statut → {status.value}", description)


def expense_added(db: BillingDatabase, expense: Expense) -> TimelineEvent:
    kind = "Provision ajoutée" if expense.type == ExpenseType.PROVISION else "Débours ajouté"
    return record(
        db,
        expense.shipment_id,
        f"{kind} : {format_gnf(expense.amount)}",
        f"{expense.description} ({expense.category.value})",
    )


def expense_paid(db: BillingDatabase, expense: Expense) -> TimelineEvent:
    return record(db, expense.shipment_id, f"Débours payé : {format_gnf(expense.amount)}", expense.description)
