"""
Invoice service for billing a transit dossier.

Invoices are always generated from a shipment's expenses. They snapshot the
agency and client identity and the computed amounts at generation time; lines
are never edited afterwards.

Every status change runs in one database transaction together with the
shipment status it may advance and the timeline entries that describe it.
Audit entries are written by event handlers once the transaction has
committed.
"""

import logging
from datetime import datetime
from typing import Any, Callable
from uuid import UUID

from core import timeline
from core.audit import AuditLogger
from core.billing import build_invoice_lines, compute_invoice_totals
from core.config import BillingConfig
from core.database import BillingDatabase
from core.event_bus import EventBus
from core.events import (
    BillingEvent,
    InvoiceCancelled,
    InvoiceGenerated,
    InvoiceIssued,
    InvoicePaid,
    ShipmentStatusAdvanced,
)
from core.exceptions import (
    DuplicateInvoiceNumberError,
    InvalidInputError,
    NotFoundError,
    TransactionError,
)
from core.lifecycle import InvoiceTransition, apply_transition, shipment_advance
from core.models import Invoice, InvoiceGenerate, InvoiceStatus, InvoiceSummary, Page, Shipment
from core.numbering import next_invoice_number, year_prefix
from utils.actor_context import get_current_company_id, get_current_user_id
from utils.money import format_gnf
from utils.timezone import business_year, now_utc, parse_due_date

logger = logging.getLogger(__name__)

# Timeline description of the shipment status entry, per transition
_ADVANCE_DESCRIPTIONS: dict[InvoiceTransition, str] = {
    InvoiceTransition.ISSUE: "Facture {number} émise",
    InvoiceTransition.PAY: "Dossier clôturé automatiquement après paiement de la facture {number}",
}


class InvoiceService:
    """Service for invoice generation, lifecycle and queries."""

    def __init__(
        self,
        db: BillingDatabase,
        audit: AuditLogger,
        event_bus: EventBus,
        config: BillingConfig | None = None,
        clock: Callable[[], datetime] = now_utc,
    ):
        self.db = db
        self.audit = audit
        self.event_bus = event_bus
        self.config = config or BillingConfig()
        self.clock = clock

    # =========================================================================
    # GENERATION
    # =========================================================================

    def generate(self, data: InvoiceGenerate) -> Invoice:
        """
        Generate an invoice from all expenses of a shipment.

        Disbursements are grouped into one line per category, followed by the
        honoraires line. The invoice number is the company's next number for
        the current year; when a concurrent request takes it first, the whole
        creation is retried with a fresh number.

        Args:
            data: Shipment and generation options

        Returns:
            Created invoice, DRAFT or ISSUED (auto_issue)

        Raises:
            NotFoundError: If the shipment or the company doesn't exist
            InvalidInputError: If the due date can't be parsed
            TransactionError: If no free invoice number was found in time
        """
        company_id = get_current_company_id()
        due_date = self._parse_due_date(data.due_date)
        attempts = self.config.invoice_number_max_attempts

        for attempt in range(1, attempts + 1):
            try:
                invoice, shipment, advanced = self._create(data, company_id, due_date)
                break
            except DuplicateInvoiceNumberError:
                logger.warning(
                    "Invoice number taken concurrently for company %s (attempt %d/%d)",
                    company_id, attempt, attempts,
                )
        else:
            raise TransactionError(f"Could not allocate an invoice number after {attempts} attempts")

        logger.info(
            "Invoice %s generated for %s: total %s, %s %s",
            invoice.invoice_number,
            shipment.tracking_number,
            format_gnf(invoice.total_amount),
            invoice.balance_label,
            format_gnf(abs(invoice.amount_due)),
        )

        self._publish(InvoiceGenerated.create(invoice, shipment.tracking_number, **self._actor()))
        if advanced is not None:
            self._publish(advanced)

        return invoice

    def _create(
        self,
        data: InvoiceGenerate,
        company_id: UUID,
        due_date: datetime | None,
    ) -> tuple[Invoice, Shipment, ShipmentStatusAdvanced | None]:
        with self.db.transaction() as tx:
            shipment = tx.get_shipment(data.shipment_id, company_id, for_update=True)
            if shipment is None:
                raise NotFoundError(f"Shipment {data.shipment_id} not found")

            company = tx.get_company(company_id)
            if company is None:
                raise NotFoundError(f"Company {company_id} not found")

            build = build_invoice_lines(tx.list_shipment_expenses(shipment.id), data.honoraires, self.config)
            tax_rate = self.config.default_tax_rate if data.tax_rate is None else data.tax_rate
            totals = compute_invoice_totals(build.lines, build.honoraires, build.total_provisions, tax_rate)

            now = self.clock()
            invoice_number = self._next_number(tx, company_id, now)
            status = InvoiceStatus.ISSUED if data.auto_issue else InvoiceStatus.DRAFT

            invoice = tx.insert_invoice(
                {
                    "company_id": company_id,
                    "shipment_id": shipment.id,
                    "invoice_number": invoice_number,
                    "status": status,
                    "company_name": company.name,
                    "company_nif": company.nif,
                    "company_phone": company.phone,
                    "company_address": company.address,
                    "client_name": shipment.client_name,
                    "client_nif": shipment.client_nif,
                    "client_phone": shipment.client_phone,
                    "client_address": shipment.client_address,
                    "subtotal": totals.subtotal,
                    "tax_rate": totals.tax_rate,
                    "tax_amount": totals.tax_amount,
                    "total_amount": totals.total_amount,
                    "total_provisions": totals.total_provisions,
                    "total_disbursements": build.total_disbursements,
                    "honoraires": build.honoraires,
                    "amount_due": totals.amount_due,
                    "issued_at": now if data.auto_issue else None,
                    "due_date": due_date,
                    "notes": data.notes,
                    "created_by_id": get_current_user_id(),
                    "created_at": now,
                    "updated_at": now,
                },
                build.lines,
            )

            timeline.invoice_created(tx, invoice)

            advanced = None
            if data.auto_issue:
                advanced = self._advance_shipment(tx, shipment, InvoiceTransition.ISSUE, invoice_number)

        return invoice, shipment, advanced

    def _next_number(self, tx: BillingDatabase, company_id: UUID, now: datetime) -> str:
        year = business_year(now, self.config.business_timezone)
        prefix = self.config.invoice_prefix
        last = tx.find_last_invoice_number(company_id, year_prefix(year, prefix))
        return next_invoice_number(last, year, prefix, self.config.invoice_number_width)

    def _parse_due_date(self, value: str | None) -> datetime | None:
        if not value:
            return None
        try:
            return parse_due_date(value, self.config.business_timezone)
        except ValueError as e:
            raise InvalidInputError(f"Invalid due date {value!r}: {e}") from e

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def issue(self, invoice_id: UUID) -> Invoice:
        """
        Issue a draft invoice.

        A DELIVERED shipment moves to INVOICED in the same transaction.

        Raises:
            NotFoundError: If the invoice doesn't exist
            InvalidStateError: If the invoice is not a draft
        """
        return self._transition(invoice_id, InvoiceTransition.ISSUE)

    def pay(self, invoice_id: UUID) -> Invoice:
        """
        Mark an invoice as paid. Drafts can be paid directly.

        An INVOICED shipment is closed in the same transaction.

        Raises:
            NotFoundError: If the invoice doesn't exist
            InvalidStateError: If the invoice is already paid or cancelled
        """
        return self._transition(invoice_id, InvoiceTransition.PAY)

    def cancel(self, invoice_id: UUID) -> Invoice:
        """
        Cancel an invoice. The shipment is left untouched.

        Raises:
            NotFoundError: If the invoice doesn't exist
            InvalidStateError: If the invoice is paid or already cancelled
        """
        return self._transition(invoice_id, InvoiceTransition.CANCEL)

    def _transition(self, invoice_id: UUID, transition: InvoiceTransition) -> Invoice:
        company_id = get_current_company_id()

        with self.db.transaction() as tx:
            current = tx.get_invoice(invoice_id, company_id, for_update=True)
            if current is None:
                raise NotFoundError(f"Invoice {invoice_id} not found")

            target = apply_transition(transition, current.status, current.invoice_number)

            shipment = tx.get_shipment(current.shipment_id, company_id, for_update=True)
            if shipment is None:
                raise NotFoundError(f"Shipment {current.shipment_id} not found")

            invoice = tx.set_invoice_status(current.id, target, self.clock())

            advanced = None
            if transition == InvoiceTransition.ISSUE:
                advanced = self._advance_shipment(tx, shipment, transition, invoice.invoice_number)
                timeline.invoice_issued(tx, invoice)
            elif transition == InvoiceTransition.PAY:
                timeline.invoice_paid(tx, invoice)
                advanced = self._advance_shipment(tx, shipment, transition, invoice.invoice_number)

        logger.info(
            "Invoice %s %s -> %s (%s)",
            invoice.invoice_number, current.status.value, invoice.status.value, shipment.tracking_number,
        )

        event_types = {
            InvoiceTransition.ISSUE: InvoiceIssued,
            InvoiceTransition.PAY: InvoicePaid,
            InvoiceTransition.CANCEL: InvoiceCancelled,
        }
        self._publish(event_types[transition].create(invoice, shipment.tracking_number, **self._actor()))
        if advanced is not None:
            self._publish(advanced)

        return invoice

    def _advance_shipment(
        self,
        tx: BillingDatabase,
        shipment: Shipment,
        transition: InvoiceTransition,
        invoice_number: str,
    ) -> ShipmentStatusAdvanced | None:
        """Move the shipment forward if `transition` calls for it from its current status."""
        new_status = shipment_advance(transition, shipment.status)
        if new_status is None:
            return None

        tx.update_shipment_status(shipment.id, new_status)
        timeline.shipment_advanced(
            tx, shipment.id, new_status, _ADVANCE_DESCRIPTIONS[transition].format(number=invoice_number),
        )

        return ShipmentStatusAdvanced(
            shipment_id=shipment.id,
            tracking_number=shipment.tracking_number,
            old_status=shipment.status.value,
            new_status=new_status.value,
            invoice_number=invoice_number,
            **self._actor(),
        )

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get_by_id(self, invoice_id: UUID) -> Invoice | None:
        """
        Get invoice by ID, with its lines.

        Returns:
            Invoice if it exists in the caller's company, None otherwise.
        """
        return self.db.get_invoice(invoice_id, get_current_company_id())

    def list_invoices(
        self,
        status: InvoiceStatus | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> Page[Invoice]:
        """
        List the company's invoices, newest first.

        Args:
            status: Only invoices in this status
            search: Matches invoice number, client name or tracking number
            page: 1-based page number
            limit: Page size, clamped to 1..100
        """
        page = max(page, 1)
        limit = min(max(limit, 1), 100)

        invoices, total = self.db.search_invoices(
            get_current_company_id(),
            status=status,
            search=(search or "").strip() or None,
            offset=(page - 1) * limit,
            limit=limit,
        )
        return Page[Invoice](items=invoices, page=page, limit=limit, total=total)

    def summary(self) -> InvoiceSummary:
        """Company totals: invoiced (excluding cancelled), outstanding, paid, counts by status."""
        return self.db.invoice_totals(get_current_company_id())

    def history(self, invoice_id: UUID) -> list[dict[str, Any]]:
        """
        Audit trail of an invoice, newest first.

        Raises:
            NotFoundError: If the invoice doesn't exist
        """
        if self.get_by_id(invoice_id) is None:
            raise NotFoundError(f"Invoice {invoice_id} not found")
        return self.audit.get_entity_history("Invoice", invoice_id)

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _actor(self) -> dict[str, UUID]:
        return {"user_id": get_current_user_id(), "company_id": get_current_company_id()}

    def _publish(self, event: BillingEvent) -> None:
        self.event_bus.publish(event)
