"""Database operations for shipments, expenses, invoices and timelines.

Every read is scoped by company: shipments carry company_id, expenses reach it
through their shipment, invoices carry it directly. Records of another company
are indistinguishable from missing ones.

A BillingDatabase wraps anything with the execute* surface: the pooled
PostgresClient for single statements, or a PostgresTransaction when several
writes must land together (see transaction()).
"""

from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator
from uuid import UUID, uuid4

from clients.postgres_client import PostgresClient, PostgresTransaction, contains_pattern
from core.models import (
    Company,
    Expense,
    ExpenseCreate,
    ExpenseType,
    FinanceSummary,
    Invoice,
    InvoiceLine,
    InvoiceLineDraft,
    InvoiceStatus,
    InvoiceSummary,
    Shipment,
    ShipmentStatus,
    TimelineEvent,
    TimelineEventCreate,
)
from utils.timezone import now_utc

_SHIPMENT_COLUMNS = """
    id, company_id, tracking_number, client_name, client_nif, client_phone,
    client_address, status, created_at, updated_at
"""

_INVOICE_COLUMNS = (
    "id", "company_id", "shipment_id", "invoice_number", "status",
    "company_name", "company_nif", "company_phone", "company_address",
    "client_name", "client_nif", "client_phone", "client_address",
    "subtotal", "tax_rate", "tax_amount", "total_amount",
    "total_provisions", "total_disbursements", "honoraires", "amount_due",
    "issued_at", "due_date", "notes", "created_by_id", "created_at", "updated_at",
)

# Timestamp column stamped by each terminal status
_STATUS_TIMESTAMPS = {
    InvoiceStatus.ISSUED: "issued_at",
    InvoiceStatus.PAID: "paid_at",
    InvoiceStatus.CANCELLED: "cancelled_at",
}

_UPDATABLE_EXPENSE_COLUMNS = {"description", "amount", "reference", "supplier", "notes"}


class BillingDatabase:
    """Database operations for the billing core."""

    def __init__(self, executor: PostgresClient | PostgresTransaction):
        self._db = executor

    @contextmanager
    def transaction(self) -> Iterator["BillingDatabase"]:
        """
        BillingDatabase whose writes commit together or not at all.

        Raises:
            RuntimeError: If already inside a transaction
        """
        if not isinstance(self._db, PostgresClient):
            raise RuntimeError("Nested transactions are not supported")

        with self._db.transaction() as tx:
            yield BillingDatabase(tx)

    # =========================================================================
    # COMPANIES & SHIPMENTS
    # =========================================================================

    def get_company(self, company_id: UUID) -> Company | None:
        """Agency identity used for the invoice header snapshot."""
        row = self._db.execute_single(
            "SELECT id, name, nif, phone, address FROM companies WHERE id = %s",
            (company_id,),
        )
        return Company.model_validate(row) if row else None

    def get_shipment(self, shipment_id: UUID, company_id: UUID, for_update: bool = False) -> Shipment | None:
        """Find a shipment of the company. `for_update` locks the row until commit."""
        query = f"SELECT {_SHIPMENT_COLUMNS} FROM shipments WHERE id = %s AND company_id = %s"
        if for_update:
            query += " FOR UPDATE"
        row = self._db.execute_single(query, (shipment_id, company_id))
        return Shipment.model_validate(row) if row else None

    def update_shipment_status(self, shipment_id: UUID, status: ShipmentStatus) -> None:
        self._db.execute(
            "UPDATE shipments SET status = %s, updated_at = %s WHERE id = %s",
            (status.value, now_utc(), shipment_id),
        )

    # =========================================================================
    # EXPENSES
    # =========================================================================

    def list_shipment_expenses(self, shipment_id: UUID) -> list[Expense]:
        """All expenses of a shipment, oldest first."""
        rows = self._db.execute(
            "SELECT * FROM expenses WHERE shipment_id = %s ORDER BY created_at ASC, id ASC",
            (shipment_id,),
        )
        return [Expense.model_validate(row) for row in rows]

    def get_expense(self, expense_id: UUID, company_id: UUID) -> Expense | None:
        row = self._db.execute_single(
            """
            SELECT e.* FROM expenses e
            JOIN shipments s ON s.id = e.shipment_id
            WHERE e.id = %s AND s.company_id = %s
            """,
            (expense_id, company_id),
        )
        return Expense.model_validate(row) if row else None

    def insert_expense(self, data: ExpenseCreate) -> Expense:
        row = self._db.execute_returning(
            """
            INSERT INTO expenses (
                id, shipment_id, type, category, description, amount,
                quantity, unit_price, reference, supplier, notes,
                paid, created_at
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, false, %s)
            RETURNING *
            """,
            (
                uuid4(), data.shipment_id, data.type.value, data.category.value,
                data.description, data.amount, data.quantity, data.unit_price,
                data.reference, data.supplier, data.notes, now_utc(),
            ),
        )[0]
        return Expense.model_validate(row)

    def mark_expense_paid(self, expense_id: UUID, paid_by: UUID, paid_at: datetime) -> Expense:
        row = self._db.execute_returning(
            "UPDATE expenses SET paid = true, paid_at = %s, paid_by = %s WHERE id = %s RETURNING *",
            (paid_at, paid_by, expense_id),
        )[0]
        return Expense.model_validate(row)

    def update_expense(self, expense_id: UUID, fields: dict[str, Any]) -> Expense:
        """Patch an expense. Only description, amount, reference, supplier and notes."""
        unknown = set(fields) - _UPDATABLE_EXPENSE_COLUMNS
        if unknown:
            raise ValueError(f"Cannot update expense columns: {', '.join(sorted(unknown))}")

        assignments = ", ".join(f"{column} = %s" for column in fields)
        row = self._db.execute_returning(
            f"UPDATE expenses SET {assignments} WHERE id = %s RETURNING *",
            (*fields.values(), expense_id),
        )[0]
        return Expense.model_validate(row)

    def delete_expense(self, expense_id: UUID) -> None:
        self._db.execute("DELETE FROM expenses WHERE id = %s", (expense_id,))

    def search_expenses(
        self,
        company_id: UUID,
        shipment_id: UUID | None = None,
        expense_type: ExpenseType | None = None,
        paid: bool | None = None,
        offset: int = 0,
        limit: int = 50,
    ) -> tuple[list[Expense], int]:
        """Company expenses, newest first, with the unpaginated count."""
        conditions = ["s.company_id = %s"]
        params: list[Any] = [company_id]

        if shipment_id is not None:
            conditions.append("e.shipment_id = %s")
            params.append(shipment_id)
        if expense_type is not None:
            conditions.append("e.type = %s")
            params.append(expense_type.value)
        if paid is not None:
            conditions.append("e.paid = %s")
            params.append(paid)

        where = " AND ".join(conditions)
        base = f"FROM expenses e JOIN shipments s ON s.id = e.shipment_id WHERE {where}"

        total = self._db.execute_scalar(f"SELECT COUNT(*) {base}", tuple(params)) or 0
        rows = self._db.execute(
            f"SELECT e.* {base} ORDER BY e.created_at DESC LIMIT %s OFFSET %s",
            (*params, limit, offset),
        )
        return [Expense.model_validate(row) for row in rows], total

    def expense_totals(self, company_id: UUID) -> FinanceSummary:
        row = self._db.execute_single(
            """
            SELECT
                COALESCE(SUM(e.amount) FILTER (WHERE e.type = 'PROVISION'), 0) AS total_provisions,
                COALESCE(SUM(e.amount) FILTER (WHERE e.type = 'DISBURSEMENT'), 0) AS total_disbursements,
                COALESCE(SUM(e.amount) FILTER (WHERE e.type = 'DISBURSEMENT' AND e.paid), 0) AS paid_disbursements,
                COALESCE(SUM(e.amount) FILTER (WHERE e.type = 'DISBURSEMENT' AND NOT e.paid), 0) AS unpaid_disbursements,
                COUNT(*) FILTER (WHERE e.type = 'PROVISION') AS provision_count,
                COUNT(*) FILTER (WHERE e.type = 'DISBURSEMENT') AS disbursement_count,
                COUNT(*) FILTER (WHERE e.type = 'DISBURSEMENT' AND NOT e.paid) AS unpaid_count
            FROM expenses e
            JOIN shipments s ON s.id = e.shipment_id
            WHERE s.company_id = %s
            """,
            (company_id,),
        )
        return FinanceSummary.model_validate(row)

    # =========================================================================
    # INVOICES
    # =========================================================================

    def find_last_invoice_number(self, company_id: UUID, prefix: str) -> str | None:
        """
        Highest invoice number of the company starting with `prefix`.

        Ordered by length first so FAC-2026-10000 sorts after FAC-2026-9999.
        """
        return self._db.execute_scalar(
            """
            SELECT invoice_number FROM invoices
            WHERE company_id = %s AND invoice_number LIKE %s
            ORDER BY LENGTH(invoice_number) DESC, invoice_number DESC
            LIMIT 1
            """,
            (company_id, f"{prefix}%"),
        )

    def insert_invoice(self, values: dict[str, Any], lines: list[InvoiceLineDraft]) -> Invoice:
        """
        Insert an invoice and its lines.

        Args:
            values: Invoice columns (see _INVOICE_COLUMNS); id and timestamps
                are filled in when absent
            lines: Lines in display order
        """
        now = now_utc()
        record = {"id": uuid4(), "created_at": now, "updated_at": now, **values}
        record["status"] = InvoiceStatus(record["status"]).value

        columns = [column for column in _INVOICE_COLUMNS if column in record]
        placeholders = ", ".join(["%s"] * len(columns))
        row = self._db.execute_returning(
            f"INSERT INTO invoices ({', '.join(columns)}) VALUES ({placeholders}) RETURNING *",
            tuple(record[column] for column in columns),
        )[0]

        stored_lines = []
        for position, line in enumerate(lines):
            line_row = self._db.execute_returning(
                """
                INSERT INTO invoice_lines (
                    id, invoice_id, position, description, category, quantity, unit_price, amount
                ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING *
                """,
                (
                    uuid4(), row["id"], position, line.description, line.category,
                    line.quantity, line.unit_price, line.amount,
                ),
            )[0]
            stored_lines.append(InvoiceLine.model_validate(line_row))

        return Invoice.model_validate({**row, "lines": stored_lines})

    def _load_lines(self, invoice_ids: list[UUID]) -> dict[UUID, list[InvoiceLine]]:
        if not invoice_ids:
            return {}
        rows = self._db.execute(
            "SELECT * FROM invoice_lines WHERE invoice_id = ANY(%s::uuid[]) ORDER BY position ASC",
            (list(invoice_ids),),
        )
        by_invoice: dict[UUID, list[InvoiceLine]] = {invoice_id: [] for invoice_id in invoice_ids}
        for row in rows:
            line = InvoiceLine.model_validate(row)
            by_invoice.setdefault(line.invoice_id, []).append(line)
        return by_invoice

    def get_invoice(self, invoice_id: UUID, company_id: UUID, for_update: bool = False) -> Invoice | None:
        """Invoice of the company with its lines. `for_update` locks the row until commit."""
        query = "SELECT * FROM invoices WHERE id = %s AND company_id = %s"
        if for_update:
            query += " FOR UPDATE"
        row = self._db.execute_single(query, (invoice_id, company_id))
        if row is None:
            return None

        invoice = Invoice.model_validate(row)
        invoice.lines = self._load_lines([invoice.id]).get(invoice.id, [])
        return invoice

    def set_invoice_status(self, invoice_id: UUID, status: InvoiceStatus, at: datetime) -> Invoice:
        """Move an invoice to `status`, stamping the matching timestamp column."""
        column = _STATUS_TIMESTAMPS[status]
        row = self._db.execute_returning(
            f"UPDATE invoices SET status = %s, {column} = %s, updated_at = %s WHERE id = %s RETURNING *",
            (status.value, at, at, invoice_id),
        )[0]

        invoice = Invoice.model_validate(row)
        invoice.lines = self._load_lines([invoice.id]).get(invoice.id, [])
        return invoice

    def search_invoices(
        self,
        company_id: UUID,
        status: InvoiceStatus | None = None,
        search: str | None = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[Invoice], int]:
        """Company invoices, newest first, with the unpaginated count."""
        conditions = ["i.company_id = %s"]
        params: list[Any] = [company_id]

        if status is not None:
            conditions.append("i.status = %s")
            params.append(status.value)
        needle = (search or "").strip()
        if needle:
            pattern = contains_pattern(needle)
            conditions.append(
                "(i.invoice_number ILIKE %s ESCAPE '\\'"
                " OR i.client_name ILIKE %s ESCAPE '\\'"
                " OR s.tracking_number ILIKE %s ESCAPE '\\')"
            )
            params.extend([pattern, pattern, pattern])

        where = " AND ".join(conditions)
        base = f"FROM invoices i JOIN shipments s ON s.id = i.shipment_id WHERE {where}"

        total = self._db.execute_scalar(f"SELECT COUNT(*) {base}", tuple(params)) or 0
        rows = self._db.execute(
            f"SELECT i.* {base} ORDER BY i.created_at DESC LIMIT %s OFFSET %s",
            (*params, limit, offset),
        )

        invoices = [Invoice.model_validate(row) for row in rows]
        lines = self._load_lines([invoice.id for invoice in invoices])
        for invoice in invoices:
            invoice.lines = lines.get(invoice.id, [])
        return invoices, total

    def invoice_totals(self, company_id: UUID) -> InvoiceSummary:
        row = self._db.execute_single(
            """
            SELECT
                COALESCE(SUM(total_amount) FILTER (WHERE status <> 'CANCELLED'), 0) AS total_invoiced,
                COALESCE(SUM(amount_due) FILTER (WHERE status = 'ISSUED'), 0) AS total_outstanding,
                COALESCE(SUM(total_amount) FILTER (WHERE status = 'PAID'), 0) AS total_paid,
                COUNT(*) FILTER (WHERE status <> 'CANCELLED') AS count,
                COUNT(*) FILTER (WHERE status = 'DRAFT') AS draft,
                COUNT(*) FILTER (WHERE status = 'ISSUED') AS issued,
                COUNT(*) FILTER (WHERE status = 'PAID') AS paid,
                COUNT(*) FILTER (WHERE status = 'CANCELLED') AS cancelled
            FROM invoices
            WHERE company_id = %s
            """,
            (company_id,),
        )
        return InvoiceSummary.model_validate(row)

    # =========================================================================
    # TIMELINE
    # =========================================================================

    def insert_timeline_event(
        self,
        event: TimelineEventCreate,
        user_id: UUID | None,
        user_name: str | None,
    ) -> TimelineEvent:
        row = self._db.execute_returning(
            """
            INSERT INTO timeline_events (id, shipment_id, action, description, user_id, user_name, created_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            RETURNING *
            """,
            (uuid4(), event.shipment_id, event.action, event.description, user_id, user_name, now_utc()),
        )[0]
        return TimelineEvent.model_validate(row)
