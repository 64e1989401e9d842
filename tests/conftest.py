"""Shared test fixtures for the billing test suite."""

import copy
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any
from uuid import UUID, uuid4

import pytest
from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
# override=True ensures .env takes precedence over shell env vars
load_dotenv(Path(__file__).parent.parent / ".env", override=True)

# Reset vault client singleton to pick up env vars
import clients.vault_client as vault_module
vault_module._vault_client_instance = None
vault_module._secret_cache.clear()

from core.exceptions import DuplicateInvoiceNumberError, TransactionError
from core.models import (
    Company,
    Expense,
    ExpenseCreate,
    ExpenseType,
    FinanceSummary,
    Invoice,
    InvoiceLine,
    InvoiceStatus,
    InvoiceSummary,
    Shipment,
    ShipmentStatus,
    TimelineEvent,
)
from utils.actor_context import actor_context, clear_actor


# =============================================================================
# TEST ACTOR CONSTANTS
# =============================================================================

# Primary company and its director
TEST_COMPANY_ID = UUID("00000000-0000-0000-0000-00000000c001")
TEST_USER_ID = UUID("00000000-0000-0000-0000-000000000001")
TEST_USER_NAME = "Mamadou Diallo"

# Second agency - use for company isolation tests
TEST_COMPANY_B_ID = UUID("00000000-0000-0000-0000-00000000c002")
TEST_USER_B_ID = UUID("00000000-0000-0000-0000-000000000002")

# 2026-03-10 09:00 in Conakry (UTC+0)
FIXED_NOW = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)


# =============================================================================
# IN-MEMORY DATABASE
# =============================================================================


class InMemoryBillingDatabase:
    """
    BillingDatabase stand-in holding rows in dicts.

    transaction() snapshots every table and restores the snapshot when the
    block raises, so tests can assert that failed transitions leave nothing
    behind.

    Knobs:
        fail_on: method names that raise TransactionError when called
        stale_number_reads: how many find_last_invoice_number calls return
            None, simulating a concurrent request that committed in between
    """

    _TABLES = ("companies", "shipments", "expenses", "invoices", "timeline")

    def __init__(self):
        self.companies: dict[UUID, Company] = {}
        self.shipments: dict[UUID, Shipment] = {}
        self.expenses: dict[UUID, Expense] = {}
        self.invoices: dict[UUID, Invoice] = {}
        self.timeline: list[TimelineEvent] = []

        self.fail_on: set[str] = set()
        self.stale_number_reads = 0
        self.commits = 0
        self.rollbacks = 0
        self._in_transaction = False
        self._ticks = 0

    # -- test helpers ---------------------------------------------------------

    def _now(self) -> datetime:
        """Strictly increasing timestamps so ordering is deterministic."""
        self._ticks += 1
        return FIXED_NOW + timedelta(seconds=self._ticks)

    def _check(self, name: str) -> None:
        if name in self.fail_on:
            raise TransactionError(f"{name} failed")

    def add_company(self, company_id: UUID = TEST_COMPANY_ID, name: str = "Transit Express Guinée") -> Company:
        company = Company(id=company_id, name=name, nif="NIF-778899", phone="+224 620 00 00 00", address="Kaloum, Conakry")
        self.companies[company.id] = company
        return company

    def add_shipment(
        self,
        status: ShipmentStatus = ShipmentStatus.DELIVERED,
        company_id: UUID = TEST_COMPANY_ID,
        tracking_number: str | None = None,
        client_name: str = "Société Minière de Boké",
    ) -> Shipment:
        now = self._now()
        shipment = Shipment(
            id=uuid4(),
            company_id=company_id,
            tracking_number=tracking_number or f"TR-{len(self.shipments) + 1:05d}",
            client_name=client_name,
            client_nif="NIF-112233",
            status=status,
            created_at=now,
            updated_at=now,
        )
        self.shipments[shipment.id] = shipment
        return shipment

    def add_expense(
        self,
        shipment: Shipment,
        expense_type: ExpenseType,
        category: str,
        amount: int,
        paid: bool = False,
        description: str = "Frais",
    ) -> Expense:
        expense = Expense(
            id=uuid4(),
            shipment_id=shipment.id,
            type=expense_type,
            category=category,
            description=description,
            amount=amount,
            paid=paid,
            created_at=self._now(),
        )
        self.expenses[expense.id] = expense
        return expense

    def timeline_for(self, shipment_id: UUID) -> list[str]:
        return [event.action for event in self.list_timeline(shipment_id)]

    # -- transactions ---------------------------------------------------------

    @contextmanager
    def transaction(self):
        if self._in_transaction:
            raise RuntimeError("Nested transactions are not supported")

        snapshot = {table: copy.deepcopy(getattr(self, table)) for table in self._TABLES}
        self._in_transaction = True
        try:
            yield self
        except BaseException:
            for table, rows in snapshot.items():
                setattr(self, table, rows)
            self.rollbacks += 1
            raise
        else:
            self.commits += 1
        finally:
            self._in_transaction = False

    # -- companies & shipments ------------------------------------------------

    def get_company(self, company_id: UUID) -> Company | None:
        return self.companies.get(company_id)

    def get_shipment(self, shipment_id: UUID, company_id: UUID, for_update: bool = False) -> Shipment | None:
        shipment = self.shipments.get(shipment_id)
        if shipment is None or shipment.company_id != company_id:
            return None
        return shipment

    def update_shipment_status(self, shipment_id: UUID, status: ShipmentStatus) -> None:
        self._check("update_shipment_status")
        shipment = self.shipments[shipment_id]
        self.shipments[shipment_id] = shipment.model_copy(update={"status": status, "updated_at": self._now()})

    # -- expenses -------------------------------------------------------------

    def list_shipment_expenses(self, shipment_id: UUID) -> list[Expense]:
        rows = [e for e in self.expenses.values() if e.shipment_id == shipment_id]
        return sorted(rows, key=lambda e: e.created_at)

    def get_expense(self, expense_id: UUID, company_id: UUID) -> Expense | None:
        expense = self.expenses.get(expense_id)
        if expense is None or self.shipments[expense.shipment_id].company_id != company_id:
            return None
        return expense

    def insert_expense(self, data: ExpenseCreate) -> Expense:
        self._check("insert_expense")
        expense = Expense(id=uuid4(), paid=False, created_at=self._now(), **data.model_dump())
        self.expenses[expense.id] = expense
        return expense

    def mark_expense_paid(self, expense_id: UUID, paid_by: UUID, paid_at: datetime) -> Expense:
        self._check("mark_expense_paid")
        expense = self.expenses[expense_id].model_copy(update={"paid": True, "paid_by": paid_by, "paid_at": paid_at})
        self.expenses[expense_id] = expense
        return expense

    def update_expense(self, expense_id: UUID, fields: dict[str, Any]) -> Expense:
        self._check("update_expense")
        expense = self.expenses[expense_id].model_copy(update=fields)
        self.expenses[expense_id] = expense
        return expense

    def delete_expense(self, expense_id: UUID) -> None:
        self._check("delete_expense")
        del self.expenses[expense_id]

    def _company_expenses(self, company_id: UUID) -> list[Expense]:
        return [e for e in self.expenses.values() if self.shipments[e.shipment_id].company_id == company_id]

    def search_expenses(
        self,
        company_id: UUID,
        shipment_id: UUID | None = None,
        expense_type: ExpenseType | None = None,
        paid: bool | None = None,
        offset: int = 0,
        limit: int = 50,
    ) -> tuple[list[Expense], int]:
        rows = [
            e for e in self._company_expenses(company_id)
            if (shipment_id is None or e.shipment_id == shipment_id)
            and (expense_type is None or e.type == expense_type)
            and (paid is None or e.paid == paid)
        ]
        rows.sort(key=lambda e: e.created_at, reverse=True)
        return rows[offset:offset + limit], len(rows)

    def expense_totals(self, company_id: UUID) -> FinanceSummary:
        rows = self._company_expenses(company_id)
        provisions = [e for e in rows if e.type == ExpenseType.PROVISION]
        disbursements = [e for e in rows if e.type == ExpenseType.DISBURSEMENT]
        unpaid = [e for e in disbursements if not e.paid]
        return FinanceSummary(
            total_provisions=sum(e.amount for e in provisions),
            total_disbursements=sum(e.amount for e in disbursements),
            paid_disbursements=sum(e.amount for e in disbursements if e.paid),
            unpaid_disbursements=sum(e.amount for e in unpaid),
            provision_count=len(provisions),
            disbursement_count=len(disbursements),
            unpaid_count=len(unpaid),
        )

    # -- invoices -------------------------------------------------------------

    def find_last_invoice_number(self, company_id: UUID, prefix: str) -> str | None:
        if self.stale_number_reads > 0:
            self.stale_number_reads -= 1
            return None
        numbers = [
            i.invoice_number for i in self.invoices.values()
            if i.company_id == company_id and i.invoice_number.startswith(prefix)
        ]
        return max(numbers, key=lambda n: (len(n), n)) if numbers else None

    def insert_invoice(self, values: dict[str, Any], lines) -> Invoice:
        self._check("insert_invoice")
        for existing in self.invoices.values():
            if (existing.company_id, existing.invoice_number) == (values["company_id"], values["invoice_number"]):
                raise DuplicateInvoiceNumberError("Invoice number already taken")

        now = self._now()
        invoice_id = uuid4()
        stored_lines = [
            InvoiceLine(id=uuid4(), invoice_id=invoice_id, position=position, **line.model_dump())
            for position, line in enumerate(lines)
        ]
        invoice = Invoice(**{"id": invoice_id, "created_at": now, "updated_at": now, **values, "lines": stored_lines})
        self.invoices[invoice.id] = invoice
        return invoice

    def get_invoice(self, invoice_id: UUID, company_id: UUID, for_update: bool = False) -> Invoice | None:
        invoice = self.invoices.get(invoice_id)
        if invoice is None or invoice.company_id != company_id:
            return None
        return invoice

    def set_invoice_status(self, invoice_id: UUID, status: InvoiceStatus, at: datetime) -> Invoice:
        self._check("set_invoice_status")
        column = {
            InvoiceStatus.ISSUED: "issued_at",
            InvoiceStatus.PAID: "paid_at",
            InvoiceStatus.CANCELLED: "cancelled_at",
        }[status]
        invoice = self.invoices[invoice_id].model_copy(update={"status": status, column: at, "updated_at": at})
        self.invoices[invoice_id] = invoice
        return invoice

    def search_invoices(
        self,
        company_id: UUID,
        status: InvoiceStatus | None = None,
        search: str | None = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[Invoice], int]:
        needle = (search or "").strip().lower()
        rows = []
        for invoice in self.invoices.values():
            if invoice.company_id != company_id:
                continue
            if status is not None and invoice.status != status:
                continue
            haystack = (
                invoice.invoice_number,
                invoice.client_name,
                self.shipments[invoice.shipment_id].tracking_number,
            )
            if needle and not any(needle in value.lower() for value in haystack):
                continue
            rows.append(invoice)
        rows.sort(key=lambda i: i.created_at, reverse=True)
        return rows[offset:offset + limit], len(rows)

    def invoice_totals(self, company_id: UUID) -> InvoiceSummary:
        rows = [i for i in self.invoices.values() if i.company_id == company_id]
        by_status = {status: [i for i in rows if i.status == status] for status in InvoiceStatus}
        active = [i for i in rows if i.status != InvoiceStatus.CANCELLED]
        return InvoiceSummary(
            total_invoiced=sum(i.total_amount for i in active),
            total_outstanding=sum(i.amount_due for i in by_status[InvoiceStatus.ISSUED]),
            total_paid=sum(i.total_amount for i in by_status[InvoiceStatus.PAID]),
            count=len(active),
            draft=len(by_status[InvoiceStatus.DRAFT]),
            issued=len(by_status[InvoiceStatus.ISSUED]),
            paid=len(by_status[InvoiceStatus.PAID]),
            cancelled=len(by_status[InvoiceStatus.CANCELLED]),
        )

    # -- timeline -------------------------------------------------------------

    def insert_timeline_event(self, event, user_id: UUID | None, user_name: str | None) -> TimelineEvent:
        self._check("insert_timeline_event")
        entry = TimelineEvent(
            id=uuid4(),
            shipment_id=event.shipment_id,
            action=event.action,
            description=event.description,
            user_id=user_id,
            user_name=user_name,
            created_at=self._now(),
        )
        self.timeline.append(entry)
        return entry

    def list_timeline(self, shipment_id: UUID) -> list[TimelineEvent]:
        return [event for event in self.timeline if event.shipment_id == shipment_id]


# =============================================================================
# ACTOR CONTEXT FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def reset_actor_context():
    """Ensure clean actor context before and after each test."""
    clear_actor()
    yield
    clear_actor()


@pytest.fixture
def company_id() -> UUID:
    return TEST_COMPANY_ID


@pytest.fixture
def user_id() -> UUID:
    return TEST_USER_ID


@pytest.fixture
def actor(user_id, company_id):
    """Run the test as the primary company's director."""
    with actor_context(user_id, company_id, TEST_USER_NAME):
        yield user_id


# =============================================================================
# DATABASE FIXTURES
# =============================================================================


@pytest.fixture
def memory_db() -> InMemoryBillingDatabase:
    """Empty in-memory database with the primary company registered."""
    db = InMemoryBillingDatabase()
    db.add_company()
    return db


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture(scope="session")
def postgres():
    """Session-scoped PostgresClient for integration tests; skipped without Vault credentials."""
    import os

    if not os.getenv("VAULT_ADDR"):
        pytest.skip("VAULT_ADDR not set, skipping PostgreSQL integration tests")

    from clients.postgres_client import PostgresClient
    from clients.vault_client import get_database_url

    client = PostgresClient(get_database_url())
    yield client
    client.close()


@pytest.fixture
def other_company(memory_db):
    """Second agency in the same database. Returns a factory for acting as its director."""
    memory_db.add_company(TEST_COMPANY_B_ID, "Guinée Logistique")
    return lambda: actor_context(TEST_USER_B_ID, TEST_COMPANY_B_ID, "Fatoumata Camara")


# =============================================================================
# EVENT FIXTURES
# =============================================================================


BILLING_EVENTS = (
    "InvoiceGenerated", "InvoiceIssued", "InvoicePaid", "InvoiceCancelled",
    "ShipmentStatusAdvanced",
    "ExpenseCreated", "ExpenseUpdated", "ExpensePaid", "ExpenseDeleted",
)


@pytest.fixture
def event_bus():
    from core.event_bus import EventBus
    return EventBus()


@pytest.fixture
def published(event_bus) -> list:
    """Every billing event published on `event_bus`, in order."""
    received = []
    for name in BILLING_EVENTS:
        event_bus.subscribe(name, received.append)
    return received
