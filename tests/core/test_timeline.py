"""Tests for shipment timeline entries."""

from datetime import datetime, timezone
from uuid import uuid4

import pytest

from core import timeline
from core.models import ExpenseCategory, ExpenseType, Invoice, InvoiceStatus, ShipmentStatus

NNBSP = "\u202f"


@pytest.fixture
def shipment(memory_db):
    return memory_db.add_shipment()


def _invoice(shipment, status=InvoiceStatus.DRAFT, amount_due=15_750_000):
    now = datetime(2026, 3, 10, tzinfo=timezone.utc)
    return Invoice(
        id=uuid4(), company_id=shipment.company_id, shipment_id=shipment.id,
        invoice_number="FAC-2026-0007", status=status,
        company_name="Transit Express Guinée", client_name=shipment.client_name,
        subtotal=15_750_000, tax_rate=0.0, tax_amount=0, total_amount=15_750_000,
        total_provisions=15_750_000 - amount_due, total_disbursements=15_000_000,
        honoraires=750_000, amount_due=amount_due, created_at=now, updated_at=now,
    )


class TestRecord:

    def test_attributed_to_current_actor(self, actor, memory_db, shipment):
        entry = timeline.record(memory_db, shipment.id, "Note")

        assert entry.user_id == actor
        assert entry.user_name == "Mamadou Diallo"
        assert entry.description is None

    def test_requires_actor(self, memory_db, shipment):
        with pytest.raises(RuntimeError):
            timeline.record(memory_db, shipment.id, "Note")


class TestInvoiceEntries:

    def test_draft_created(self, actor, memory_db, shipment):
        entry = timeline.invoice_created(memory_db, _invoice(shipment))

        assert entry.action == "Facture FAC-2026-0007 créée (brouillon)"
        assert f"15{NNBSP}750{NNBSP}000 GNF" in entry.description
        assert "Reste à payer" in entry.description

    def test_issued_on_creation(self, actor, memory_db, shipment):
        entry = timeline.invoice_created(memory_db, _invoice(shipment, InvoiceStatus.ISSUED))

        assert entry.action == "Facture FAC-2026-0007 émise"

    def test_overpaid_balance_shown_unsigned(self, actor, memory_db, shipment):
        entry = timeline.invoice_created(memory_db, _invoice(shipment, amount_due=-2_000_000))

        assert f"Trop-perçu : 2{NNBSP}000{NNBSP}000 GNF" in entry.description

    def test_paid(self, actor, memory_db, shipment):
        entry = timeline.invoice_paid(memory_db, _invoice(shipment, InvoiceStatus.PAID))

        assert entry.action == "Facture FAC-2026-0007 payée"
        assert entry.description == f"Paiement reçu : 15{NNBSP}750{NNBSP}000 GNF"

    def test_shipment_advanced(self, actor, memory_db, shipment):
        entry = timeline.shipment_advanced(memory_db, shipment.id, ShipmentStatus.CLOSED, "Dossier clôturé")

        assert entry.action == "Statut → CLOSED"
        assert entry.description == "Dossier clôturé"


class TestExpenseEntries:

    def test_provision_added(self, actor, memory_db, shipment):
        expense = memory_db.add_expense(shipment, ExpenseType.PROVISION, ExpenseCategory.AUTRE, 5_000_000, description="Avance client")

        entry = timeline.expense_added(memory_db, expense)

        assert entry.action == f"Provision ajoutée : 5{NNBSP}000{NNBSP}000 GNF"
        assert entry.description == "Avance client (AUTRE)"

    def test_disbursement_paid(self, actor, memory_db, shipment):
        expense = memory_db.add_expense(shipment, ExpenseType.DISBURSEMENT, ExpenseCategory.DD, 800_000, description="Liquidation")

        entry = timeline.expense_paid(memory_db, expense)

        assert entry.action == f"Débours payé : 800{NNBSP}000 GNF"
        assert entry.description == "Liquidation"
