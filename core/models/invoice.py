"""Invoice domain models.

All amounts are whole Guinean francs. Tax rate is a fraction applied to the
honoraires only (0.18 = 18%).
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field


class InvoiceStatus(str, Enum):
    """Invoice lifecycle status."""

    DRAFT = "DRAFT"
    ISSUED = "ISSUED"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class InvoiceGenerate(BaseModel):
    """Options for generating an invoice from a shipment's expenses."""

    shipment_id: UUID
    honoraires: int | None = Field(None, ge=0)
    tax_rate: float | None = Field(None, ge=0, le=1)
    notes: str | None = Field(None, max_length=2000)
    # "2026-03-31" means midnight in the agency's timezone; full ISO datetimes kept as given
    due_date: str | None = Field(None, max_length=40)
    auto_issue: bool = False


class InvoiceLineDraft(BaseModel):
    """A line computed by the line builder, before it is stored."""

    description: str = Field(..., min_length=1)
    category: str
    quantity: int = Field(1, ge=1)
    unit_price: int = Field(..., ge=0)
    amount: int = Field(..., ge=0)


class InvoiceLine(InvoiceLineDraft):
    """Invoice line as stored. Immutable once created."""

    id: UUID
    invoice_id: UUID
    position: int

    model_config = {"from_attributes": True}


class Invoice(BaseModel):
    """Full invoice entity as stored, with its lines."""

    id: UUID
    company_id: UUID
    shipment_id: UUID
    invoice_number: str
    status: InvoiceStatus
    # Snapshots taken at generation time
    company_name: str
    company_nif: str | None = None
    company_phone: str | None = None
    company_address: str | None = None
    client_name: str
    client_nif: str | None = None
    client_phone: str | None = None
    client_address: str | None = None
    # Amounts
    subtotal: int
    tax_rate: float
    tax_amount: int
    total_amount: int
    total_provisions: int
    total_disbursements: int
    honoraires: int
    amount_due: int
    issued_at: datetime | None = None
    paid_at: datetime | None = None
    cancelled_at: datetime | None = None
    due_date: datetime | None = None
    notes: str | None = None
    created_by_id: UUID | None = None
    created_at: datetime
    updated_at: datetime
    lines: list[InvoiceLine] = Field(default_factory=list)

    model_config = {"from_attributes": True}

    @property
    def is_overpaid(self) -> bool:
        """Whether provisions exceed the invoice total (client is owed money)."""
        return self.amount_due < 0

    @property
    def balance_label(self) -> str:
        """How the balance is worded on the invoice."""
        return "Trop-perçu" if self.is_overpaid else "Reste à payer"


class InvoiceSummary(BaseModel):
    """Company-wide invoicing figures."""

    total_invoiced: int
    total_outstanding: int
    total_paid: int
    count: int
    draft: int
    issued: int
    paid: int
    cancelled: int
