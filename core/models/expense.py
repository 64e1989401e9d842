"""Expense (provision / disbursement) domain models.

All amounts are whole Guinean francs (GNF has no subunit).
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field


class ExpenseType(str, Enum):
    """Direction of the money."""

    PROVISION = "PROVISION"  # advance received from the client
    DISBURSEMENT = "DISBURSEMENT"  # paid out by the agency on the client's behalf


class ExpenseCategory(str, Enum):
    """Cost types a dossier can incur."""

    # Customs duties and levies
    DD = "DD"
    TVA = "TVA"
    RTL = "RTL"
    PC = "PC"
    CA = "CA"
    BFU = "BFU"
    DDI_FEE = "DDI_FEE"
    # Port and terminal
    ACCONAGE = "ACCONAGE"
    BRANCHEMENT = "BRANCHEMENT"
    SURESTARIES = "SURESTARIES"
    MANUTENTION = "MANUTENTION"
    PASSAGE_TERRE = "PASSAGE_TERRE"
    RELEVAGE = "RELEVAGE"
    SECURITE_TERMINAL = "SECURITE_TERMINAL"
    # Shipping line
    DO_FEE = "DO_FEE"
    SEAWAY_BILL = "SEAWAY_BILL"
    MANIFEST_FEE = "MANIFEST_FEE"
    CONTAINER_DAMAGE = "CONTAINER_DAMAGE"
    SECURITE_MSC = "SECURITE_MSC"
    SURCHARGE = "SURCHARGE"
    PAC = "PAC"
    ADP_FEE = "ADP_FEE"
    # Transport
    TRANSPORT = "TRANSPORT"
    TRANSPORT_ADD = "TRANSPORT_ADD"
    # Agency
    HONORAIRES = "HONORAIRES"
    COMMISSION = "COMMISSION"
    # Other
    ASSURANCE = "ASSURANCE"
    MAGASINAGE = "MAGASINAGE"
    SCANNER = "SCANNER"
    ESCORTE = "ESCORTE"
    AUTRE = "AUTRE"

    @property
    def label(self) -> str:
        """French label printed on invoice lines."""
        return CATEGORY_LABELS[self]


CATEGORY_LABELS: dict[ExpenseCategory, str] = {
    ExpenseCategory.DD: "Droit de Douane",
    ExpenseCategory.TVA: "TVA",
    ExpenseCategory.RTL: "Redevance de Traitement et Liquidation",
    ExpenseCategory.PC: "Prélèvement Communautaire",
    ExpenseCategory.CA: "Contribution Africaine",
    ExpenseCategory.BFU: "BFU",
    ExpenseCategory.DDI_FEE: "Frais DDI",
    ExpenseCategory.ACCONAGE: "Acconage",
    ExpenseCategory.BRANCHEMENT: "Branchement",
    ExpenseCategory.SURESTARIES: "Surestaries",
    ExpenseCategory.MANUTENTION: "Manutention",
    ExpenseCategory.PASSAGE_TERRE: "Passage à terre",
    ExpenseCategory.RELEVAGE: "Relevage",
    ExpenseCategory.SECURITE_TERMINAL: "Sécurité terminal",
    ExpenseCategory.DO_FEE: "Frais DO",
    ExpenseCategory.SEAWAY_BILL: "Seaway Bill",
    ExpenseCategory.MANIFEST_FEE: "Frais manifeste",
    ExpenseCategory.CONTAINER_DAMAGE: "Dommage conteneur",
    ExpenseCategory.SECURITE_MSC: "Sécurité MSC",
    ExpenseCategory.SURCHARGE: "Surcharge",
    ExpenseCategory.PAC: "PAC",
    ExpenseCategory.ADP_FEE: "Frais ADP",
    ExpenseCategory.TRANSPORT: "Transport",
    ExpenseCategory.TRANSPORT_ADD: "Transport complémentaire",
    ExpenseCategory.HONORAIRES: "Honoraires",
    ExpenseCategory.COMMISSION: "Commission",
    ExpenseCategory.ASSURANCE: "Assurance",
    ExpenseCategory.MAGASINAGE: "Magasinage",
    ExpenseCategory.SCANNER: "Scanner",
    ExpenseCategory.ESCORTE: "Escorte",
    ExpenseCategory.AUTRE: "Autre",
}

_missing_labels = set(ExpenseCategory) - set(CATEGORY_LABELS)
if _missing_labels:
    raise RuntimeError(f"Expense categories without a label: {sorted(c.value for c in _missing_labels)}")


def category_label(category: ExpenseCategory | str) -> str:
    """Label for a category, or the raw code when it is not a known category."""
    try:
        return CATEGORY_LABELS[ExpenseCategory(category)]
    except ValueError:
        return str(category)


class ExpenseCreate(BaseModel):
    """Data required to record an expense on a shipment."""

    shipment_id: UUID
    type: ExpenseType
    category: ExpenseCategory
    description: str = Field(..., min_length=1, max_length=500)
    amount: int = Field(..., gt=0)
    quantity: int | None = Field(None, ge=1)
    unit_price: int | None = Field(None, gt=0)
    reference: str | None = Field(None, max_length=100)
    supplier: str | None = Field(None, max_length=200)
    notes: str | None = Field(None, max_length=2000)


class ExpenseUpdate(BaseModel):
    """Data that can be updated on an unpaid expense. All fields optional."""

    description: str | None = Field(None, min_length=1, max_length=500)
    amount: int | None = Field(None, gt=0)
    reference: str | None = Field(None, max_length=100)
    supplier: str | None = Field(None, max_length=200)
    notes: str | None = Field(None, max_length=2000)


class Expense(BaseModel):
    """Full expense entity as stored."""

    id: UUID
    shipment_id: UUID
    type: ExpenseType
    category: ExpenseCategory
    description: str
    amount: int = Field(..., ge=0)
    quantity: int | None = None
    unit_price: int | None = None
    reference: str | None = None
    supplier: str | None = None
    notes: str | None = None
    paid: bool = False
    paid_at: datetime | None = None
    paid_by: UUID | None = None
    created_at: datetime

    model_config = {"from_attributes": True}

    @property
    def is_provision(self) -> bool:
        """Whether this is money received from the client."""
        return self.type == ExpenseType.PROVISION


class FinanceSummary(BaseModel):
    """Company-wide provision / disbursement position."""

    total_provisions: int
    total_disbursements: int
    paid_disbursements: int
    unpaid_disbursements: int
    provision_count: int
    disbursement_count: int
    unpaid_count: int

    @property
    def balance(self) -> int:
        """Provisions left after the disbursements actually paid out."""
        return self.total_provisions - self.paid_disbursements

    @property
    def total_balance(self) -> int:
        """Provisions left once every recorded disbursement is paid."""
        return self.total_provisions - self.total_disbursements
