"""Core domain models."""

from core.models.actor import Actor, UserRole
from core.models.company import Company
from core.models.shipment import Shipment, ShipmentStatus
from core.models.expense import (
    Expense, ExpenseCreate, ExpenseUpdate, ExpenseType, ExpenseCategory,
    CATEGORY_LABELS, category_label, FinanceSummary,
)
from core.models.invoice import (
    Invoice, InvoiceGenerate, InvoiceLine, InvoiceLineDraft, InvoiceStatus, InvoiceSummary,
)
from core.models.timeline import TimelineEvent, TimelineEventCreate
from core.models.audit import ActionCount, AuditEntry, AuditStats
from core.models.page import Page

__all__ = [
    # Actor
    "Actor", "UserRole",
    # Company
    "Company",
    # Shipment
    "Shipment", "ShipmentStatus",
    # Expense
    "Expense", "ExpenseCreate", "ExpenseUpdate", "ExpenseType", "ExpenseCategory",
    "CATEGORY_LABELS", "category_label", "FinanceSummary",
    # Invoice
    "Invoice", "InvoiceGenerate", "InvoiceLine", "InvoiceLineDraft", "InvoiceStatus", "InvoiceSummary",
    # Timeline
    "TimelineEvent", "TimelineEventCreate",
    # Audit
    "AuditEntry", "ActionCount", "AuditStats",
    # Pagination
    "Page",
]
