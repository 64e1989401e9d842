"""
Invoice arithmetic.

Turns a shipment's expenses into invoice lines and totals:

- one line per disbursement category, in the order categories first appear;
- one "Honoraires de transit" line for the agency's fee, always last;
- tax on the honoraires only, never on disbursements (those are the
  client's own money advanced by the agency);
- balance = total - provisions already received, negative when the client
  has overpaid.

Every aggregation step is rounded to whole GNF so totals match the agency's
reference figures exactly.
"""

from dataclasses import dataclass
from typing import Iterable, Protocol

from core.config import BillingConfig
from core.models import ExpenseCategory, ExpenseType, InvoiceLineDraft, category_label
from utils.money import round_gnf, to_decimal

HONORAIRES_DESCRIPTION = "Honoraires de transit"

_DEFAULT_CONFIG = BillingConfig()


class ExpenseLike(Protocol):
    """What the line builder needs from an expense record."""

    type: ExpenseType
    category: ExpenseCategory | str
    amount: int


@dataclass(frozen=True)
class LineBuild:
    """Lines for one invoice, plus the figures they were derived from."""

    lines: list[InvoiceLineDraft]
    honoraires: int
    total_provisions: int
    total_disbursements: int


@dataclass(frozen=True)
class InvoiceTotals:
    """Invoice totals computed from its lines."""

    subtotal: int
    tax_rate: float
    tax_amount: int
    total_amount: int
    total_provisions: int
    amount_due: int

    @property
    def is_overpaid(self) -> bool:
        """Client paid more in provisions than the invoice total."""
        return self.amount_due < 0

    @property
    def balance_label(self) -> str:
        """'Reste à payer' for a balance owed, 'Trop-perçu' for a credit."""
        return "Trop-perçu" if self.is_overpaid else "Reste à payer"


def default_honoraires(total_disbursements: int, config: BillingConfig = _DEFAULT_CONFIG) -> int:
    """
    Agency fee when the caller does not set one.

    5% of disbursements with a 500,000 GNF floor; nothing at all on a dossier
    without disbursements.
    """
    if total_disbursements == 0:
        return 0
    percentage = round_gnf(to_decimal(total_disbursements) * to_decimal(config.honoraires_rate))
    return max(percentage, config.honoraires_minimum)


def build_invoice_lines(
    expenses: Iterable[ExpenseLike],
    honoraires: int | None = None,
    config: BillingConfig = _DEFAULT_CONFIG,
) -> LineBuild:
    """
    Derive invoice lines from a shipment's expenses.

    Args:
        expenses: Provisions and disbursements of the shipment, oldest first
        honoraires: Explicit agency fee; None applies the default policy
        config: Fee rate and floor

    Returns:
        LineBuild with category lines first and the honoraires line last
    """
    total_provisions = 0
    total_disbursements = 0
    # dicts keep insertion order: categories come out in first-seen order
    by_category: dict[str, list[int]] = {}

    for expense in expenses:
        if expense.type == ExpenseType.PROVISION:
            total_provisions += expense.amount
            continue

        total_disbursements += expense.amount
        code = expense.category.value if isinstance(expense.category, ExpenseCategory) else str(expense.category)
        by_category.setdefault(code, []).append(expense.amount)

    lines = []
    for code, amounts in by_category.items():
        label = category_label(code)
        amount = round_gnf(sum(amounts))
        lines.append(InvoiceLineDraft(
            description=f"{label} ({len(amounts)} opérations)" if len(amounts) > 1 else label,
            category=code,
            quantity=1,
            unit_price=amount,
            amount=amount,
        ))

    fee = default_honoraires(total_disbursements, config) if honoraires is None else round_gnf(honoraires)

    if fee > 0:
        lines.append(InvoiceLineDraft(
            description=HONORAIRES_DESCRIPTION,
            category=ExpenseCategory.HONORAIRES.value,
            quantity=1,
            unit_price=fee,
            amount=fee,
        ))

    return LineBuild(
        lines=lines,
        honoraires=fee,
        total_provisions=round_gnf(total_provisions),
        total_disbursements=round_gnf(total_disbursements),
    )


def compute_invoice_totals(
    lines: Iterable[InvoiceLineDraft],
    honoraires: int,
    total_provisions: int,
    tax_rate: float = 0.0,
) -> InvoiceTotals:
    """
    Compute subtotal, tax, total and balance for a set of lines.

    Args:
        lines: All invoice lines, honoraires line included
        honoraires: Fee the tax applies to
        total_provisions: Advances already received from the client
        tax_rate: Fraction applied to the honoraires (0.18 for 18%)

    Returns:
        InvoiceTotals; amount_due keeps its sign
    """
    subtotal = sum(line.amount for line in lines)
    tax_amount = round_gnf(to_decimal(honoraires) * to_decimal(tax_rate))
    total_amount = subtotal + tax_amount

    return InvoiceTotals(
        subtotal=subtotal,
        tax_rate=tax_rate,
        tax_amount=tax_amount,
        total_amount=total_amount,
        total_provisions=total_provisions,
        amount_due=total_amount - total_provisions,
    )
