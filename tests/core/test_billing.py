"""Tests for invoice line building and totals."""

from types import SimpleNamespace

import pytest

from core.billing import (
    HONORAIRES_DESCRIPTION,
    build_invoice_lines,
    compute_invoice_totals,
    default_honoraires,
)
from core.config import BillingConfig
from core.models import ExpenseCategory, ExpenseType, InvoiceLineDraft


def disbursement(category, amount):
    return SimpleNamespace(type=ExpenseType.DISBURSEMENT, category=category, amount=amount)


def provision(amount):
    return SimpleNamespace(type=ExpenseType.PROVISION, category=ExpenseCategory.AUTRE, amount=amount)


def line(amount, description="Droit de Douane", category="DD"):
    return InvoiceLineDraft(description=description, category=category, quantity=1, unit_price=amount, amount=amount)


# =============================================================================
# DEFAULT HONORAIRES
# =============================================================================


class TestDefaultHonoraires:

    def test_five_percent_above_floor(self):
        assert default_honoraires(15_000_000) == 750_000

    def test_floor_applies_to_small_dossiers(self):
        assert default_honoraires(2_000_000) == 500_000

    def test_nothing_without_disbursements(self):
        assert default_honoraires(0) == 0

    def test_rounds_half_up(self):
        assert default_honoraires(20_000_010) == 1_000_001

    def test_configurable(self):
        config = BillingConfig(honoraires_rate=0.1, honoraires_minimum=0)
        assert default_honoraires(1_000_000, config) == 100_000


# =============================================================================
# LINE BUILDER
# =============================================================================


class TestBuildInvoiceLines:

    def test_single_category_with_default_fee(self):
        build = build_invoice_lines([disbursement(ExpenseCategory.DD, 15_000_000)])

        assert [(l.description, l.amount) for l in build.lines] == [
            ("Droit de Douane", 15_000_000),
            (HONORAIRES_DESCRIPTION, 750_000),
        ]
        assert build.honoraires == 750_000
        assert build.total_disbursements == 15_000_000
        assert build.total_provisions == 0

    def test_no_expenses_means_no_lines(self):
        build = build_invoice_lines([])

        assert build.lines == []
        assert build.honoraires == 0

    def test_groups_by_category_in_first_seen_order(self):
        build = build_invoice_lines([
            disbursement(ExpenseCategory.TRANSPORT, 1_200_000),
            disbursement(ExpenseCategory.DD, 8_000_000),
            disbursement(ExpenseCategory.TRANSPORT, 800_000),
            disbursement(ExpenseCategory.ACCONAGE, 450_000),
        ])

        assert [(l.description, l.category, l.amount) for l in build.lines] == [
            ("Transport (2 opérations)", "TRANSPORT", 2_000_000),
            ("Droit de Douane", "DD", 8_000_000),
            ("Acconage", "ACCONAGE", 450_000),
            (HONORAIRES_DESCRIPTION, "HONORAIRES", 522_500),
        ]

    def test_grouped_line_has_quantity_one(self):
        build = build_invoice_lines([
            disbursement(ExpenseCategory.SCANNER, 100_000),
            disbursement(ExpenseCategory.SCANNER, 150_000),
        ], honoraires=0)

        (only,) = build.lines
        assert only.quantity == 1
        assert only.unit_price == only.amount == 250_000

    def test_provisions_are_summed_not_billed(self):
        build = build_invoice_lines([
            provision(10_000_000),
            disbursement(ExpenseCategory.DD, 3_000_000),
            provision(2_000_000),
        ])

        assert build.total_provisions == 12_000_000
        assert all(l.category != "AUTRE" for l in build.lines)

    def test_explicit_fee_overrides_default(self):
        build = build_invoice_lines([disbursement(ExpenseCategory.DD, 15_000_000)], honoraires=1_000_000)

        assert build.honoraires == 1_000_000
        assert build.lines[-1].amount == 1_000_000

    def test_explicit_zero_fee_drops_the_line(self):
        build = build_invoice_lines([disbursement(ExpenseCategory.DD, 15_000_000)], honoraires=0)

        assert build.honoraires == 0
        assert [l.category for l in build.lines] == ["DD"]

    def test_fee_without_disbursements_is_billed_when_given(self):
        build = build_invoice_lines([provision(1_000_000)], honoraires=600_000)

        assert [(l.description, l.amount) for l in build.lines] == [(HONORAIRES_DESCRIPTION, 600_000)]

    def test_unknown_category_uses_raw_code(self):
        build = build_invoice_lines([disbursement("FRAIS_PORTUAIRES", 300_000)], honoraires=0)

        assert build.lines[0].description == "FRAIS_PORTUAIRES"

    def test_honoraires_line_is_always_last(self):
        build = build_invoice_lines([
            disbursement(ExpenseCategory.HONORAIRES, 100_000),
            disbursement(ExpenseCategory.DD, 5_000_000),
        ])

        assert build.lines[-1].description == HONORAIRES_DESCRIPTION


# =============================================================================
# TOTALS
# =============================================================================


class TestComputeInvoiceTotals:

    def test_single_category_invoice(self):
        build = build_invoice_lines([disbursement(ExpenseCategory.DD, 15_000_000)])
        totals = compute_invoice_totals(build.lines, build.honoraires, build.total_provisions)

        assert totals.subtotal == 15_750_000
        assert totals.tax_amount == 0
        assert totals.total_amount == 15_750_000
        assert totals.amount_due == 15_750_000

    def test_empty_invoice(self):
        totals = compute_invoice_totals([], 0, 0)

        assert (totals.subtotal, totals.tax_amount, totals.total_amount, totals.amount_due) == (0, 0, 0, 0)

    def test_balance_owed(self):
        totals = compute_invoice_totals([line(25_000_000), line(1_500_000)], 1_500_000, 20_000_000)

        assert totals.total_amount == 26_500_000
        assert totals.amount_due == 6_500_000
        assert not totals.is_overpaid
        assert totals.balance_label == "Reste à payer"

    def test_overpaid_balance_keeps_its_sign(self):
        totals = compute_invoice_totals([line(9_500_000), line(500_000)], 500_000, 12_000_000)

        assert totals.total_amount == 10_000_000
        assert totals.amount_due == -2_000_000
        assert totals.is_overpaid
        assert totals.balance_label == "Trop-perçu"

    def test_tax_applies_to_honoraires_only(self):
        build = build_invoice_lines([disbursement(ExpenseCategory.DD, 15_000_000)])
        totals = compute_invoice_totals(build.lines, build.honoraires, 0, tax_rate=0.18)

        assert totals.tax_amount == 135_000
        assert totals.total_amount == 15_885_000

    @pytest.mark.parametrize("disbursed", [1_000_000, 15_000_000, 80_000_000])
    def test_tax_does_not_depend_on_disbursements(self, disbursed):
        lines = [line(disbursed), line(600_000, HONORAIRES_DESCRIPTION, "HONORAIRES")]
        totals = compute_invoice_totals(lines, 600_000, 0, tax_rate=0.18)

        assert totals.tax_amount == 108_000

    def test_subtotal_is_sum_of_lines(self):
        build = build_invoice_lines([
            disbursement(ExpenseCategory.DD, 4_321_987),
            disbursement(ExpenseCategory.TVA, 1_234_567),
            disbursement(ExpenseCategory.DD, 99_999),
        ])
        totals = compute_invoice_totals(build.lines, build.honoraires, 0)

        assert totals.subtotal == sum(l.amount for l in build.lines)

    def test_tax_rounds_half_up(self):
        totals = compute_invoice_totals([line(500_001)], 500_001, 0, tax_rate=0.5)

        assert totals.tax_amount == 250_001
