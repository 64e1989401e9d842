"""
Expense ledger of a dossier: provisions received and disbursements advanced.

Provisions are money the client hands the agency up front; disbursements are
costs the agency pays on the client's behalf (duties, port fees, transport).
Once a disbursement is paid it is part of the books and can no longer be
edited or removed.
"""

import logging
from uuid import UUID

from core import timeline
from core.audit import compute_changes
from core.database import BillingDatabase
from core.event_bus import EventBus
from core.events import ExpenseCreated, ExpenseDeleted, ExpensePaid, ExpenseUpdated
from core.exceptions import InvalidInputError, InvalidStateError, NotFoundError
from core.models import Expense, ExpenseCreate, ExpenseType, ExpenseUpdate, FinanceSummary, Page, Shipment
from utils.actor_context import get_current_company_id, get_current_user_id
from utils.money import format_gnf
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class ExpenseService:
    """Service for expense ledger operations."""

    def __init__(self, db: BillingDatabase, event_bus: EventBus):
        self.db = db
        self.event_bus = event_bus

    def create(self, data: ExpenseCreate) -> Expense:
        """
        Record a provision or disbursement on a shipment.

        Raises:
            NotFoundError: If the shipment doesn't exist
        """
        company_id = get_current_company_id()

        with self.db.transaction() as tx:
            shipment = tx.get_shipment(data.shipment_id, company_id)
            if shipment is None:
                raise NotFoundError(f"Shipment {data.shipment_id} not found")

            expense = tx.insert_expense(data)
            timeline.expense_added(tx, expense)

        logger.info(
            "%s %s recorded on %s (%s)",
            expense.type.value, format_gnf(expense.amount), shipment.tracking_number, expense.category.value,
        )

        self.event_bus.publish(ExpenseCreated(
            expense=expense,
            tracking_number=shipment.tracking_number,
            user_id=get_current_user_id(),
            company_id=company_id,
        ))
        return expense

    def get_by_id(self, expense_id: UUID) -> Expense | None:
        return self.db.get_expense(expense_id, get_current_company_id())

    def list_expenses(
        self,
        shipment_id: UUID | None = None,
        expense_type: ExpenseType | None = None,
        paid: bool | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> Page[Expense]:
        """
        List the company's expenses, newest first.

        Args:
            shipment_id: Only expenses of this shipment
            expense_type: PROVISION or DISBURSEMENT
            paid: Filter on payment state
            page: 1-based page number
            limit: Page size, clamped to 1..100
        """
        page = max(page, 1)
        limit = min(max(limit, 1), 100)

        expenses, total = self.db.search_expenses(
            get_current_company_id(),
            shipment_id=shipment_id,
            expense_type=expense_type,
            paid=paid,
            offset=(page - 1) * limit,
            limit=limit,
        )
        return Page[Expense](items=expenses, page=page, limit=limit, total=total)

    def mark_paid(self, expense_id: UUID) -> Expense:
        """
        Pay out a disbursement.

        Raises:
            NotFoundError: If the expense doesn't exist
            InvalidStateError: If it is already paid
            InvalidInputError: If the expense is a provision
        """
        user_id = get_current_user_id()

        with self.db.transaction() as tx:
            current, shipment = self._get_unpaid(tx, expense_id, "paid again")
            if current.is_provision:
                raise InvalidInputError("Provisions are received from the client, not paid out")

            expense = tx.mark_expense_paid(current.id, paid_by=user_id, paid_at=now_utc())
            timeline.expense_paid(tx, expense)

        logger.info("Disbursement paid on %s: %s", shipment.tracking_number, format_gnf(expense.amount))

        self.event_bus.publish(ExpensePaid(
            expense=expense,
            tracking_number=shipment.tracking_number,
            user_id=user_id,
            company_id=shipment.company_id,
        ))
        return expense

    def update(self, expense_id: UUID, data: ExpenseUpdate) -> Expense:
        """
        Edit an unpaid expense.

        Args:
            expense_id: Expense UUID
            data: Fields to update (only non-None fields are applied)

        Returns:
            Updated expense (unchanged if nothing was given)

        Raises:
            NotFoundError: If the expense doesn't exist
            InvalidStateError: If the expense is paid
        """
        fields = data.model_dump(exclude_none=True)

        with self.db.transaction() as tx:
            current, shipment = self._get_unpaid(tx, expense_id, "edited")
            if not fields:
                return current
            expense = tx.update_expense(current.id, fields)

        changes = compute_changes(
            current.model_dump(mode="json", include=set(fields)),
            expense.model_dump(mode="json", include=set(fields)),
        )
        if not changes:
            return expense

        logger.info("Expense %s on %s updated: %s", expense.id, shipment.tracking_number, ", ".join(sorted(changes)))

        self.event_bus.publish(ExpenseUpdated(
            expense=expense,
            tracking_number=shipment.tracking_number,
            changes=changes,
            user_id=get_current_user_id(),
            company_id=shipment.company_id,
        ))
        return expense

    def delete(self, expense_id: UUID) -> None:
        """
        Remove an unpaid expense.

        Raises:
            NotFoundError: If the expense doesn't exist
            InvalidStateError: If the expense is paid
        """
        with self.db.transaction() as tx:
            expense, shipment = self._get_unpaid(tx, expense_id, "deleted")
            tx.delete_expense(expense.id)

        logger.info(
            "Expense deleted from %s: %s %s",
            shipment.tracking_number, expense.type.value, format_gnf(expense.amount),
        )

        self.event_bus.publish(ExpenseDeleted(
            expense=expense,
            tracking_number=shipment.tracking_number,
            user_id=get_current_user_id(),
            company_id=shipment.company_id,
        ))

    def summary(self) -> FinanceSummary:
        """Company-wide provision and disbursement totals."""
        return self.db.expense_totals(get_current_company_id())

    def _get_unpaid(self, tx: BillingDatabase, expense_id: UUID, verb: str) -> tuple[Expense, Shipment]:
        """Unpaid expense with its shipment. The shipment row stays locked until commit."""
        company_id = get_current_company_id()

        expense = tx.get_expense(expense_id, company_id)
        if expense is None:
            raise NotFoundError(f"Expense {expense_id} not found")
        if expense.paid:
            raise InvalidStateError(f"Expense {expense_id} is already paid and cannot be {verb}")

        shipment = tx.get_shipment(expense.shipment_id, company_id, for_update=True)
        if shipment is None:
            raise NotFoundError(f"Shipment {expense.shipment_id} not found")
        return expense, shipment
