"""
Handlers that write expense audit entries.

One factory per expense event. Each captures the AuditLogger at wiring time.
"""

from typing import Callable

from core.audit import AuditAction, AuditLogger
from core.events import ExpenseDeleted, ExpenseEvent, ExpenseUpdated


def _base_details(event: ExpenseEvent) -> dict:
    expense = event.expense
    return {
        "type": expense.type.value,
        "category": expense.category.value,
        "amount": expense.amount,
        "shipmentId": str(expense.shipment_id),
        "trackingNumber": event.tracking_number,
    }


def _handler_for(audit: AuditLogger, action: AuditAction, extra: Callable[[ExpenseEvent], dict] | None = None) -> Callable:
    def handler(event: ExpenseEvent):
        details = _base_details(event)
        if extra is not None:
            details.update(extra(event))

        audit.log_action(
            action=action,
            entity="Expense",
            entity_id=event.expense.id,
            details=details,
            user_id=event.user_id,
            company_id=event.company_id,
        )

    return handler


def handle_expense_created(audit: AuditLogger) -> Callable:
    """Factory that returns an ExpenseCreated handler recording EXPENSE_CREATED."""
    return _handler_for(audit, AuditAction.EXPENSE_CREATED)


def handle_expense_updated(audit: AuditLogger) -> Callable:
    """
    Factory that returns an ExpenseUpdated handler.

    The entry carries the field-level changes alongside the expense figures.
    """

    def changes(event: ExpenseUpdated) -> dict:
        return {"changes": event.changes}

    return _handler_for(audit, AuditAction.EXPENSE_UPDATED, changes)


def handle_expense_paid(audit: AuditLogger) -> Callable:
    """Factory that returns an ExpensePaid handler recording EXPENSE_PAID."""
    return _handler_for(audit, AuditAction.EXPENSE_PAID)


def handle_expense_deleted(audit: AuditLogger) -> Callable:
    """Factory that returns an ExpenseDeleted handler recording EXPENSE_DELETED."""

    def description(event: ExpenseDeleted) -> dict:
        return {"description": event.expense.description}

    return _handler_for(audit, AuditAction.EXPENSE_DELETED, description)
