"""
Audit trail for billing actions.

Every invoice and expense mutation is logged here. The audit log is:
- Append-only (entries never modified or deleted)
- Actor-attributed (who did it, for which company)
- Self-contained (details carry the invoice number, amounts and tracking
  number as they were, so entries stay readable after later changes)

Entries are written by event handlers after the business transaction has
committed (see core/handlers). A failed audit write is logged by the event
bus and never undoes or blocks the transition it describes.
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable
from uuid import UUID, uuid4

from psycopg2.extras import Json

from clients.postgres_client import PostgresClient, contains_pattern
from core.models import ActionCount, AuditEntry, AuditStats, Page
from utils.actor_context import get_current_company_id, get_current_user_id
from utils.timezone import now_utc, to_utc

RECENT_DAYS = 7
TOP_ACTIONS = 10


class AuditAction(Enum):
    """Kind of action recorded."""

    INVOICE_CREATED = "INVOICE_CREATED"
    INVOICE_ISSUED = "INVOICE_ISSUED"
    INVOICE_PAID = "INVOICE_PAID"
    INVOICE_CANCELLED = "INVOICE_CANCELLED"
    EXPENSE_CREATED = "EXPENSE_CREATED"
    EXPENSE_UPDATED = "EXPENSE_UPDATED"
    EXPENSE_PAID = "EXPENSE_PAID"
    EXPENSE_DELETED = "EXPENSE_DELETED"


def compute_changes(
    old: dict[str, Any],
    new: dict[str, Any],
    exclude_fields: set[str] | None = None
) -> dict[str, dict[str, Any]]:
    """
    Compute changes between two entity states.

    Args:
        old: Previous state of entity
        new: New state of entity
        exclude_fields: Fields to ignore (defaults to {"updated_at"})

    Returns:
        Dict of {field: {"old": old_val, "new": new_val}} for changed fields.
        Empty dict if no changes.
    """
    exclude = exclude_fields or {"updated_at"}
    changes = {}

    for key in set(old.keys()) | set(new.keys()):
        if key in exclude:
            continue

        old_val = old.get(key)
        new_val = new.get(key)

        if old_val != new_val:
            changes[key] = {"old": old_val, "new": new_val}

    return changes


class AuditLogger:
    """
    Audit trail writer.

    Pass JSON-compatible details: use model_dump(mode="json") for models.

    Usage:
        audit = AuditLogger(postgres)

        audit.log_action(
            action=AuditAction.INVOICE_PAID,
            entity="Invoice",
            entity_id=invoice.id,
            details={"invoiceNumber": invoice.invoice_number, "amount": invoice.total_amount},
        )

        history = audit.get_entity_history("Invoice", invoice.id)
        recent_payments = audit.search(action="PAID", date_from=last_monday)
    """

    def __init__(self, postgres: PostgresClient, clock: Callable[[], datetime] = now_utc):
        self.postgres = postgres
        self.clock = clock

    def log_action(
        self,
        action: AuditAction,
        entity: str,
        entity_id: UUID,
        details: dict[str, Any],
        user_id: UUID | None = None,
        company_id: UUID | None = None,
    ) -> None:
        """
        Append an audit entry.

        Args:
            action: What happened
            entity: Entity type ("Invoice", "Expense")
            entity_id: ID of the entity
            details: Snapshot of the relevant fields
            user_id: Actor (defaults to current context)
            company_id: Actor's company (defaults to current context)
        """
        if user_id is None:
            user_id = get_current_user_id()
        if company_id is None:
            company_id = get_current_company_id()

        self.postgres.execute(
            """
            INSERT INTO audit_log (id, company_id, user_id, action, entity, entity_id, details, created_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            """,
            (
                uuid4(),
                company_id,
                user_id,
                action.value,
                entity,
                entity_id,
                Json(details),
                self.clock(),
            )
        )

    def get_entity_history(self, entity: str, entity_id: UUID) -> list[dict[str, Any]]:
        """
        Full audit history of one entity in the current company, newest first.
        """
        return self.postgres.execute(
            """
            SELECT id, company_id, user_id, action, entity, entity_id, details, created_at
            FROM audit_log
            WHERE entity = %s AND entity_id = %s AND company_id = %s
            ORDER BY created_at DESC
            """,
            (entity, entity_id, get_current_company_id())
        )

    def search(
        self,
        entity: str | None = None,
        action: str | None = None,
        user_id: UUID | None = None,
        entity_id: UUID | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        page: int = 1,
        limit: int = 30,
    ) -> Page[AuditEntry]:
        """
        Audit entries of the current company, newest first.

        Args:
            entity: Exact entity type ("Invoice", "Expense")
            action: Substring of the action name, matched literally ("PAID")
            user_id: Only entries by this user
            entity_id: Only entries about this entity
            date_from: Inclusive lower bound on created_at (timezone-aware)
            date_to: Inclusive upper bound on created_at (timezone-aware)
            page: 1-based page number
            limit: Page size, clamped to 1..100

        Raises:
            ValueError: If a date bound is naive
        """
        page = max(page, 1)
        limit = min(max(limit, 1), 100)

        conditions = ["company_id = %s"]
        params: list[Any] = [get_current_company_id()]

        if entity:
            conditions.append("entity = %s")
            params.append(entity)
        needle = (action or "").strip()
        if needle:
            conditions.append("action ILIKE %s ESCAPE '\\'")
            params.append(contains_pattern(needle))
        if user_id is not None:
            conditions.append("user_id = %s")
            params.append(user_id)
        if entity_id is not None:
            conditions.append("entity_id = %s")
            params.append(entity_id)
        if date_from is not None:
            conditions.append("created_at >= %s")
            params.append(to_utc(date_from))
        if date_to is not None:
            conditions.append("created_at <= %s")
            params.append(to_utc(date_to))

        where = " AND ".join(conditions)
        total = self.postgres.execute_scalar(f"SELECT COUNT(*) FROM audit_log WHERE {where}", tuple(params)) or 0
        rows = self.postgres.execute(
            f"""
            SELECT id, company_id, user_id, action, entity, entity_id, details, created_at
            FROM audit_log
            WHERE {where}
            ORDER BY created_at DESC
            LIMIT %s OFFSET %s
            """,
            (*params, limit, (page - 1) * limit)
        )
        return Page[AuditEntry](
            items=[AuditEntry.model_validate(row) for row in rows],
            page=page,
            limit=limit,
            total=total,
        )

    def stats(self) -> AuditStats:
        """Entry counts for the current company, and its most frequent recent actions."""
        company_id = get_current_company_id()
        since = self.clock() - timedelta(days=RECENT_DAYS)

        total = self.postgres.execute_scalar(
            "SELECT COUNT(*) FROM audit_log WHERE company_id = %s",
            (company_id,)
        ) or 0
        recent = self.postgres.execute_scalar(
            "SELECT COUNT(*) FROM audit_log WHERE company_id = %s AND created_at >= %s",
            (company_id, since)
        ) or 0
        rows = self.postgres.execute(
            """
            SELECT action, COUNT(*) AS count
            FROM audit_log
            WHERE company_id = %s AND created_at >= %s
            GROUP BY action
            ORDER BY count DESC, action
            LIMIT %s
            """,
            (company_id, since, TOP_ACTIONS)
        )
        return AuditStats(
            total=total,
            recent=recent,
            recent_days=RECENT_DAYS,
            top_actions=[ActionCount(action=row["action"], count=row["count"]) for row in rows],
        )
