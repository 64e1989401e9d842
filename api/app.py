"""Application factory: wires clients, services, event handlers and routers."""

import logging

from fastapi import FastAPI

from api.audit import create_audit_router
from api.errors import register_error_handlers
from api.finance import create_finance_router
from api.invoices import create_invoices_router
from api.middleware import ActorContextMiddleware, RequestIDMiddleware
from clients.postgres_client import PostgresClient
from clients.vault_client import get_database_url
from core.audit import AuditLogger
from core.config import BillingConfig
from core.database import BillingDatabase
from core.event_bus import EventBus
from core.handlers.expense_audit_handler import (
    handle_expense_created,
    handle_expense_deleted,
    handle_expense_paid,
    handle_expense_updated,
)
from core.handlers.invoice_audit_handler import (
    handle_invoice_cancelled,
    handle_invoice_generated,
    handle_invoice_issued,
    handle_invoice_paid,
)
from core.services.expense_service import ExpenseService
from core.services.invoice_service import InvoiceService

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(config: BillingConfig) -> None:
    """Root logging for the API process."""
    logging.basicConfig(level=config.log_level.upper(), format=LOG_FORMAT)


def register_audit_handlers(event_bus: EventBus, audit: AuditLogger) -> None:
    """Subscribe the audit trail writers to every billing event they record."""
    event_bus.subscribe("InvoiceGenerated", handle_invoice_generated(audit))
    event_bus.subscribe("InvoiceIssued", handle_invoice_issued(audit))
    event_bus.subscribe("InvoicePaid", handle_invoice_paid(audit))
    event_bus.subscribe("InvoiceCancelled", handle_invoice_cancelled(audit))
    event_bus.subscribe("ExpenseCreated", handle_expense_created(audit))
    event_bus.subscribe("ExpenseUpdated", handle_expense_updated(audit))
    event_bus.subscribe("ExpensePaid", handle_expense_paid(audit))
    event_bus.subscribe("ExpenseDeleted", handle_expense_deleted(audit))


def build_services(postgres: PostgresClient, config: BillingConfig) -> dict:
    """Services keyed the way the routers look them up."""
    db = BillingDatabase(postgres)
    audit = AuditLogger(postgres)
    event_bus = EventBus()
    register_audit_handlers(event_bus, audit)

    return {
        "invoice": InvoiceService(db, audit, event_bus, config),
        "expense": ExpenseService(db, event_bus),
        "audit": audit,
    }


def create_app(services: dict | None = None, config: BillingConfig | None = None) -> FastAPI:
    """
    Build the billing API.

    The host's authentication layer must run before these routes and place
    an `Actor` on `request.state.actor`.

    Args:
        services: Prebuilt services (tests); built from Vault and Postgres when None
        config: Billing configuration, defaults otherwise
    """
    config = config or BillingConfig()

    if services is None:
        configure_logging(config)
        services = build_services(PostgresClient(get_database_url()), config)
        logger.info("Billing API ready (invoice prefix %s)", config.invoice_prefix)

    app = FastAPI(title="Transit billing")
    app.add_middleware(ActorContextMiddleware)
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)

    app.include_router(create_invoices_router(services), prefix="/api")
    app.include_router(create_finance_router(services), prefix="/api")
    app.include_router(create_audit_router(services), prefix="/api")

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app
