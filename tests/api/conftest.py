"""API test fixtures - app with real services over the in-memory database."""

from unittest.mock import Mock

import pytest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.testclient import TestClient

from api.app import create_app, register_audit_handlers
from core.audit import AuditLogger
from core.models import Actor, ExpenseCategory, ExpenseType, UserRole
from core.services.expense_service import ExpenseService
from core.services.invoice_service import InvoiceService


class FakeAuthMiddleware(BaseHTTPMiddleware):
    """
    Stands in for the host's authentication layer.

    Puts an Actor on request.state unless the request carries X-Anonymous.
    The role comes from X-Role (DIRECTOR by default).
    """

    def __init__(self, app, user_id, company_id):
        super().__init__(app)
        self.user_id = user_id
        self.company_id = company_id

    async def dispatch(self, request, call_next):
        if "x-anonymous" not in request.headers:
            request.state.actor = Actor(
                user_id=self.user_id,
                company_id=self.company_id,
                role=UserRole(request.headers.get("x-role", "DIRECTOR")),
                name="Mamadou Diallo",
            )
        return await call_next(request)


# =============================================================================
# SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def audit():
    return Mock(spec=AuditLogger)


@pytest.fixture
def invoice_service(memory_db, audit, event_bus, fixed_clock):
    return InvoiceService(memory_db, audit, event_bus, clock=fixed_clock)


@pytest.fixture
def expense_service(memory_db, event_bus):
    return ExpenseService(memory_db, event_bus)


@pytest.fixture
def services(invoice_service, expense_service, event_bus, audit):
    register_audit_handlers(event_bus, audit)
    return {
        "invoice": invoice_service,
        "expense": expense_service,
        "audit": audit,
    }


# =============================================================================
# APP & CLIENT FIXTURES
# =============================================================================


@pytest.fixture
def app(services, user_id, company_id):
    """Billing app behind the fake auth layer."""
    app = create_app(services=services)
    app.add_middleware(FakeAuthMiddleware, user_id=user_id, company_id=company_id)
    return app


@pytest.fixture
def client(app):
    """Client acting as the company's director."""
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def shipment(memory_db):
    """Delivered shipment with one customs duty disbursement of 15,000,000 GNF."""
    shipment = memory_db.add_shipment()
    memory_db.add_expense(shipment, ExpenseType.DISBURSEMENT, ExpenseCategory.DD, 15_000_000)
    return shipment
