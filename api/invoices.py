"""/api/invoices: invoice generation, lifecycle and queries."""

from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request

from api.base import respond
from api.deps import require_role
from core.exceptions import NotFoundError
from core.models import Invoice, InvoiceGenerate, InvoiceStatus, UserRole

_BILLING_ROLES = (UserRole.DIRECTOR, UserRole.ACCOUNTANT)


def invoice_json(invoice: Invoice) -> dict:
    """Invoice payload, with the balance wording the client prints."""
    data = invoice.model_dump(mode="json")
    data["balance_label"] = invoice.balance_label
    return data


def create_invoices_router(services: dict) -> APIRouter:
    router = APIRouter(prefix="/invoices")

    invoice_svc = services["invoice"]

    # -------------------------------------------------------------------------
    # Queries (static paths registered before /{invoice_id})
    # -------------------------------------------------------------------------

    @router.get("")
    async def list_invoices(
        request: Request,
        status: InvoiceStatus | Literal["ALL"] | None = Query(None),
        search: str | None = Query(None, max_length=100),
        page: int = Query(1, ge=1),
        limit: int = Query(20, ge=1, le=100),
    ):
        if status == "ALL":
            status = None
        result = invoice_svc.list_invoices(status=status, search=search, page=page, limit=limit)
        payload = result.to_json("invoices")
        payload["invoices"] = [invoice_json(invoice) for invoice in result.items]
        return respond(request, payload)

    @router.get("/summary")
    async def invoice_summary(request: Request):
        return respond(request, invoice_svc.summary().model_dump(mode="json"))

    @router.get("/{invoice_id}")
    async def get_invoice(request: Request, invoice_id: UUID):
        invoice = invoice_svc.get_by_id(invoice_id)
        if invoice is None:
            raise NotFoundError(f"Invoice {invoice_id} not found")
        return respond(request, {"invoice": invoice_json(invoice)})

    @router.get("/{invoice_id}/history")
    async def invoice_history(request: Request, invoice_id: UUID):
        entries = invoice_svc.history(invoice_id)
        return respond(request, {"history": entries})

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    @router.post("/generate", status_code=201, dependencies=[Depends(require_role(*_BILLING_ROLES))])
    async def generate_invoice(request: Request, body: InvoiceGenerate):
        invoice = invoice_svc.generate(body)
        return respond(request, {"invoice": invoice_json(invoice)})

    @router.patch("/{invoice_id}/issue", dependencies=[Depends(require_role(*_BILLING_ROLES))])
    async def issue_invoice(request: Request, invoice_id: UUID):
        return respond(request, {"invoice": invoice_json(invoice_svc.issue(invoice_id))})

    @router.patch("/{invoice_id}/pay", dependencies=[Depends(require_role(*_BILLING_ROLES))])
    async def pay_invoice(request: Request, invoice_id: UUID):
        return respond(request, {"invoice": invoice_json(invoice_svc.pay(invoice_id))})

    @router.patch("/{invoice_id}/cancel", dependencies=[Depends(require_role(UserRole.DIRECTOR))])
    async def cancel_invoice(request: Request, invoice_id: UUID):
        return respond(request, {"invoice": invoice_json(invoice_svc.cancel(invoice_id))})

    return router
