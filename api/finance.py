"""/api/finance: expense ledger and company financial position."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request

from api.base import respond
from api.deps import require_role
from core.models import ExpenseCreate, ExpenseType, ExpenseUpdate, UserRole


def create_finance_router(services: dict) -> APIRouter:
    router = APIRouter(prefix="/finance")

    expense_svc = services["expense"]

    @router.get("/summary")
    async def finance_summary(request: Request):
        summary = expense_svc.summary()
        data = summary.model_dump(mode="json")
        data["balance"] = summary.balance
        data["total_balance"] = summary.total_balance
        return respond(request, {"summary": data})

    @router.get("/expenses")
    async def list_expenses(
        request: Request,
        shipment_id: UUID | None = Query(None),
        type: ExpenseType | None = Query(None),
        paid: bool | None = Query(None),
        page: int = Query(1, ge=1),
        limit: int = Query(50, ge=1, le=100),
    ):
        result = expense_svc.list_expenses(
            shipment_id=shipment_id,
            expense_type=type,
            paid=paid,
            page=page,
            limit=limit,
        )
        return respond(request, result.to_json("expenses"))

    @router.post("/expenses", status_code=201)
    async def create_expense(request: Request, body: ExpenseCreate):
        expense = expense_svc.create(body)
        return respond(request, {"expense": expense.model_dump(mode="json")})

    @router.post("/expenses/{expense_id}/pay")
    async def pay_expense(request: Request, expense_id: UUID):
        expense = expense_svc.mark_paid(expense_id)
        return respond(request, {"expense": expense.model_dump(mode="json")})

    @router.patch("/expenses/{expense_id}")
    async def update_expense(request: Request, expense_id: UUID, body: ExpenseUpdate):
        expense = expense_svc.update(expense_id, body)
        return respond(request, {"expense": expense.model_dump(mode="json")})

    @router.delete(
        "/expenses/{expense_id}",
        dependencies=[Depends(require_role(UserRole.DIRECTOR, UserRole.ACCOUNTANT))],
    )
    async def delete_expense(request: Request, expense_id: UUID):
        expense_svc.delete(expense_id)
        return respond(request, None)

    return router
