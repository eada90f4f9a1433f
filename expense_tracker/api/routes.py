"""
Expense routes.

Thin adapters: read the owner and raw parameters, call a flow, wrap the
result in the envelope. All decisions live in the flows.
"""

from fastapi import APIRouter, Depends, Request

from expense_tracker.api.auth import get_current_owner
from expense_tracker.api.errors import envelope, storage_failure
from expense_tracker.models.expense import ExpenseCreate, ExpenseUpdate
from expense_tracker.orchestrator import ExpenseFlow, ReportFlow


router = APIRouter(prefix="/expenses", tags=["expenses"])


def get_expense_flow(request: Request) -> ExpenseFlow:
    return request.app.state.expense_flow


def get_report_flow(request: Request) -> ReportFlow:
    return request.app.state.report_flow


def _dump(model) -> dict:
    return model.model_dump(mode="json", by_alias=True)


@router.get("")
async def list_expenses(
    request: Request,
    owner: str = Depends(get_current_owner),
    flow: ReportFlow = Depends(get_report_flow),
):
    async with storage_failure("Server error fetching expenses"):
        page = await flow.list_expenses(owner, request.query_params)
    return envelope(data=_dump(page))


@router.get("/analytics/summary")
async def analytics_summary(
    request: Request,
    owner: str = Depends(get_current_owner),
    flow: ReportFlow = Depends(get_report_flow),
):
    async with storage_failure("Server error fetching analytics"):
        summary = await flow.summarize(owner, request.query_params)
    return envelope(data=_dump(summary))


@router.get("/ledger")
async def get_ledger(
    owner: str = Depends(get_current_owner),
    flow: ExpenseFlow = Depends(get_expense_flow),
):
    async with storage_failure("Server error fetching ledger"):
        ledger = await flow.get_ledger(owner)
    return envelope(data=_dump(ledger))


@router.post("/ledger/reconcile")
async def reconcile_ledger(
    owner: str = Depends(get_current_owner),
    flow: ExpenseFlow = Depends(get_expense_flow),
):
    async with storage_failure("Server error reconciling ledger"):
        report = await flow.reconcile_ledger(owner)
    message = "Ledger corrected" if report.corrected else "Ledger is consistent"
    return envelope(message=message, data=_dump(report))


@router.get("/{expense_id}")
async def get_expense(
    expense_id: str,
    owner: str = Depends(get_current_owner),
    flow: ExpenseFlow = Depends(get_expense_flow),
):
    async with storage_failure("Server error fetching expense"):
        expense = await flow.get_expense(owner, expense_id)
    return envelope(data={"expense": _dump(expense)})


@router.post("", status_code=201)
async def add_expense(
    payload: ExpenseCreate,
    owner: str = Depends(get_current_owner),
    flow: ExpenseFlow = Depends(get_expense_flow),
):
    async with storage_failure("Server error adding expense"):
        expense = await flow.create_expense(owner, payload)
    return envelope(message="Expense added successfully", data={"expense": _dump(expense)})


@router.put("/{expense_id}")
async def update_expense(
    expense_id: str,
    changes: ExpenseUpdate,
    owner: str = Depends(get_current_owner),
    flow: ExpenseFlow = Depends(get_expense_flow),
):
    async with storage_failure("Server error updating expense"):
        expense = await flow.update_expense(owner, expense_id, changes)
    return envelope(message="Expense updated successfully", data={"expense": _dump(expense)})


@router.delete("/{expense_id}")
async def delete_expense(
    expense_id: str,
    owner: str = Depends(get_current_owner),
    flow: ExpenseFlow = Depends(get_expense_flow),
):
    async with storage_failure("Server error deleting expense"):
        await flow.delete_expense(owner, expense_id)
    return envelope(message="Expense deleted successfully")
