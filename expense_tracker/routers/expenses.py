from typing import List, Optional

from fastapi import APIRouter, Depends, Form, HTTPException, Query, status
from fastapi.responses import RedirectResponse, Response
from sqlmodel import Session

from ..config import settings
from ..core.context import RequestContext, get_request_context
from ..core.errors import AuthError, ExpenseTrackerError
from ..database import get_session
from ..schemas.expense import (
    AddExpense,
    CategoryTotal,
    DeleteExpense,
    EditExpense,
    TotalRead,
    parse_command,
    parse_export_filter,
    parse_month_filter,
)
from ..services.expenses import ExpenseService

router = APIRouter(
    tags=["expenses"],
)

LOGIN_REQUIRED = "You must be logged in."


def get_expense_service(session: Session = Depends(get_session)) -> ExpenseService:
    return ExpenseService(session)


def _redirect(url: str) -> RedirectResponse:
    # 303 so the browser follows a POST with a GET
    return RedirectResponse(url, status_code=status.HTTP_303_SEE_OTHER)


def _http_error(error: ExpenseTrackerError) -> HTTPException:
    return HTTPException(status_code=error.status_code, detail=error.message)


# ─────────────────────────────
#   FORM ENDPOINTS (redirect + status message)
# ─────────────────────────────

@router.post("/add")
def add_expense(
    amount: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    date: Optional[str] = Form(None),
    ctx: RequestContext = Depends(get_request_context),
    service: ExpenseService = Depends(get_expense_service),
):
    """
    Record a new expense for the logged-in user.

    - user_id always comes from the session, never from the form.
    - Always redirects back to the add form with a status message.
    """
    try:
        user_id = ctx.require_user()
    except AuthError:
        ctx.flash(LOGIN_REQUIRED)
        return _redirect(settings.login_url)

    try:
        command = parse_command(
            AddExpense,
            {"amount": amount, "category": category, "description": description, "date": date},
            required=("amount", "category", "date"),
            missing_message="All fields except description are required.",
        )
        service.add(user_id, command)
    except ExpenseTrackerError as e:
        ctx.flash(e.message)
    else:
        ctx.flash("Expense added successfully!")
    return _redirect(settings.add_form_url)


@router.post("/edit")
def edit_expense(
    expense_id: Optional[str] = Form(None, alias="id"),
    date: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    amount: Optional[str] = Form(None),
    ctx: RequestContext = Depends(get_request_context),
    service: ExpenseService = Depends(get_expense_service),
):
    """Update date, category and amount of one of the caller's expenses."""
    try:
        user_id = ctx.require_user()
    except AuthError:
        ctx.flash(LOGIN_REQUIRED)
        return _redirect(settings.login_url)

    try:
        command = parse_command(
            EditExpense,
            {"id": expense_id, "date": date, "category": category, "amount": amount},
            required=("id", "date", "category", "amount"),
            missing_message="Missing required fields for editing.",
        )
        # An id the caller does not own updates nothing and still reports success
        service.edit(user_id, command)
    except ExpenseTrackerError as e:
        ctx.flash(e.message)
    else:
        ctx.flash("Expense updated successfully!")
    return _redirect(settings.summary_url)


@router.post("/delete/{expense_id}")
def delete_expense(
    expense_id: str,
    ctx: RequestContext = Depends(get_request_context),
    service: ExpenseService = Depends(get_expense_service),
):
    try:
        user_id = ctx.require_user()
    except AuthError:
        ctx.flash(LOGIN_REQUIRED)
        return _redirect(settings.login_url)

    try:
        command = parse_command(
            DeleteExpense,
            {"id": expense_id},
            required=("id",),
            invalid_message="Invalid expense id.",
        )
        service.delete(user_id, command)
    except ExpenseTrackerError as e:
        ctx.flash(e.message)
    else:
        ctx.flash("Expense deleted successfully!")
    return _redirect(settings.summary_url)


# ─────────────────────────────
#   DATA ENDPOINTS (JSON / CSV)
# ─────────────────────────────

@router.get(
    "/summary",
    response_model=List[CategoryTotal],
)
def summary(
    ctx: RequestContext = Depends(get_request_context),
    service: ExpenseService = Depends(get_expense_service),
):
    """Totals per category across all of the caller's expenses."""
    try:
        return service.summary(ctx.require_user())
    except ExpenseTrackerError as e:
        raise _http_error(e)


@router.get(
    "/filtered-summary",
    response_model=TotalRead,
)
def filtered_summary(
    month: Optional[str] = None,
    category: Optional[str] = None,
    ctx: RequestContext = Depends(get_request_context),
    service: ExpenseService = Depends(get_expense_service),
):
    """Total for one month (YYYY-MM), optionally restricted to a category. 0 when nothing matches."""
    try:
        user_id = ctx.require_user()
        month_filter = parse_month_filter(month, category)
        return TotalRead(total=service.month_total(user_id, month_filter))
    except ExpenseTrackerError as e:
        raise _http_error(e)


@router.get("/export")
def export_csv(
    date_from: Optional[str] = Query(None, alias="from"),
    date_to: Optional[str] = Query(None, alias="to"),
    category: Optional[str] = None,
    ctx: RequestContext = Depends(get_request_context),
    service: ExpenseService = Depends(get_expense_service),
):
    """
    Download the caller's expenses as CSV.

    - from/to restrict to an inclusive date range only when both are given.
    - Anonymous callers are sent to the login page.
    """
    if ctx.user_id is None:
        return _redirect(settings.login_url)

    try:
        export_filter = parse_export_filter(date_from, date_to, category)
        content = service.export_csv(ctx.user_id, export_filter)
    except ExpenseTrackerError as e:
        raise _http_error(e)

    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="expenses.csv"'},
    )
