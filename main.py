import logging
from typing import Optional

from fastapi import Depends, FastAPI, File, Query, Request, Response, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from auth import (
    RESET_REQUESTED_MESSAGE,
    SESSION_COOKIE,
    AuthService,
    PasswordResetService,
    admin_user_id,
    current_user_id,
    issue_session_token,
)
from config import get_settings
from database import get_db
from errors import (
    AuthenticationError,
    NotFoundError,
    PermissionDenied,
    RateLimitExceeded,
    ValidationError,
)
from mailer import Mailer
from models import FeedbackStatus, FeedbackType, TransactionType, User
from periods import Period, local_today, resolve_period
from quotes import QuoteService
from rate_limit import client_ip, limiter, rate_limit_headers
from scheduler import SchedulerManager
from schemas import (
    AdminFeedbackOut,
    BudgetIn,
    BudgetOut,
    BudgetUpdate,
    CardIn,
    CardOut,
    CardUpdate,
    CategoryIn,
    CategoryOut,
    CategoryUpdate,
    ContributionIn,
    ContributionOut,
    ContributionRemoveIn,
    FeedbackIn,
    FeedbackOut,
    FeedbackStatusIn,
    ForgotPasswordIn,
    GoalIn,
    GoalOut,
    GoalUpdate,
    InvestmentIn,
    InvestmentOut,
    InvestmentUpdate,
    InvoiceOut,
    InvoiceUpdate,
    LaunchIn,
    LoginIn,
    OperationIn,
    OperationOut,
    PurchaseIn,
    RecurringExpenseIn,
    RecurringExpenseOut,
    RecurringExpenseStatusOut,
    RecurringExpenseUpdate,
    RegisterIn,
    ResetPasswordIn,
    TemplateIn,
    TemplateOut,
    TemplateUpdate,
    TransactionIn,
    TransactionOut,
    TransactionUpdate,
    UserOut,
)
from services import (
    AdminFeedbackService,
    BillsCalendarService,
    BudgetService,
    CardService,
    CategoryService,
    DashboardService,
    FeedbackService,
    GoalService,
    InvestmentService,
    Page,
    QuoteRefreshService,
    RecurringExpenseService,
    TemplateService,
    TransactionFilters,
    TransactionService,
)
from storage import AttachmentStore

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title="Personal Finance API")

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
CARD_INVOICE_HISTORY = 12


def _error(status: int, message: str, code: str, details=None, headers=None):
    body = {"error": message, "code": code}
    if details:
        body["details"] = details
    return JSONResponse(status_code=status, content=body, headers=headers)


@app.exception_handler(ValidationError)
def handle_validation_error(request: Request, exc: ValidationError):
    return _error(400, str(exc), "VALIDATION_ERROR", exc.details)


@app.exception_handler(RequestValidationError)
def handle_request_validation(request: Request, exc: RequestValidationError):
    details = [
        {
            "field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"),
            "message": err.get("msg"),
            "type": err.get("type"),
        }
        for err in exc.errors()
    ]
    return _error(400, "Invalid request", "VALIDATION_ERROR", details)


@app.exception_handler(NotFoundError)
def handle_not_found(request: Request, exc: NotFoundError):
    return _error(404, str(exc), "NOT_FOUND")


@app.exception_handler(PermissionDenied)
def handle_forbidden(request: Request, exc: PermissionDenied):
    return _error(403, str(exc), "FORBIDDEN")


@app.exception_handler(AuthenticationError)
def handle_unauthenticated(request: Request, exc: AuthenticationError):
    return _error(401, str(exc), "UNAUTHORIZED")


@app.exception_handler(RateLimitExceeded)
def handle_rate_limited(request: Request, exc: RateLimitExceeded):
    headers = rate_limit_headers(exc.limit, exc.remaining, exc.reset_at)
    headers["Retry-After"] = str(exc.retry_after)
    return _error(429, str(exc), "RATE_LIMITED", headers=headers)


@app.exception_handler(StarletteHTTPException)
def handle_http_exception(request: Request, exc: StarletteHTTPException):
    code = "NOT_FOUND" if exc.status_code == 404 else "HTTP_ERROR"
    return _error(exc.status_code, str(exc.detail), code)


@app.exception_handler(Exception)
def handle_unexpected(request: Request, exc: Exception):
    logger.exception(f"unhandled_error: path={request.url.path}")
    return _error(500, "Internal server error", "INTERNAL_ERROR")


scheduler_manager = SchedulerManager()


@app.on_event("startup")
def startup_event():
    scheduler_manager.start()


@app.on_event("shutdown")
def shutdown_event():
    scheduler_manager.stop()


def get_mailer() -> Mailer:
    return Mailer()


def get_attachment_store() -> AttachmentStore:
    return AttachmentStore()


def get_quote_service() -> QuoteService:
    return QuoteService()


def rate_limited(limit: int, window_seconds: int, identifier: str):
    def dependency(request: Request, response: Response) -> None:
        result = limiter.enforce(
            client_ip(request),
            limit=limit,
            window_seconds=window_seconds,
            identifier=identifier,
        )
        response.headers.update(
            rate_limit_headers(result.limit, result.remaining, result.reset_at)
        )

    return dependency


def period_from_request(request: Request) -> Period:
    period_slug = request.query_params.get("period")
    start = request.query_params.get("start")
    end = request.query_params.get("end")
    try:
        return resolve_period(period_slug, start, end)
    except ValueError as exc:
        raise ValidationError(str(exc), details=[{"field": "period"}]) from exc


def _page_size(page_size: int) -> int:
    return min(max(page_size, 1), MAX_PAGE_SIZE)


def _envelope(result: Page, schema) -> dict:
    return {
        "items": [schema.model_validate(item) for item in result.items],
        "page": result.page,
        "page_size": result.page_size,
        "total": result.total,
    }


def _card_out(card, invoice_limit: Optional[int] = None) -> CardOut:
    out = CardOut.model_validate(card)
    if invoice_limit is not None:
        out.invoices = out.invoices[:invoice_limit]
    return out


def _login_response(user, response: Response) -> dict:
    token = issue_session_token(user.id)
    response.set_cookie(
        SESSION_COOKIE,
        token,
        max_age=get_settings().session_max_age_hours * 3600,
        httponly=True,
        samesite="lax",
    )
    return {"token": token, "user": UserOut.model_validate(user)}


# Auth


@app.post("/api/auth/register", status_code=201)
def register(data: RegisterIn, response: Response, db: Session = Depends(get_db)):
    user = AuthService(db).register(data)
    return _login_response(user, response)


@app.post("/api/auth/login")
def login(data: LoginIn, response: Response, db: Session = Depends(get_db)):
    user = AuthService(db).authenticate(data.email, data.password)
    logger.info(f"user_login: user_id={user.id}")
    return _login_response(user, response)


@app.post("/api/auth/logout")
def logout(response: Response):
    response.delete_cookie(SESSION_COOKIE)
    return {"success": True}


@app.get("/api/auth/me", response_model=UserOut)
def me(user_id: int = Depends(current_user_id), db: Session = Depends(get_db)):
    user = db.get(User, user_id)
    if user is None:
        raise AuthenticationError("Not authenticated")
    return user


@app.post("/api/auth/forgot-password")
def forgot_password(
    data: ForgotPasswordIn,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    PasswordResetService(db, mailer).request_reset(data.email)
    return {"message": RESET_REQUESTED_MESSAGE}


@app.get("/api/auth/reset-password")
def check_reset_token(token: str = Query(...), db: Session = Depends(get_db)):
    PasswordResetService(db).check_token(token)
    return {"valid": True}


@app.post("/api/auth/reset-password")
def reset_password(data: ResetPasswordIn, db: Session = Depends(get_db)):
    PasswordResetService(db).reset_password(data.token, data.password)
    return {"success": True, "message": "Password changed successfully"}


# Transactions


@app.get("/api/transactions")
def list_transactions(
    request: Request,
    type: Optional[TransactionType] = None,
    category: Optional[str] = None,
    page: Optional[int] = Query(None, ge=1),
    page_size: int = DEFAULT_PAGE_SIZE,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    period = period_from_request(request)
    filters = TransactionFilters(type=type, category=category)
    service = TransactionService(db, user_id)
    if page is None:
        return [TransactionOut.model_validate(t) for t in service.list(filters, period)]
    result = service.page(filters, period, page, _page_size(page_size))
    return _envelope(result, TransactionOut)


@app.post("/api/transactions", response_model=TransactionOut, status_code=201)
def create_transaction(
    data: TransactionIn,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return TransactionService(db, user_id).create(data)


@app.get("/api/transactions/{transaction_id}", response_model=TransactionOut)
def get_transaction(
    transaction_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return TransactionService(db, user_id).get(transaction_id)


@app.put("/api/transactions/{transaction_id}", response_model=TransactionOut)
def update_transaction(
    transaction_id: int,
    data: TransactionUpdate,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return TransactionService(db, user_id).update(transaction_id, data)


@app.delete("/api/transactions/{transaction_id}")
def delete_transaction(
    transaction_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    TransactionService(db, user_id).delete(transaction_id)
    return {"success": True}


# Categories


@app.get("/api/categories", response_model=list[CategoryOut])
def list_categories(
    type: Optional[TransactionType] = None,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return CategoryService(db, user_id).list_all(type)


@app.post("/api/categories", response_model=CategoryOut, status_code=201)
def create_category(
    data: CategoryIn,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return CategoryService(db, user_id).create(data)


@app.put("/api/categories/{category_id}", response_model=CategoryOut)
def update_category(
    category_id: int,
    data: CategoryUpdate,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return CategoryService(db, user_id).update(category_id, data)


@app.delete("/api/categories/{category_id}")
def delete_category(
    category_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    CategoryService(db, user_id).delete(category_id)
    return {"success": True}


# Budgets


@app.get("/api/budgets")
def list_budgets(
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=1970, le=3000),
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    today = local_today()
    return BudgetService(db, user_id).list_for_month(
        year or today.year, month or today.month
    )


@app.post("/api/budgets", response_model=BudgetOut, status_code=201)
def upsert_budget(
    data: BudgetIn,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return BudgetService(db, user_id).upsert(data)


@app.put("/api/budgets/{budget_id}", response_model=BudgetOut)
def update_budget(
    budget_id: int,
    data: BudgetUpdate,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return BudgetService(db, user_id).update(budget_id, data)


@app.delete("/api/budgets/{budget_id}")
def delete_budget(
    budget_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    BudgetService(db, user_id).delete(budget_id)
    return {"success": True}


# Credit cards


@app.get("/api/cards")
def list_cards(user_id: int = Depends(current_user_id), db: Session = Depends(get_db)):
    cards = CardService(db, user_id).list_active()
    return [_card_out(card, CARD_INVOICE_HISTORY) for card in cards]


@app.post("/api/cards", status_code=201)
def create_card(
    data: CardIn,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return _card_out(CardService(db, user_id).create(data))


@app.get("/api/cards/{card_id}")
def get_card(
    card_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return _card_out(CardService(db, user_id).get(card_id))


@app.put("/api/cards/{card_id}")
def update_card(
    card_id: int,
    data: CardUpdate,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    card = CardService(db, user_id).update(card_id, data)
    return _card_out(card, CARD_INVOICE_HISTORY)


@app.delete("/api/cards/{card_id}")
def delete_card(
    card_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    CardService(db, user_id).delete(card_id)
    return {"success": True}


@app.post("/api/cards/{card_id}/purchases", status_code=201)
def add_purchase(
    card_id: int,
    data: PurchaseIn,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    service = CardService(db, user_id)
    created = service.add_purchase(card_id, data)
    db.expire_all()
    if len(created) > 1:
        message = f"Purchase added in {len(created)} installments"
    else:
        message = "Purchase added"
    return {"card": _card_out(service.get(card_id)), "message": message}


@app.put("/api/cards/{card_id}/invoices/{invoice_id}")
def update_invoice(
    card_id: int,
    invoice_id: int,
    data: InvoiceUpdate,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    invoice, payment = CardService(db, user_id).update_invoice(card_id, invoice_id, data)
    return {
        "invoice": InvoiceOut.model_validate(invoice),
        "payment_transaction": (
            TransactionOut.model_validate(payment) if payment is not None else None
        ),
    }


@app.delete("/api/purchases/{purchase_id}")
def delete_purchase(
    purchase_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    removed = CardService(db, user_id).delete_purchase(purchase_id)
    return {"success": True, "removed": removed}


# Goals


@app.get("/api/goals", response_model=list[GoalOut])
def list_goals(user_id: int = Depends(current_user_id), db: Session = Depends(get_db)):
    return GoalService(db, user_id).list_all()


@app.get("/api/goals/emergency-suggestion")
def emergency_suggestion(
    user_id: int = Depends(current_user_id), db: Session = Depends(get_db)
):
    return GoalService(db, user_id).emergency_suggestion()


@app.post("/api/goals", response_model=GoalOut, status_code=201)
def create_goal(
    data: GoalIn,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return GoalService(db, user_id).create(data)


@app.get("/api/goals/{goal_id}", response_model=GoalOut)
def get_goal(
    goal_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return GoalService(db, user_id).get(goal_id)


@app.put("/api/goals/{goal_id}", response_model=GoalOut)
def update_goal(
    goal_id: int,
    data: GoalUpdate,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return GoalService(db, user_id).update(goal_id, data)


@app.delete("/api/goals/{goal_id}")
def delete_goal(
    goal_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    GoalService(db, user_id).delete(goal_id)
    return {"success": True}


@app.post("/api/goals/{goal_id}/contribute")
def add_contribution(
    goal_id: int,
    data: ContributionIn,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    contribution, goal = GoalService(db, user_id).add_contribution(goal_id, data)
    return {
        "contribution": ContributionOut.model_validate(contribution),
        "current_value_cents": goal.current_cents,
        "completed": goal.completed,
    }


@app.delete("/api/goals/{goal_id}/contribute")
def remove_contribution(
    goal_id: int,
    data: ContributionRemoveIn,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    goal = GoalService(db, user_id).remove_contribution(goal_id, data.contribution_id)
    return {
        "success": True,
        "current_value_cents": goal.current_cents,
        "completed": goal.completed,
    }


# Recurring expenses


@app.get("/api/recurring-expenses")
def list_recurring_expenses(
    user_id: int = Depends(current_user_id), db: Session = Depends(get_db)
):
    data = RecurringExpenseService(db, user_id).list_with_status()
    items = []
    for item in data["items"]:
        base = RecurringExpenseOut.model_validate(item["expense"]).model_dump()
        items.append(
            RecurringExpenseStatusOut(
                **base,
                launched_this_month=item["launched_this_month"],
                due_date=item["due_date"],
                past_due=item["past_due"],
            )
        )
    return {
        "expenses": items,
        "summary": data["summary"],
        "current_month": data["current_month"],
        "current_year": data["current_year"],
    }


@app.post("/api/recurring-expenses/launch")
def launch_recurring_expenses(
    data: Optional[LaunchIn] = None,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    expense_ids = data.expense_ids if data else None
    result = RecurringExpenseService(db, user_id).launch(expense_ids)
    return {
        "launched": result["launched"],
        "transactions": [TransactionOut.model_validate(t) for t in result["transactions"]],
        "message": result["message"],
    }


@app.post(
    "/api/recurring-expenses", response_model=RecurringExpenseOut, status_code=201
)
def create_recurring_expense(
    data: RecurringExpenseIn,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return RecurringExpenseService(db, user_id).create(data)


@app.get("/api/recurring-expenses/{expense_id}", response_model=RecurringExpenseOut)
def get_recurring_expense(
    expense_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return RecurringExpenseService(db, user_id).get(expense_id)


@app.put("/api/recurring-expenses/{expense_id}", response_model=RecurringExpenseOut)
def update_recurring_expense(
    expense_id: int,
    data: RecurringExpenseUpdate,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return RecurringExpenseService(db, user_id).update(expense_id, data)


@app.delete("/api/recurring-expenses/{expense_id}")
def delete_recurring_expense(
    expense_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    RecurringExpenseService(db, user_id).delete(expense_id)
    return {"success": True}


# Templates


@app.get("/api/templates", response_model=list[TemplateOut])
def list_templates(
    user_id: int = Depends(current_user_id), db: Session = Depends(get_db)
):
    return TemplateService(db, user_id).list_all()


@app.post("/api/templates", response_model=TemplateOut, status_code=201)
def create_template(
    data: TemplateIn,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return TemplateService(db, user_id).create(data)


@app.get("/api/templates/{template_id}", response_model=TemplateOut)
def get_template(
    template_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return TemplateService(db, user_id).get(template_id)


@app.put("/api/templates/{template_id}", response_model=TemplateOut)
def update_template(
    template_id: int,
    data: TemplateUpdate,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return TemplateService(db, user_id).update(template_id, data)


@app.delete("/api/templates/{template_id}")
def delete_template(
    template_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    TemplateService(db, user_id).delete(template_id)
    return {"success": True}


@app.post("/api/templates/{template_id}/use", response_model=TemplateOut)
def use_template(
    template_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return TemplateService(db, user_id).use(template_id)


# Feedback


@app.get("/api/feedback")
def list_feedback(
    all_items: bool = Query(False, alias="all"),
    page: int = Query(1, ge=1),
    page_size: int = DEFAULT_PAGE_SIZE,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    service = FeedbackService(db, user_id)
    if all_items:
        return [FeedbackOut.model_validate(f) for f in service.list_all()]
    return _envelope(service.page(page, _page_size(page_size)), FeedbackOut)


@app.post(
    "/api/feedback",
    response_model=FeedbackOut,
    status_code=201,
    dependencies=[Depends(rate_limited(5, 3600, "feedback-create"))],
)
def create_feedback(
    data: FeedbackIn,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return FeedbackService(db, user_id).create(data)


@app.post(
    "/api/feedback/upload",
    status_code=201,
    dependencies=[Depends(rate_limited(10, 60, "feedback-upload"))],
)
async def upload_feedback_attachment(
    file: Optional[UploadFile] = File(None),
    user_id: int = Depends(current_user_id),
    store: AttachmentStore = Depends(get_attachment_store),
):
    if file is None:
        raise ValidationError("No file sent", details=[{"field": "file"}])
    data = await file.read()
    url = store.save_image(user_id, file.filename, file.content_type, data)
    return {"url": url}


@app.get("/api/feedback/admin")
def admin_list_feedback(
    status: Optional[FeedbackStatus] = None,
    type: Optional[FeedbackType] = None,
    page: int = Query(1, ge=1),
    page_size: int = DEFAULT_PAGE_SIZE,
    _admin: int = Depends(admin_user_id),
    db: Session = Depends(get_db),
):
    result = AdminFeedbackService(db).page(page, _page_size(page_size), status, type)
    return _envelope(result, AdminFeedbackOut)


@app.get("/api/feedback/{feedback_id}", response_model=AdminFeedbackOut)
def admin_get_feedback(
    feedback_id: int,
    _admin: int = Depends(admin_user_id),
    db: Session = Depends(get_db),
):
    return AdminFeedbackService(db).get(feedback_id)


@app.patch("/api/feedback/{feedback_id}", response_model=AdminFeedbackOut)
def admin_update_feedback(
    feedback_id: int,
    data: FeedbackStatusIn,
    _admin: int = Depends(admin_user_id),
    db: Session = Depends(get_db),
):
    return AdminFeedbackService(db).update_status(feedback_id, data.status)


@app.delete("/api/feedback/{feedback_id}", status_code=204)
def admin_delete_feedback(
    feedback_id: int,
    _admin: int = Depends(admin_user_id),
    db: Session = Depends(get_db),
):
    AdminFeedbackService(db).delete(feedback_id)
    return Response(status_code=204)


# Investments


@app.get("/api/investments/quotes")
def preview_quotes(
    db: Session = Depends(get_db),
    quotes: QuoteService = Depends(get_quote_service),
):
    return {"success": True, "quotes": QuoteRefreshService(db, quotes).preview()}


@app.post("/api/investments/quotes")
def refresh_quotes(
    db: Session = Depends(get_db),
    quotes: QuoteService = Depends(get_quote_service),
):
    result = QuoteRefreshService(db, quotes).refresh()
    return {"success": True, **result}


@app.get("/api/investments", response_model=list[InvestmentOut])
def list_investments(
    user_id: int = Depends(current_user_id), db: Session = Depends(get_db)
):
    return InvestmentService(db, user_id).list_all()


@app.post("/api/investments", response_model=InvestmentOut, status_code=201)
def create_investment(
    data: InvestmentIn,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return InvestmentService(db, user_id).create(data)


@app.get("/api/investments/{investment_id}", response_model=InvestmentOut)
def get_investment(
    investment_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return InvestmentService(db, user_id).get(investment_id)


@app.put("/api/investments/{investment_id}", response_model=InvestmentOut)
def update_investment(
    investment_id: int,
    data: InvestmentUpdate,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return InvestmentService(db, user_id).update(investment_id, data)


@app.delete("/api/investments/{investment_id}")
def delete_investment(
    investment_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    InvestmentService(db, user_id).delete(investment_id)
    return {"success": True}


@app.get("/api/investments/{investment_id}/operations", response_model=list[OperationOut])
def list_investment_operations(
    investment_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return InvestmentService(db, user_id).list_operations(investment_id)


@app.post("/api/investments/{investment_id}/operations", status_code=201)
def add_investment_operation(
    investment_id: int,
    data: OperationIn,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    operation, investment = InvestmentService(db, user_id).add_operation(
        investment_id, data
    )
    return {
        "operation": OperationOut.model_validate(operation),
        "investment": InvestmentOut.model_validate(investment),
    }


# Bills calendar


@app.get("/api/bills-calendar")
def bills_calendar(
    user_id: int = Depends(current_user_id), db: Session = Depends(get_db)
):
    return BillsCalendarService(db, user_id).calendar()


# Dashboard


@app.get("/api/dashboard/summary")
def dashboard_summary(
    user_id: int = Depends(current_user_id), db: Session = Depends(get_db)
):
    return DashboardService(db, user_id).summary()


def main():
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()
