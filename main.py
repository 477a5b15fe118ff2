import logging
from datetime import date
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import get_settings
from database import SessionLocal, create_schema
from models import BudgetPeriod, TransactionType, User
from periods import parse_date_param
from schemas import (
    BudgetIn,
    BudgetUpdate,
    CategoryIn,
    CategoryUpdate,
    LoginIn,
    RegisterIn,
    TransactionIn,
    TransactionUpdate,
)
from serializers import (
    budget_to_dict,
    category_to_dict,
    transaction_to_dict,
    user_to_dict,
)
from services import (
    AnalyticsService,
    BudgetService,
    CategoryService,
    FinanceError,
    TokenRejected,
    TransactionFilters,
    TransactionService,
    Unauthorized,
    UserService,
    ValidationError,
)
from tokens import extract_bearer_token, generate_token, verify_token

settings = get_settings()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Personal Finance Tracker")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@app.on_event("startup")
def startup_event():
    if settings.auto_create_schema:
        create_schema()
        logger.info("Database schema ensured")


def ok(message: str, data: Optional[dict] = None, status_code: int = 200) -> JSONResponse:
    body: dict[str, object] = {"success": True, "message": message}
    if data is not None:
        body["data"] = data
    return JSONResponse(body, status_code=status_code)


def error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(
        {"success": False, "message": message}, status_code=status_code
    )


def describe_validation_errors(errors: list[dict]) -> str:
    if not errors:
        return "Invalid request"
    first = errors[0]
    loc = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]
    field = loc[-1] if loc else "body"
    if first.get("type") == "missing":
        return f"{field} is required"
    return f"{field}: {first.get('msg', 'invalid value')}"


@app.exception_handler(FinanceError)
async def finance_error_handler(request: Request, exc: FinanceError):
    return error_response(str(exc), exc.status_code)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return error_response(describe_validation_errors(exc.errors()), 400)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return error_response(str(exc.detail), exc.status_code)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(
        f"unhandled_error: method={request.method} path={request.url.path}",
        exc_info=exc,
    )
    return error_response("Internal server error", 500)


def current_user(request: Request, db: Session = Depends(get_db)) -> User:
    token = extract_bearer_token(request.headers.get("Authorization"))
    if not token:
        raise Unauthorized("Access token required")
    payload = verify_token(token)
    if payload is None:
        logger.warning(f"token_rejected: path={request.url.path}")
        raise TokenRejected("Invalid or expired token")
    return UserService(db).get(payload.user_id)


def int_param(
    request: Request,
    name: str,
    default: int,
    *,
    minimum: int = 1,
    maximum: Optional[int] = None,
) -> int:
    raw = request.query_params.get(name)
    try:
        value = int(raw) if raw else default
    except ValueError:
        value = default
    value = max(value, minimum)
    if maximum is not None:
        value = min(value, maximum)
    return value


def date_param(request: Request, name: str) -> Optional[date]:
    try:
        return parse_date_param(request.query_params.get(name))
    except ValueError as exc:
        raise ValidationError(f"Invalid {name}") from exc


def type_param(request: Request) -> Optional[TransactionType]:
    raw = request.query_params.get("type")
    if not raw:
        return None
    try:
        return TransactionType(raw.upper())
    except ValueError:
        return None


def filters_from_request(request: Request) -> TransactionFilters:
    return TransactionFilters(
        type=type_param(request),
        category=request.query_params.get("category") or None,
        search=request.query_params.get("search") or None,
        start=date_param(request, "startDate"),
        end=date_param(request, "endDate"),
    )


@app.get("/health")
def health():
    return ok("OK")


# Auth


@app.post("/auth/register")
def register(payload: RegisterIn, db: Session = Depends(get_db)):
    user = UserService(db).register(payload)
    token = generate_token(user.id, user.email)
    return ok(
        "User registered successfully",
        {"user": user_to_dict(user), "token": token},
        status_code=201,
    )


@app.post("/auth/login")
def login(payload: LoginIn, db: Session = Depends(get_db)):
    user = UserService(db).authenticate(payload)
    token = generate_token(user.id, user.email)
    return ok("Login successful", {"user": user_to_dict(user), "token": token})


@app.get("/auth/profile")
def profile(user: User = Depends(current_user)):
    return ok("Profile retrieved successfully", {"user": user_to_dict(user)})


@app.get("/auth/validate")
def validate(user: User = Depends(current_user)):
    return ok("Token is valid", {"valid": True, "user": user_to_dict(user)})


# Categories


@app.get("/categories")
def list_categories(
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    categories = CategoryService(db, user.id).list_all(type_param(request))
    return ok(
        "Categories retrieved successfully",
        {"categories": [category_to_dict(c) for c in categories]},
    )


@app.post("/categories")
def create_category(
    payload: CategoryIn,
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    category = CategoryService(db, user.id).create(payload)
    return ok(
        "Category created successfully",
        {"category": category_to_dict(category)},
        status_code=201,
    )


@app.post("/categories/create-defaults")
def create_default_categories(
    db: Session = Depends(get_db), user: User = Depends(current_user)
):
    created = CategoryService(db, user.id).ensure_defaults()
    return ok("Default categories ensured", {"created": created})


@app.put("/categories/{category_id}")
def update_category(
    category_id: int,
    payload: CategoryUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    category = CategoryService(db, user.id).update(category_id, payload)
    return ok(
        "Category updated successfully", {"category": category_to_dict(category)}
    )


@app.delete("/categories/{category_id}")
def delete_category(
    category_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    CategoryService(db, user.id).delete(category_id)
    return ok("Category deleted successfully")


# Transactions


@app.get("/transactions")
def list_transactions(
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    page = int_param(request, "page", 1)
    limit = int_param(request, "limit", 10, maximum=100)
    result = TransactionService(db, user.id).list(
        filters_from_request(request), page=page, limit=limit
    )
    return ok(
        "Transactions retrieved successfully",
        {
            "transactions": [transaction_to_dict(t) for t in result.items],
            "pagination": {
                "page": result.page,
                "limit": result.limit,
                "total": result.total,
                "pages": result.pages,
            },
        },
    )


@app.post("/transactions")
def create_transaction(
    payload: TransactionIn,
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    txn = TransactionService(db, user.id).create(payload)
    return ok(
        "Transaction created successfully",
        {"transaction": transaction_to_dict(txn)},
        status_code=201,
    )


@app.get("/transactions/{transaction_id}")
def get_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    txn = TransactionService(db, user.id).get(transaction_id)
    return ok(
        "Transaction retrieved successfully", {"transaction": transaction_to_dict(txn)}
    )


@app.put("/transactions/{transaction_id}")
def update_transaction(
    transaction_id: int,
    payload: TransactionUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    txn = TransactionService(db, user.id).update(transaction_id, payload)
    return ok(
        "Transaction updated successfully", {"transaction": transaction_to_dict(txn)}
    )


@app.delete("/transactions/{transaction_id}")
def delete_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    TransactionService(db, user.id).delete(transaction_id)
    return ok("Transaction deleted successfully")


# Budgets


@app.get("/budgets")
def list_budgets(
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    period = None
    raw_period = request.query_params.get("period")
    if raw_period:
        try:
            period = BudgetPeriod(raw_period)
        except ValueError as exc:
            raise ValidationError("Period must be weekly, monthly, or yearly") from exc
    active = request.query_params.get("active") == "true"
    budgets = BudgetService(db, user.id).list(period=period, active=active)
    return ok(
        "Budgets retrieved successfully",
        {"budgets": [budget_to_dict(b) for b in budgets]},
    )


@app.post("/budgets")
def create_budget(
    payload: BudgetIn,
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    progress = BudgetService(db, user.id).create(payload)
    return ok(
        "Budget created successfully",
        {"budget": budget_to_dict(progress)},
        status_code=201,
    )


@app.get("/budgets/{budget_id}")
def get_budget(
    budget_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    progress = BudgetService(db, user.id).get_progress(budget_id)
    return ok("Budget retrieved successfully", {"budget": budget_to_dict(progress)})


@app.put("/budgets/{budget_id}")
def update_budget(
    budget_id: int,
    payload: BudgetUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    progress = BudgetService(db, user.id).update(budget_id, payload)
    return ok("Budget updated successfully", {"budget": budget_to_dict(progress)})


@app.delete("/budgets/{budget_id}")
def delete_budget(
    budget_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    BudgetService(db, user.id).delete(budget_id)
    return ok("Budget deleted successfully")


# Analytics


@app.get("/analytics/dashboard")
def analytics_dashboard(
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    data = AnalyticsService(db, user.id).dashboard_summary(
        request.query_params.get("period")
    )
    return ok("Dashboard summary retrieved successfully", data)


@app.get("/analytics/expenses-by-category")
def analytics_expenses_by_category(
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    data = AnalyticsService(db, user.id).expenses_by_category(
        request.query_params.get("period")
    )
    if data["isEmpty"]:
        return ok("No expenses found for this period", data)
    return ok("Expenses by category retrieved successfully", data)


@app.get("/analytics/monthly-trends")
def analytics_monthly_trends(
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    months = int_param(request, "months", 6, maximum=60)
    chart = AnalyticsService(db, user.id).monthly_trends(months)
    return ok("Monthly trends retrieved successfully", {"chartData": chart})


@app.get("/analytics/top-spending-categories")
def analytics_top_spending(
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    limit = int_param(request, "limit", 5, maximum=50)
    data = AnalyticsService(db, user.id).top_spending_categories(
        request.query_params.get("period"), limit
    )
    return ok("Top spending categories retrieved successfully", data)


@app.get("/analytics/cumulative-balance")
def analytics_cumulative_balance(
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    data = AnalyticsService(db, user.id).cumulative_balance(
        request.query_params.get("period")
    )
    return ok("Cumulative balance retrieved successfully", data)


@app.get("/analytics/export")
def analytics_export(
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    export_format = (request.query_params.get("format") or "json").lower()
    if export_format not in {"json", "csv"}:
        raise ValidationError("Format must be json or csv")
    start = date_param(request, "startDate")
    end = date_param(request, "endDate")
    service = AnalyticsService(db, user.id)

    if export_format == "csv":
        csv_text = service.export_csv(start, end)
        return StreamingResponse(
            iter([csv_text]),
            media_type="text/csv",
            headers={"Content-Disposition": "attachment; filename=transactions.csv"},
        )

    transactions = service.export_rows(start, end)
    return ok(
        "Data exported successfully",
        {"transactions": [transaction_to_dict(t) for t in transactions]},
    )


def main():
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()
