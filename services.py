from __future__ import annotations

import calendar
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHash, VerificationError
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from csv_utils import export_transactions
from models import Budget, BudgetPeriod, Category, Transaction, TransactionType, User
from periods import Period, add_months, month_start, now_local, resolve_period, today_local
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
from serializers import cents_to_amount, transaction_to_dict

logger = logging.getLogger(__name__)

_hasher = PasswordHasher()

DEFAULT_CATEGORIES: list[tuple[str, TransactionType, str, str]] = [
    ("Food & Dining", TransactionType.expense, "#FF6B6B", "🍽️"),
    ("Transportation", TransactionType.expense, "#4ECDC4", "🚗"),
    ("Shopping", TransactionType.expense, "#45B7D1", "🛍️"),
    ("Entertainment", TransactionType.expense, "#96CEB4", "🎬"),
    ("Bills & Utilities", TransactionType.expense, "#FFEAA7", "💡"),
    ("Healthcare", TransactionType.expense, "#DDA0DD", "🏥"),
    ("Education", TransactionType.expense, "#98D8C8", "📚"),
    ("Travel", TransactionType.expense, "#F7DC6F", "✈️"),
    ("Other", TransactionType.expense, "#BDC3C7", "📦"),
    ("Salary", TransactionType.income, "#2ECC71", "💰"),
    ("Freelance", TransactionType.income, "#3498DB", "💻"),
    ("Investment", TransactionType.income, "#9B59B6", "📈"),
    ("Gift", TransactionType.income, "#E74C3C", "🎁"),
    ("Other Income", TransactionType.income, "#1ABC9C", "💵"),
]

DEFAULT_CATEGORY_COLOR = "#BDC3C7"
DEFAULT_CATEGORY_ICON = "📦"

CHART_COLORS = [
    "#FF6384",
    "#36A2EB",
    "#FFCE56",
    "#4BC0C0",
    "#9966FF",
    "#FF9F40",
    "#FF6B6B",
    "#4ECDC4",
    "#45B7D1",
    "#96CEB4",
    "#FFEAA7",
    "#DDA0DD",
    "#98D8C8",
    "#F7DC6F",
    "#BB8FCE",
]

BUDGET_WARNING_PERCENT = Decimal(80)
BUDGET_EXCEEDED_PERCENT = Decimal(100)


class FinanceError(ValueError):
    status_code = 400


class ValidationError(FinanceError):
    status_code = 400


class Unauthorized(FinanceError):
    status_code = 401


class TokenRejected(FinanceError):
    status_code = 403


class NotFound(FinanceError):
    status_code = 404


class Conflict(FinanceError):
    status_code = 400

    def __init__(self, message: str, *, count: Optional[int] = None) -> None:
        super().__init__(message)
        self.count = count


class InvalidOperation(FinanceError):
    status_code = 400


def to_cents(amount: Decimal) -> int:
    cents = int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    if cents <= 0:
        raise ValidationError("Amount must be a positive number")
    return cents


def _clean_text(value: Optional[str], field: str) -> str:
    clean = (value or "").strip()
    if not clean:
        raise ValidationError(f"{field} is required")
    return clean


class UserService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def _email_taken(self, email: str) -> bool:
        return self.session.scalar(select(User.id).where(User.email == email)) is not None

    def register(self, data: RegisterIn, *, commit: bool = True) -> User:
        """Create the user with the default category catalog.

        With ``commit=False`` the rows are only flushed and the caller owns the
        transaction.
        """
        if self._email_taken(data.email):
            raise Conflict("User already exists with this email")

        user = User(
            email=data.email,
            name=data.name,
            password_hash=_hasher.hash(data.password),
        )
        try:
            self.session.add(user)
            self.session.flush()
            CategoryService(self.session, user.id).ensure_defaults(commit=False)
            if commit:
                self.session.commit()
        except IntegrityError as exc:
            # a concurrent registration claimed the email first
            self.session.rollback()
            raise Conflict("User already exists with this email") from exc
        if commit:
            self.session.refresh(user)
        logger.info(f"user_registered: user_id={user.id}")
        return user

    def authenticate(self, data: LoginIn) -> User:
        user = self.session.scalar(select(User).where(User.email == data.email))
        if not user:
            logger.warning(f"login_failed: email={data.email} reason=unknown_email")
            raise Unauthorized("Invalid email or password")
        try:
            _hasher.verify(user.password_hash, data.password)
        except (VerificationError, InvalidHash):
            logger.warning(f"login_failed: email={data.email} reason=bad_password")
            raise Unauthorized("Invalid email or password")

        if _hasher.check_needs_rehash(user.password_hash):
            user.password_hash = _hasher.hash(data.password)
            self.session.commit()
        logger.info(f"login_succeeded: user_id={user.id}")
        return user

    def get(self, user_id: int) -> User:
        user = self.session.get(User, user_id)
        if not user:
            raise Unauthorized("User not found")
        return user


class CategoryService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def _count(self) -> int:
        stmt = select(func.count(Category.id)).where(Category.user_id == self.user_id)
        return int(self.session.execute(stmt).scalar_one() or 0)

    def _existing_keys(self) -> set[tuple[str, TransactionType]]:
        stmt = select(Category.name, Category.type).where(Category.user_id == self.user_id)
        return {(row.name, row.type) for row in self.session.execute(stmt)}

    def ensure_defaults(self, *, commit: bool = True) -> int:
        """Insert any missing default categories; returns how many were added."""
        existing = self._existing_keys()
        created = 0
        for name, txn_type, color, icon in DEFAULT_CATEGORIES:
            if (name, txn_type) in existing:
                continue
            self.session.add(
                Category(
                    user_id=self.user_id,
                    name=name,
                    type=txn_type,
                    color=color,
                    icon=icon,
                    is_default=True,
                )
            )
            created += 1
        if created:
            self.session.flush()
            logger.info(
                f"default_categories_seeded: user_id={self.user_id} created={created}"
            )
        if commit:
            self.session.commit()
        return created

    def list_all(self, type_filter: Optional[TransactionType] = None) -> list[Category]:
        if self._count() == 0:
            try:
                self.ensure_defaults()
            except IntegrityError:
                # another request seeded this user in the meantime
                self.session.rollback()

        stmt = (
            select(Category)
            .where(Category.user_id == self.user_id)
            .order_by(Category.is_default.desc(), Category.name.asc())
        )
        if type_filter:
            stmt = stmt.where(Category.type == type_filter)
        return self.session.scalars(stmt).all()

    def get(self, category_id: int) -> Category:
        category = self.session.get(Category, category_id)
        if not category or category.user_id != self.user_id:
            raise NotFound("Category not found")
        return category

    def _name_taken(
        self, name: str, txn_type: TransactionType, exclude_id: Optional[int] = None
    ) -> bool:
        stmt = select(Category.id).where(
            Category.user_id == self.user_id,
            Category.type == txn_type,
            Category.name == name,
        )
        if exclude_id is not None:
            stmt = stmt.where(Category.id != exclude_id)
        return self.session.scalar(stmt) is not None

    def create(self, data: CategoryIn) -> Category:
        name = _clean_text(data.name, "Name")
        if self._name_taken(name, data.type):
            raise Conflict("Category already exists")
        category = Category(
            user_id=self.user_id,
            name=name,
            type=data.type,
            color=data.color or DEFAULT_CATEGORY_COLOR,
            icon=data.icon or DEFAULT_CATEGORY_ICON,
            is_default=False,
        )
        self.session.add(category)
        self.session.commit()
        self.session.refresh(category)
        return category

    def update(self, category_id: int, data: CategoryUpdate) -> Category:
        category = self.get(category_id)
        fields = data.model_fields_set

        if "name" in fields and data.name is not None:
            name = _clean_text(data.name, "Name")
            if name != category.name:
                if category.is_default:
                    raise InvalidOperation("Cannot change name of default categories")
                if self._name_taken(name, category.type, exclude_id=category.id):
                    raise Conflict("Category with this name already exists")
                category.name = name
        if "color" in fields:
            category.color = data.color
        if "icon" in fields:
            category.icon = data.icon

        self.session.commit()
        self.session.refresh(category)
        return category

    def delete(self, category_id: int) -> None:
        category = self.get(category_id)
        if category.is_default:
            raise InvalidOperation("Cannot delete default categories")

        in_use = int(
            self.session.execute(
                select(func.count(Transaction.id)).where(
                    Transaction.user_id == self.user_id,
                    Transaction.category == category.name,
                )
            ).scalar_one()
            or 0
        )
        if in_use > 0:
            raise Conflict(
                f"Cannot delete category. It is used in {in_use} transaction(s)",
                count=in_use,
            )

        self.session.delete(category)
        self.session.commit()
        logger.info(f"category_deleted: user_id={self.user_id} id={category_id}")


@dataclass
class TransactionFilters:
    type: Optional[TransactionType] = None
    category: Optional[str] = None
    search: Optional[str] = None
    start: Optional[date] = None
    end: Optional[date] = None


@dataclass(frozen=True)
class Page:
    items: list[Transaction]
    page: int
    limit: int
    total: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


class TransactionService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def _conditions(self, filters: TransactionFilters) -> list:
        conditions = [Transaction.user_id == self.user_id]
        if filters.type:
            conditions.append(Transaction.type == filters.type)
        if filters.category:
            conditions.append(Transaction.category == filters.category)
        if filters.search:
            needle = filters.search.lower()
            conditions.append(
                or_(
                    func.lower(Transaction.name).contains(needle, autoescape=True),
                    func.lower(func.coalesce(Transaction.description, "")).contains(
                        needle, autoescape=True
                    ),
                )
            )
        if filters.start:
            conditions.append(Transaction.date >= filters.start)
        if filters.end:
            conditions.append(Transaction.date <= filters.end)
        return conditions

    @staticmethod
    def _newest_first() -> tuple:
        return (
            Transaction.date.desc(),
            Transaction.occurred_at.desc(),
            Transaction.id.desc(),
        )

    def create(self, data: TransactionIn, *, now: Optional[datetime] = None) -> Transaction:
        occurred_at = data.date or now or now_local()
        txn = Transaction(
            user_id=self.user_id,
            name=_clean_text(data.name, "Name"),
            description=(data.description or "").strip() or None,
            category=_clean_text(data.category, "Category"),
            type=data.type,
            amount_cents=to_cents(data.amount),
            date=occurred_at.date(),
            occurred_at=occurred_at,
        )
        self.session.add(txn)
        self.session.commit()
        self.session.refresh(txn)
        return txn

    def get(self, transaction_id: int) -> Transaction:
        txn = self.session.scalar(
            select(Transaction).where(
                Transaction.user_id == self.user_id, Transaction.id == transaction_id
            )
        )
        if not txn:
            raise NotFound("Transaction not found")
        return txn

    def update(self, transaction_id: int, data: TransactionUpdate) -> Transaction:
        txn = self.get(transaction_id)
        fields = data.model_fields_set

        for required in ("name", "amount", "category", "type", "date"):
            if required in fields and getattr(data, required) is None:
                raise ValidationError(f"{required.capitalize()} cannot be empty")

        if "name" in fields:
            txn.name = _clean_text(data.name, "Name")
        if "category" in fields:
            txn.category = _clean_text(data.category, "Category")
        if "amount" in fields:
            txn.amount_cents = to_cents(data.amount)
        if "type" in fields:
            txn.type = data.type
        if "description" in fields:
            txn.description = (data.description or "").strip() or None
        if "date" in fields:
            txn.date = data.date.date()
            txn.occurred_at = data.date

        self.session.commit()
        self.session.refresh(txn)
        return txn

    def delete(self, transaction_id: int) -> None:
        txn = self.get(transaction_id)
        self.session.delete(txn)
        self.session.commit()

    def list(self, filters: TransactionFilters, page: int = 1, limit: int = 10) -> Page:
        conditions = self._conditions(filters)
        total = int(
            self.session.execute(
                select(func.count(Transaction.id)).where(*conditions)
            ).scalar_one()
            or 0
        )
        stmt = (
            select(Transaction)
            .where(*conditions)
            .order_by(*self._newest_first())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        items = self.session.scalars(stmt).all()
        return Page(items=list(items), page=page, limit=limit, total=total)

    def all_matching(self, filters: TransactionFilters) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .where(*self._conditions(filters))
            .order_by(*self._newest_first())
        )
        return list(self.session.scalars(stmt).all())

    def recent(self, limit: int = 5) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .where(Transaction.user_id == self.user_id)
            .order_by(*self._newest_first())
            .limit(limit)
        )
        return list(self.session.scalars(stmt).all())


def budget_status(amount_cents: int, spent_cents: int) -> tuple[float, str]:
    """Percentage of the limit used (rounded to cents) and the traffic-light status.

    Thresholds are checked against the unrounded ratio.
    """
    if amount_cents <= 0:
        return 0.0, "good"
    ratio = Decimal(spent_cents) * 100 / Decimal(amount_cents)
    percentage = float(ratio.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))
    if ratio >= BUDGET_EXCEEDED_PERCENT:
        return percentage, "exceeded"
    if ratio >= BUDGET_WARNING_PERCENT:
        return percentage, "warning"
    return percentage, "good"


@dataclass(frozen=True)
class BudgetProgress:
    budget: Budget
    spent_cents: int
    remaining_cents: int
    percentage: float
    status: str


class BudgetService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def spent_for(self, budget: Budget) -> int:
        stmt = select(func.coalesce(func.sum(Transaction.amount_cents), 0)).where(
            Transaction.user_id == self.user_id,
            Transaction.type == TransactionType.expense,
            Transaction.category == budget.category,
            Transaction.date.between(budget.start_date, budget.end_date),
        )
        return int(self.session.execute(stmt).scalar_one() or 0)

    def progress(self, budget: Budget) -> BudgetProgress:
        spent = self.spent_for(budget)
        percentage, status = budget_status(budget.amount_cents, spent)
        return BudgetProgress(
            budget=budget,
            spent_cents=spent,
            remaining_cents=budget.amount_cents - spent,
            percentage=percentage,
            status=status,
        )

    def list(
        self,
        *,
        period: Optional[BudgetPeriod] = None,
        active: bool = False,
        today: Optional[date] = None,
    ) -> list[BudgetProgress]:
        stmt = (
            select(Budget)
            .where(Budget.user_id == self.user_id)
            .order_by(Budget.start_date.desc(), Budget.id.desc())
        )
        if period:
            stmt = stmt.where(Budget.period == period)
        if active:
            today = today or today_local()
            stmt = stmt.where(Budget.start_date <= today, Budget.end_date >= today)
        return [self.progress(budget) for budget in self.session.scalars(stmt).all()]

    def get(self, budget_id: int) -> Budget:
        budget = self.session.get(Budget, budget_id)
        if not budget or budget.user_id != self.user_id:
            raise NotFound("Budget not found")
        return budget

    def get_progress(self, budget_id: int) -> BudgetProgress:
        return self.progress(self.get(budget_id))

    def _lock_owner(self) -> None:
        # Serialises concurrent budget writes for one user where FOR UPDATE exists.
        self.session.execute(
            select(User.id).where(User.id == self.user_id).with_for_update()
        )

    def _find_overlap(
        self,
        category: str,
        period: BudgetPeriod,
        start: date,
        end: date,
        exclude_id: Optional[int] = None,
    ) -> Optional[Budget]:
        stmt = select(Budget).where(
            Budget.user_id == self.user_id,
            Budget.category == category,
            Budget.period == period,
            Budget.start_date <= end,
            Budget.end_date >= start,
        )
        if exclude_id is not None:
            stmt = stmt.where(Budget.id != exclude_id)
        return self.session.scalars(stmt.limit(1)).first()

    @staticmethod
    def _check_dates(start: date, end: date) -> None:
        if start > end:
            raise ValidationError("Start date must be before end date")

    def create(self, data: BudgetIn) -> BudgetProgress:
        category = _clean_text(data.category, "Category")
        amount_cents = to_cents(data.amount)
        self._check_dates(data.start_date, data.end_date)

        self._lock_owner()
        if self._find_overlap(category, data.period, data.start_date, data.end_date):
            self.session.rollback()
            raise Conflict("Budget already exists for this category and period")

        budget = Budget(
            user_id=self.user_id,
            category=category,
            amount_cents=amount_cents,
            period=data.period,
            start_date=data.start_date,
            end_date=data.end_date,
        )
        self.session.add(budget)
        self.session.commit()
        self.session.refresh(budget)
        logger.info(
            f"budget_created: user_id={self.user_id} id={budget.id} "
            f"category={category} period={data.period.value}"
        )
        return self.progress(budget)

    def update(self, budget_id: int, data: BudgetUpdate) -> BudgetProgress:
        budget = self.get(budget_id)
        fields = data.model_fields_set

        for required in ("category", "amount", "period", "start_date", "end_date"):
            if required in fields and getattr(data, required) is None:
                raise ValidationError(f"{required} cannot be empty")

        category = (
            _clean_text(data.category, "Category")
            if "category" in fields
            else budget.category
        )
        amount_cents = to_cents(data.amount) if "amount" in fields else budget.amount_cents
        period = data.period if "period" in fields else budget.period
        start = data.start_date if "start_date" in fields else budget.start_date
        end = data.end_date if "end_date" in fields else budget.end_date
        self._check_dates(start, end)

        self._lock_owner()
        if self._find_overlap(category, period, start, end, exclude_id=budget.id):
            self.session.rollback()
            raise Conflict("Budget already exists for this category and period")

        budget.category = category
        budget.amount_cents = amount_cents
        budget.period = period
        budget.start_date = start
        budget.end_date = end
        self.session.commit()
        self.session.refresh(budget)
        return self.progress(budget)

    def delete(self, budget_id: int) -> None:
        budget = self.get(budget_id)
        self.session.delete(budget)
        self.session.commit()
        logger.info(f"budget_deleted: user_id={self.user_id} id={budget_id}")


class AnalyticsService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def _sum(self, txn_type: TransactionType, period: Period) -> int:
        stmt = select(func.coalesce(func.sum(Transaction.amount_cents), 0)).where(
            Transaction.user_id == self.user_id,
            Transaction.type == txn_type,
            Transaction.date >= period.start,
        )
        return int(self.session.execute(stmt).scalar_one() or 0)

    def _expense_categories(self) -> list[Category]:
        stmt = (
            select(Category)
            .where(
                Category.user_id == self.user_id,
                Category.type == TransactionType.expense,
            )
            .order_by(Category.id.asc())
        )
        return list(self.session.scalars(stmt).all())

    def _expense_rows(self, period: Period) -> list[dict[str, object]]:
        total = func.sum(Transaction.amount_cents).label("total")
        stmt = (
            select(
                Transaction.category,
                total,
                func.count(Transaction.id).label("count"),
            )
            .where(
                Transaction.user_id == self.user_id,
                Transaction.type == TransactionType.expense,
                Transaction.date >= period.start,
            )
            .group_by(Transaction.category)
            .order_by(total.desc(), Transaction.category.asc())
        )
        styles = {c.name: c for c in self._expense_categories()}
        rows: list[dict[str, object]] = []
        for index, row in enumerate(self.session.execute(stmt)):
            category = styles.get(row.category)
            rows.append(
                {
                    "category": row.category,
                    "amount_cents": int(row.total or 0),
                    "count": int(row.count or 0),
                    "color": (category.color if category else None)
                    or CHART_COLORS[index % len(CHART_COLORS)],
                    "icon": (category.icon if category else None)
                    or DEFAULT_CATEGORY_ICON,
                }
            )
        return rows

    def dashboard_summary(
        self, period_slug: Optional[str] = None, *, today: Optional[date] = None
    ) -> dict[str, object]:
        period = resolve_period(period_slug, today=today)
        income = self._sum(TransactionType.income, period)
        expenses = self._sum(TransactionType.expense, period)
        recent = TransactionService(self.session, self.user_id).recent(5)
        return {
            "summary": {
                "income": cents_to_amount(income),
                "expenses": cents_to_amount(expenses),
                "balance": cents_to_amount(income - expenses),
                "period": period.slug,
                "startDate": period.start.isoformat(),
            },
            "recentTransactions": [transaction_to_dict(t) for t in recent],
        }

    def expenses_by_category(
        self, period_slug: Optional[str] = None, *, today: Optional[date] = None
    ) -> dict[str, object]:
        period = resolve_period(period_slug, today=today)
        rows = self._expense_rows(period)

        if not rows:
            placeholder = [
                {
                    "category": category.name,
                    "amount": 0,
                    "color": category.color or CHART_COLORS[index],
                    "icon": category.icon or DEFAULT_CATEGORY_ICON,
                }
                for index, category in enumerate(self._expense_categories()[:3])
            ]
            return {
                "chartData": placeholder,
                "period": period.slug,
                "total": 0,
                "isEmpty": True,
            }

        total_cents = sum(int(r["amount_cents"]) for r in rows)
        return {
            "chartData": [
                {
                    "category": r["category"],
                    "amount": cents_to_amount(int(r["amount_cents"])),
                    "color": r["color"],
                    "icon": r["icon"],
                }
                for r in rows
            ],
            "period": period.slug,
            "total": cents_to_amount(total_cents),
            "isEmpty": False,
        }

    def top_spending_categories(
        self,
        period_slug: Optional[str] = None,
        limit: int = 5,
        *,
        today: Optional[date] = None,
    ) -> dict[str, object]:
        period = resolve_period(period_slug, today=today)
        rows = self._expense_rows(period)
        total_cents = sum(int(r["amount_cents"]) for r in rows)
        chart = []
        for r in rows[:limit]:
            amount = int(r["amount_cents"])
            percent = (
                Decimal(amount) * 100 / Decimal(total_cents) if total_cents else Decimal(0)
            )
            chart.append(
                {
                    "category": r["category"],
                    "amount": cents_to_amount(amount),
                    "count": r["count"],
                    "percentage": float(
                        percent.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
                    ),
                    "color": r["color"],
                    "icon": r["icon"],
                }
            )
        return {
            "chartData": chart,
            "period": period.slug,
            "total": cents_to_amount(total_cents),
            "limit": limit,
        }

    def monthly_trends(
        self, months: int = 6, *, today: Optional[date] = None
    ) -> list[dict[str, object]]:
        today = today or today_local()
        start = add_months(today, -months)

        month_key = func.strftime("%Y-%m", Transaction.date).label("month")
        stmt = (
            select(
                month_key,
                Transaction.type,
                func.coalesce(func.sum(Transaction.amount_cents), 0).label("total"),
            )
            .where(
                Transaction.user_id == self.user_id,
                Transaction.date >= start,
            )
            .group_by(month_key, Transaction.type)
        )
        totals: dict[tuple[str, TransactionType], int] = {}
        for row in self.session.execute(stmt):
            totals[(row.month, row.type)] = int(row.total or 0)

        # Future-dated entries extend the range past the current month.
        last = month_start(today)
        for key, _ in totals:
            year, month = (int(part) for part in key.split("-"))
            last = max(last, date(year, month, 1))

        buckets: list[date] = []
        current = month_start(start)
        while current <= last:
            buckets.append(current)
            current = add_months(current, 1)

        out: list[dict[str, object]] = []
        for bucket in buckets:
            key = f"{bucket.year:04d}-{bucket.month:02d}"
            income = totals.get((key, TransactionType.income), 0)
            expenses = totals.get((key, TransactionType.expense), 0)
            out.append(
                {
                    "month": key,
                    "monthName": f"{calendar.month_abbr[bucket.month]} {bucket.year}",
                    "income": cents_to_amount(income),
                    "expenses": cents_to_amount(expenses),
                    "balance": cents_to_amount(income - expenses),
                }
            )
        return out

    def cumulative_balance(
        self, period_slug: Optional[str] = None, *, today: Optional[date] = None
    ) -> dict[str, object]:
        period = resolve_period(period_slug, today=today)
        stmt = (
            select(
                Transaction.date,
                Transaction.type,
                func.coalesce(func.sum(Transaction.amount_cents), 0).label("total"),
            )
            .where(
                Transaction.user_id == self.user_id,
                Transaction.date >= period.start,
            )
            .group_by(Transaction.date, Transaction.type)
            .order_by(Transaction.date.asc())
        )
        per_day: dict[date, dict[TransactionType, int]] = {}
        for row in self.session.execute(stmt):
            per_day.setdefault(row.date, {})[row.type] = int(row.total or 0)

        running = 0
        chart = []
        for day in sorted(per_day):
            income = per_day[day].get(TransactionType.income, 0)
            expenses = per_day[day].get(TransactionType.expense, 0)
            running += income - expenses
            chart.append(
                {
                    "date": day.isoformat(),
                    "income": cents_to_amount(income),
                    "expenses": cents_to_amount(expenses),
                    "balance": cents_to_amount(running),
                }
            )
        return {"chartData": chart, "period": period.slug}

    def export_rows(
        self, start: Optional[date] = None, end: Optional[date] = None
    ) -> list[Transaction]:
        filters = TransactionFilters(start=start, end=end)
        return TransactionService(self.session, self.user_id).all_matching(filters)

    def export_csv(
        self, start: Optional[date] = None, end: Optional[date] = None
    ) -> str:
        transactions = self.export_rows(start, end)
        logger.info(
            f"export_generated: user_id={self.user_id} format=csv rows={len(transactions)}"
        )
        return export_transactions(transactions)
