from datetime import datetime
from typing import TYPE_CHECKING, Optional

from models import Category, Transaction, User

if TYPE_CHECKING:  # pragma: no cover
    from services import BudgetProgress


def cents_to_amount(cents: int) -> float:
    return round(cents / 100, 2)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def user_to_dict(user: User) -> dict[str, object]:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "createdAt": _iso(user.created_at),
    }


def category_to_dict(category: Category) -> dict[str, object]:
    return {
        "id": category.id,
        "name": category.name,
        "type": category.type.value,
        "color": category.color,
        "icon": category.icon,
        "isDefault": category.is_default,
        "userId": category.user_id,
        "createdAt": _iso(category.created_at),
        "updatedAt": _iso(category.updated_at),
    }


def transaction_to_dict(txn: Transaction) -> dict[str, object]:
    return {
        "id": txn.id,
        "name": txn.name,
        "amount": cents_to_amount(txn.amount_cents),
        "description": txn.description,
        "category": txn.category,
        "type": txn.type.value,
        "date": txn.date.isoformat(),
        "occurredAt": _iso(txn.occurred_at),
        "userId": txn.user_id,
        "createdAt": _iso(txn.created_at),
        "updatedAt": _iso(txn.updated_at),
    }


def budget_to_dict(progress: "BudgetProgress") -> dict[str, object]:
    budget = progress.budget
    return {
        "id": budget.id,
        "category": budget.category,
        "amount": cents_to_amount(budget.amount_cents),
        "period": budget.period.value,
        "startDate": budget.start_date.isoformat(),
        "endDate": budget.end_date.isoformat(),
        "userId": budget.user_id,
        "createdAt": _iso(budget.created_at),
        "updatedAt": _iso(budget.updated_at),
        "spent": cents_to_amount(progress.spent_cents),
        "remaining": cents_to_amount(progress.remaining_cents),
        "percentage": progress.percentage,
        "status": progress.status,
    }
