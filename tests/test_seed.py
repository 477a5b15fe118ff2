import random
from datetime import date

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session

from database import Base
from models import Budget, Category, Transaction, User
import seed as demo_seed
from seed import seed
from services import BudgetService


def test_seed_creates_history_and_current_budgets_once() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    today = date(2026, 10, 19)

    with Session(engine) as session:
        created = seed(session, "demo@example.com", 2, random.Random(1), today=today)

        assert created > 0
        assert session.scalar(select(func.count(Transaction.id))) == created
        assert session.scalar(select(func.count(Category.id))) == 14
        oldest = session.scalar(select(func.min(Transaction.date)))
        newest = session.scalar(select(func.max(Transaction.date)))
        assert oldest >= date(2026, 8, 1)
        assert newest <= today

        user = session.scalar(select(User))
        budgets = BudgetService(session, user.id).list(active=True, today=today)
        assert len(budgets) == 4
        assert session.scalar(select(func.count(Budget.id))) == 4

        assert seed(session, "demo@example.com", 2, random.Random(1), today=today) == 0


def test_failed_seed_leaves_no_user_behind(monkeypatch) -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    def broken(*args, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(demo_seed, "_transaction", broken)

    with Session(engine) as session:
        with pytest.raises(RuntimeError):
            demo_seed.seed(session, "demo@example.com", 1, random.Random(1))
        session.rollback()

        assert session.scalar(select(func.count(User.id))) == 0
        assert session.scalar(select(func.count(Category.id))) == 0
