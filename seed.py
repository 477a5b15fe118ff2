"""Populate the database with a demo user and a few months of activity.

Usage: ``python seed.py [--email demo@example.com] [--months 6] [--seed 42]``
"""

import argparse
import logging
import random
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from database import create_schema, session_scope
from models import Budget, BudgetPeriod, Transaction, TransactionType, User
from periods import add_months, month_end, month_start, today_local
from schemas import RegisterIn
from services import DEFAULT_CATEGORIES, UserService, to_cents

logger = logging.getLogger(__name__)

DEMO_PASSWORD = "password123"

EXPENSE_NAMES = {
    "Food & Dining": ["Grocery Store", "Restaurant Dinner", "Coffee Shop", "Food Delivery"],
    "Transportation": ["Gas Station", "Public Transit", "Parking Fee", "Car Maintenance"],
    "Shopping": ["Clothing Store", "Electronics", "Online Shopping", "Bookstore"],
    "Entertainment": ["Movie Theater", "Concert Tickets", "Streaming Service"],
    "Bills & Utilities": ["Electricity Bill", "Internet Bill", "Phone Bill", "Rent"],
    "Healthcare": ["Pharmacy", "Doctor Visit", "Dental Care"],
    "Education": ["Online Course", "Books", "Workshop"],
    "Travel": ["Flight Tickets", "Hotel Booking", "Car Rental"],
    "Other": ["Miscellaneous"],
}

INCOME_NAMES = {
    "Freelance": ["Web Development", "Consulting", "Design Work"],
    "Investment": ["Stock Dividends", "Bond Interest"],
    "Gift": ["Birthday Gift"],
}


def seed(
    session: Session,
    email: str,
    months: int,
    rng: random.Random,
    *,
    today: Optional[date] = None,
) -> int:
    """Create the demo user with ``months`` of history plus this month's budgets.

    Returns the number of transactions written; 0 when the user already exists.
    """
    today = today or today_local()
    if session.scalar(select(User).where(User.email == email)):
        logger.info(f"seed_skipped: email={email} reason=exists")
        return 0

    user = UserService(session).register(
        RegisterIn(name="Demo User", email=email, password=DEMO_PASSWORD),
        commit=False,
    )

    created = 0
    for offset in range(months, -1, -1):
        first = month_start(add_months(today, -offset))
        last = min(month_end(first), today)
        days = (last - first).days + 1

        session.add(
            _transaction(user.id, "Monthly Salary", "Salary", TransactionType.income,
                         Decimal("4200.00"), first + timedelta(days=min(24, days - 1)))
        )
        created += 1

        for _ in range(rng.randint(12, 20)):
            category = rng.choice(list(EXPENSE_NAMES))
            session.add(
                _transaction(user.id, rng.choice(EXPENSE_NAMES[category]), category,
                             TransactionType.expense,
                             Decimal(rng.randint(500, 25000)) / 100,
                             first + timedelta(days=rng.randrange(days)))
            )
            created += 1

        if rng.random() < 0.5:
            category = rng.choice(list(INCOME_NAMES))
            session.add(
                _transaction(user.id, rng.choice(INCOME_NAMES[category]), category,
                             TransactionType.income,
                             Decimal(rng.randint(10000, 90000)) / 100,
                             first + timedelta(days=rng.randrange(days)))
            )
            created += 1

    expense_defaults = [
        name for name, txn_type, _, _ in DEFAULT_CATEGORIES
        if txn_type == TransactionType.expense
    ]
    for category in expense_defaults[:4]:
        session.add(
            Budget(
                user_id=user.id,
                category=category,
                amount_cents=to_cents(Decimal(rng.choice([200, 300, 500, 800]))),
                period=BudgetPeriod.monthly,
                start_date=month_start(today),
                end_date=month_end(today),
            )
        )
    session.commit()

    logger.info(f"seed_completed: email={email} transactions={created}")
    return created


def _transaction(user_id, name, category, txn_type, amount, day) -> Transaction:
    return Transaction(
        user_id=user_id,
        name=name,
        category=category,
        type=txn_type,
        amount_cents=to_cents(amount),
        date=day,
        occurred_at=datetime.combine(day, time(12, 0)),
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed demo finance data")
    parser.add_argument("--email", default="demo@example.com")
    parser.add_argument("--months", type=int, default=6)
    parser.add_argument("--seed", type=int, default=42)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    create_schema()
    with session_scope() as session:
        seed(session, args.email, args.months, random.Random(args.seed))


if __name__ == "__main__":
    main()
