import csv
from datetime import date
from io import StringIO

from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from csv_utils import EXPORT_HEADER, sanitize_csv_value
from database import Base
from models import TransactionType, User
from schemas import RegisterIn, TransactionIn
from services import CHART_COLORS, AnalyticsService, TransactionService, UserService

TODAY = date(2026, 10, 19)


def _setup() -> tuple[Session, User]:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    session = Session(engine)
    user = UserService(session).register(
        RegisterIn(name="Ana", email="ana@example.com", password="secret1")
    )
    return session, user


def _add(session: Session, user: User, when: str, amount: str, category: str,
         txn_type: TransactionType = TransactionType.expense, name: str = "Item",
         description=None) -> None:
    TransactionService(session, user.id).create(
        TransactionIn(
            name=name,
            amount=amount,
            category=category,
            type=txn_type,
            date=when,
            description=description,
        )
    )


def test_dashboard_balance_is_income_minus_expenses() -> None:
    session, user = _setup()
    _add(session, user, "2026-10-02", "1000", "Salary", TransactionType.income)
    _add(session, user, "2026-10-10", "250.50", "Food & Dining")
    _add(session, user, "2026-09-30", "99.99", "Travel")
    service = AnalyticsService(session, user.id)

    month = service.dashboard_summary(today=TODAY)["summary"]
    assert month == {
        "income": 1000.0,
        "expenses": 250.5,
        "balance": 749.5,
        "period": "month",
        "startDate": "2026-10-01",
    }

    year = service.dashboard_summary("year", today=TODAY)["summary"]
    assert year["expenses"] == 350.49
    assert year["balance"] == round(year["income"] - year["expenses"], 2)

    week = service.dashboard_summary("week", today=TODAY)["summary"]
    assert week["startDate"] == "2026-10-12"
    assert week["income"] == 0
    assert week["expenses"] == 0


def test_dashboard_includes_five_recent_transactions() -> None:
    session, user = _setup()
    for day in range(1, 8):
        _add(session, user, f"2026-10-{day:02d}", "5", "Other", name=f"Day {day}")

    recent = AnalyticsService(session, user.id).dashboard_summary(today=TODAY)[
        "recentTransactions"
    ]
    assert [t["name"] for t in recent] == ["Day 7", "Day 6", "Day 5", "Day 4", "Day 3"]


def test_expenses_by_category_placeholder_when_empty() -> None:
    session, user = _setup()
    _add(session, user, "2026-10-02", "1000", "Salary", TransactionType.income)

    data = AnalyticsService(session, user.id).expenses_by_category(today=TODAY)

    assert data["isEmpty"] is True
    assert data["total"] == 0
    assert [row["category"] for row in data["chartData"]] == [
        "Food & Dining",
        "Transportation",
        "Shopping",
    ]
    assert all(row["amount"] == 0 for row in data["chartData"])


def test_expenses_by_category_groups_and_enriches() -> None:
    session, user = _setup()
    _add(session, user, "2026-10-02", "30", "Food & Dining")
    _add(session, user, "2026-10-03", "20", "Food & Dining")
    _add(session, user, "2026-10-04", "70", "Custom Stuff")
    _add(session, user, "2026-10-05", "10", "Travel")

    data = AnalyticsService(session, user.id).expenses_by_category(today=TODAY)

    assert data["isEmpty"] is False
    assert data["total"] == 130.0
    rows = data["chartData"]
    assert [(r["category"], r["amount"]) for r in rows] == [
        ("Custom Stuff", 70.0),
        ("Food & Dining", 50.0),
        ("Travel", 10.0),
    ]
    assert rows[0]["color"] == CHART_COLORS[0]
    assert rows[0]["icon"] == "📦"
    assert rows[1]["color"] == "#FF6B6B"


def test_top_spending_categories_limits_and_shares() -> None:
    session, user = _setup()
    _add(session, user, "2026-10-02", "60", "Food & Dining")
    _add(session, user, "2026-10-03", "15", "Food & Dining")
    _add(session, user, "2026-10-04", "20", "Travel")
    _add(session, user, "2026-10-05", "5", "Shopping")

    data = AnalyticsService(session, user.id).top_spending_categories(
        limit=2, today=TODAY
    )

    assert data["total"] == 100.0
    assert [(r["category"], r["percentage"], r["count"]) for r in data["chartData"]] == [
        ("Food & Dining", 75.0, 2),
        ("Travel", 20.0, 1),
    ]


def test_monthly_trends_are_zero_filled() -> None:
    session, user = _setup()
    _add(session, user, "2026-07-10", "999", "Travel")
    _add(session, user, "2026-07-25", "40", "Travel")
    _add(session, user, "2026-09-01", "2000", "Salary", TransactionType.income)
    _add(session, user, "2026-09-02", "500", "Bills & Utilities")
    _add(session, user, "2026-10-15", "12.34", "Food & Dining")

    trends = AnalyticsService(session, user.id).monthly_trends(3, today=TODAY)

    assert [row["month"] for row in trends] == ["2026-07", "2026-08", "2026-09", "2026-10"]
    assert trends[0]["expenses"] == 40.0
    assert trends[1] == {
        "month": "2026-08",
        "monthName": "Aug 2026",
        "income": 0,
        "expenses": 0,
        "balance": 0,
    }
    assert trends[2]["balance"] == 1500.0
    assert trends[3]["monthName"] == "Oct 2026"


def test_cumulative_balance_runs_from_window_start() -> None:
    session, user = _setup()
    _add(session, user, "2026-09-28", "1000", "Salary", TransactionType.income)
    _add(session, user, "2026-10-01", "500", "Salary", TransactionType.income)
    _add(session, user, "2026-10-01", "100", "Food & Dining")
    _add(session, user, "2026-10-05", "50", "Food & Dining")

    data = AnalyticsService(session, user.id).cumulative_balance(today=TODAY)

    assert data["period"] == "month"
    assert data["chartData"] == [
        {"date": "2026-10-01", "income": 500.0, "expenses": 100.0, "balance": 400.0},
        {"date": "2026-10-05", "income": 0, "expenses": 50.0, "balance": 350.0},
    ]


def test_csv_export_quotes_and_neutralises_formulas() -> None:
    session, user = _setup()
    _add(session, user, "2026-10-02", "12.5", "Food & Dining",
         name='Dinner, "fancy"', description="=HYPERLINK(1)")
    _add(session, user, "2026-08-02", "3", "Other", name="Old")

    service = AnalyticsService(session, user.id)
    text = service.export_csv(start=date(2026, 10, 1))
    rows = list(csv.reader(StringIO(text)))

    assert text.splitlines()[0] == ",".join(EXPORT_HEADER)
    assert '"Dinner, ""fancy"""' in text
    assert len(rows) == 2
    _, name, amount, description, category, txn_type, day, _ = rows[1]
    assert name == 'Dinner, "fancy"'
    assert amount == "12.50"
    assert description == "\t=HYPERLINK(1)"
    assert (category, txn_type, day) == ("Food & Dining", "EXPENSE", "2026-10-02")

    assert len(service.export_rows()) == 2


def test_sanitize_csv_value_only_touches_risky_cells() -> None:
    assert sanitize_csv_value("Shopping") == "Shopping"
    assert sanitize_csv_value("  Lunch  ") == "Lunch"
    assert sanitize_csv_value(None) == ""
    assert sanitize_csv_value("+1 555") == "\t+1 555"
    assert sanitize_csv_value("@SUM(A1)") == "\t@SUM(A1)"
    assert sanitize_csv_value("cmd /c calc") == "\tcmd /c calc"
    assert sanitize_csv_value("https://example.com") == "\thttps://example.com"


def test_future_dated_entries_count_in_open_windows() -> None:
    session, user = _setup()
    _add(session, user, "2026-10-10", "20", "Food & Dining")
    _add(session, user, "2026-10-25", "100", "Food & Dining")
    _add(session, user, "2026-12-03", "7", "Travel")
    service = AnalyticsService(session, user.id)

    assert service.dashboard_summary(today=TODAY)["summary"]["expenses"] == 127.0
    assert service.expenses_by_category(today=TODAY)["total"] == 127.0
    assert service.top_spending_categories(today=TODAY)["chartData"][0]["amount"] == 120.0

    trends = service.monthly_trends(1, today=TODAY)
    assert [row["month"] for row in trends] == ["2026-09", "2026-10", "2026-11", "2026-12"]
    assert trends[1]["expenses"] == 120.0
    assert trends[2]["expenses"] == 0
    assert trends[3]["expenses"] == 7.0

    days = service.cumulative_balance(today=TODAY)["chartData"]
    assert [d["date"] for d in days] == ["2026-10-10", "2026-10-25", "2026-12-03"]
    assert days[-1]["balance"] == -127.0
