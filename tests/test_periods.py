from datetime import date, datetime

import pytest

from periods import add_months, month_end, parse_date_param, parse_timestamp, resolve_period


def test_resolve_period_window_starts() -> None:
    today = date(2026, 10, 19)

    assert resolve_period("week", today=today).start == date(2026, 10, 12)
    assert resolve_period("year", today=today).start == date(2026, 1, 1)
    month = resolve_period(None, today=today)
    assert (month.slug, month.start) == ("month", date(2026, 10, 1))
    assert resolve_period("fortnight", today=today).slug == "month"


def test_add_months_clamps_day() -> None:
    assert add_months(date(2026, 1, 31), 1) == date(2026, 2, 28)
    assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
    assert add_months(date(2026, 3, 15), -6) == date(2025, 9, 15)
    assert month_end(date(2026, 2, 10)) == date(2026, 2, 28)


def test_parse_timestamp() -> None:
    assert parse_timestamp("2026-03-05") == datetime(2026, 3, 5, 12, 0)
    assert parse_timestamp("2026-03-05T08:15:00") == datetime(2026, 3, 5, 8, 15)
    assert parse_timestamp("2026-03-05T08:15:00Z").tzinfo is None
    with pytest.raises(ValueError):
        parse_timestamp("05/03/2026")


def test_parse_date_param() -> None:
    assert parse_date_param(None) is None
    assert parse_date_param("  ") is None
    assert parse_date_param("2026-03-05") == date(2026, 3, 5)
    assert parse_date_param("2026-03-05T23:00:00") == date(2026, 3, 5)
    with pytest.raises(ValueError):
        parse_date_param("yesterday")
