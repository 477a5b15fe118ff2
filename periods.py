import calendar
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from config import get_settings


@dataclass(frozen=True)
class Period:
    slug: str
    start: date


ANALYTICS_PERIODS = ("week", "month", "year")


def now_local() -> datetime:
    """Naive wall-clock time in the configured timezone."""
    tz = ZoneInfo(get_settings().timezone)
    return datetime.now(tz).replace(tzinfo=None)


def today_local() -> date:
    return now_local().date()


def month_start(d: date) -> date:
    return d.replace(day=1)


def month_end(d: date) -> date:
    return d.replace(day=calendar.monthrange(d.year, d.month)[1])


def add_months(d: date, count: int) -> date:
    month_index = (d.year * 12) + (d.month - 1) + count
    year = month_index // 12
    month = (month_index % 12) + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def resolve_period(period: Optional[str], *, today: Optional[date] = None) -> Period:
    """Map a dashboard period slug onto the start of an open-ended window.

    ``week`` starts seven days ago, ``year`` on January 1st and everything else
    (including no value) on the first of the current month. Windows have no
    upper bound, so future-dated entries count.
    """
    today = today or today_local()
    if period == "week":
        return Period("week", today - timedelta(days=7))
    if period == "year":
        return Period("year", date(today.year, 1, 1))
    return Period("month", month_start(today))


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO date or datetime string.

    A bare date becomes noon of that day. Aware timestamps are converted to the
    configured timezone and returned naive.
    """
    raw = value.strip()
    if not raw:
        raise ValueError("Empty date")
    if len(raw) == 10:
        return datetime.combine(date.fromisoformat(raw), time(12, 0))
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    parsed = datetime.fromisoformat(raw)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(ZoneInfo(get_settings().timezone)).replace(
            tzinfo=None
        )
    return parsed


def parse_date_param(value: Optional[str]) -> Optional[date]:
    if value is None or not value.strip():
        return None
    return parse_timestamp(value).date()
