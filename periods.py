from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from config import get_settings


@dataclass(frozen=True)
class Period:
    slug: str
    start: date
    end: date


def local_now() -> datetime:
    """Wall-clock time in the configured timezone, stored naive."""
    settings = get_settings()
    return datetime.now(ZoneInfo(settings.timezone)).replace(tzinfo=None)


def local_today() -> date:
    return local_now().date()


def days_in_month(year: int, month: int) -> int:
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - date(year, month, 1)).days


def month_end(year: int, month: int) -> date:
    return date(year, month, days_in_month(year, month))


def shift_month(year: int, month: int, count: int) -> tuple[int, int]:
    month_index = (year * 12) + (month - 1) + count
    return month_index // 12, (month_index % 12) + 1


def resolve_period(
    period: Optional[str],
    start: Optional[str],
    end: Optional[str],
    *,
    today: Optional[date] = None,
) -> Period:
    today = today or local_today()
    if not period or period == "all":
        return Period("all", date(1970, 1, 1), date(9999, 12, 31))
    if period == "last_month":
        year, month = shift_month(today.year, today.month, -1)
        return Period("last_month", date(year, month, 1), month_end(year, month))
    if period == "custom":
        if not start or not end:
            raise ValueError("Custom period requires start and end dates")
        start_date = date.fromisoformat(start)
        end_date = date.fromisoformat(end)
        if start_date > end_date:
            raise ValueError("Start date must be before end date")
        return Period("custom", start_date, end_date)
    if period != "this_month":
        raise ValueError(f"Unknown period: {period}")

    return Period(
        "this_month", today.replace(day=1), month_end(today.year, today.month)
    )
