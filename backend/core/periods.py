import calendar
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple


def day_start(d: date) -> datetime:
    return datetime.combine(d, time.min, tzinfo=timezone.utc)


def inclusive_range(from_date: Optional[date], to_date: Optional[date]) -> Tuple[Optional[datetime], Optional[datetime]]:
    """[from 00:00, day after `to` 00:00) so both calendar days are included."""
    start = day_start(from_date) if from_date else None
    end_excl = day_start(to_date) + timedelta(days=1) if to_date else None
    return start, end_excl


def months_ago(d: date, months: int) -> date:
    month_index = d.month - 1 - months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def period_start(period: str, today: date) -> Optional[date]:
    if period == "week":
        return today - timedelta(weeks=1)
    if period == "month":
        return months_ago(today, 1)
    if period == "year":
        return months_ago(today, 12)
    return None
