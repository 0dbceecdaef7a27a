"""
Timezone-aware datetime helpers.
- Store and compute in UTC in DB.
- "Today" for leave windows is the UTC calendar date.
"""
from datetime import date, datetime, timezone

UTC = timezone.utc


def now_utc() -> datetime:
    """Current time in UTC (timezone-aware). Use for approved_at, audit created_at, etc."""
    return datetime.now(UTC)


def today_utc() -> date:
    """Current calendar date in UTC."""
    return now_utc().date()


def window_contains(start: date, end: date, day: date) -> bool:
    """Inclusive check: start <= day <= end."""
    return start <= day <= end
