"""Date/time helpers: UTC normalisation and report range validation."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Optional

from hrms.common.exceptions import ValidationException
from hrms.config import settings


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on round-trip)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def minutes_between(start: datetime, end: datetime) -> int:
    """Whole minutes from *start* to *end*, floored, never negative."""
    seconds = (as_utc(end) - as_utc(start)).total_seconds()
    return max(0, int(seconds // 60))


def resolve_date_range(
    start: Optional[date],
    end: Optional[date],
    *,
    today: date,
    default_days: int = 30,
) -> tuple[date, date]:
    """
    Fill in a missing bound and validate an inclusive ``[start, end]`` range.

    * no bounds → the last *default_days* days ending *today*
    * end before start → 422
    * longer than ``MAX_REPORT_RANGE_DAYS`` → 422
    """
    end = end or today
    start = start or (end - timedelta(days=default_days - 1))
    if end < start:
        raise ValidationException(
            {"endDate": ["endDate must be on or after startDate."]}
        )
    if (end - start).days + 1 > settings.MAX_REPORT_RANGE_DAYS:
        raise ValidationException(
            {"endDate": [
                f"Date range may not exceed {settings.MAX_REPORT_RANGE_DAYS} days."
            ]}
        )
    return start, end
