"""
PayFlow HR - Clock

Services read the current time through a Clock so that date-derived values
(repayment start, review and payment stamps) can be pinned in tests.
"""

from datetime import date, datetime, timezone


class Clock:
    """System clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def today(self) -> date:
        return self.now().date()


class FixedClock(Clock):
    """Clock frozen at a given instant; advance it explicitly."""

    def __init__(self, instant: datetime):
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        self._instant = instant

    def now(self) -> datetime:
        return self._instant

    def set(self, instant: datetime) -> None:
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        self._instant = instant


def first_day_of_next_month(day: date) -> date:
    """2025-01-31 -> 2025-02-01, 2025-12-15 -> 2026-01-01."""
    if day.month == 12:
        return date(day.year + 1, 1, 1)
    return date(day.year, day.month + 1, 1)
