from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta


DAILY = "daily"
WEEKLY = "weekly"
MONTHLY = "monthly"

PERIODS = (DAILY, WEEKLY, MONTHLY)

PERIOD_LABELS = {
    DAILY: "Daily",
    WEEKLY: "Weekly",
    MONTHLY: "Monthly",
}


@dataclass(frozen=True)
class PeriodWindow:
    start: date
    end: date

    def contains(self, d: date) -> bool:
        return self.start <= d <= self.end


def period_label(period: str) -> str:
    try:
        return PERIOD_LABELS[period]
    except KeyError:
        raise ValueError(f"Unknown budget period: {period!r}") from None


def period_bounds(period: str, today: date | None = None) -> PeriodWindow:
    """
    Inclusive window of the given period type containing `today`:
    - daily: the day itself
    - weekly: Monday..Sunday (ISO week)
    - monthly: first..last day of the calendar month
    """
    now = today or date.today()
    if period == DAILY:
        return PeriodWindow(now, now)
    if period == WEEKLY:
        start = now - timedelta(days=now.weekday())
        return PeriodWindow(start, start + timedelta(days=6))
    if period == MONTHLY:
        last_day = calendar.monthrange(now.year, now.month)[1]
        return PeriodWindow(now.replace(day=1), now.replace(day=last_day))
    raise ValueError(f"Unknown budget period: {period!r}")
