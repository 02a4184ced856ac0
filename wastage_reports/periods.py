"""Business day / week / month windows.

Calendar fields are always read from ``now + offset``; the host's own locale
is never consulted.  The resulting local boundaries are shifted back by the
same offset, so a range is a pure function of the settings and the minute.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from .clock import local_now
from .models import PeriodKind, PeriodRange, ReportSettings


def _next_month(day: date) -> date:
    if day.month == 12:
        return day.replace(year=day.year + 1, month=1)
    return day.replace(month=day.month + 1)


def _previous_month(day: date) -> date:
    if day.month == 1:
        return day.replace(year=day.year - 1, month=12)
    return day.replace(month=day.month - 1)


def _to_utc(local: datetime, offset_minutes: int) -> datetime:
    return (local - timedelta(minutes=offset_minutes)).replace(
        tzinfo=timezone.utc
    )


def resolve_period(
    kind: PeriodKind,
    settings: ReportSettings,
    now: Optional[datetime] = None,
) -> PeriodRange:
    """Return the half-open UTC range of the current *kind* period."""
    kind = PeriodKind(kind)
    cutoff = settings.cutoff_hour
    local = local_now(settings, now)
    before_cutoff = local.hour < cutoff
    today = local.date()

    if kind is PeriodKind.DAILY:
        day = today - timedelta(days=1) if before_cutoff else today
        start = datetime.combine(day, time(cutoff))
        end = start + timedelta(days=1)
    elif kind is PeriodKind.WEEKLY:
        days_since_monday = today.weekday()
        monday = today - timedelta(days=days_since_monday)
        if days_since_monday == 0 and before_cutoff:
            monday -= timedelta(days=7)
        start = datetime.combine(monday, time(cutoff))
        end = start + timedelta(days=7)
    else:
        first = today.replace(day=1)
        if today.day == 1 and before_cutoff:
            first = _previous_month(first)
        start = datetime.combine(first, time(cutoff))
        # Calendar month, not a fixed number of days.
        end = datetime.combine(_next_month(first), time(cutoff))

    offset = settings.timezone_offset_minutes
    return PeriodRange(start_utc=_to_utc(start, offset), end_utc=_to_utc(end, offset))


__all__ = ["resolve_period"]
