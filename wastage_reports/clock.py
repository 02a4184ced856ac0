"""Resolve the reporting timezone offset and cutoff hour.

Settings are re-read from the store on every call so that an administrator's
change takes effect on the next scheduler tick without a restart.  Resolution
never fails: anything unreadable degrades to UTC with a midnight cutoff.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .db import ReportStore
from .models import ReportSettings

logger = logging.getLogger(__name__)

_DIRECT_OFFSET = re.compile(
    r"^(?:UTC|GMT)([+-])(\d{1,2})(?::(\d{2}))?$", re.IGNORECASE
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Return *value* as an aware UTC datetime; naive values are UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_utc_offset(
    descriptor: Optional[str], at: Optional[datetime] = None
) -> Optional[int]:
    """Return the UTC offset in minutes described by *descriptor*.

    Accepts ``UTC+7``, ``GMT-05:30`` style descriptors directly; anything else
    is looked up as a named zone in the host timezone database and its offset
    at *at* (default: now) is returned.  ``None`` if neither works.
    """
    if not descriptor or not descriptor.strip():
        return None
    descriptor = descriptor.strip()

    m = _DIRECT_OFFSET.match(descriptor)
    if m:
        sign, hours, minutes = m.group(1), int(m.group(2)), int(m.group(3) or 0)
        if hours > 14 or minutes > 59:
            return None
        total = hours * 60 + minutes
        return -total if sign == "-" else total

    try:
        zone = ZoneInfo(descriptor)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        return None
    offset = as_utc(at or utc_now()).astimezone(zone).utcoffset()
    if offset is None:
        return None
    return int(offset.total_seconds() // 60)


def resolve_settings(
    store: ReportStore, now: Optional[datetime] = None
) -> ReportSettings:
    """Return the current :class:`ReportSettings` from *store*."""
    try:
        row = store.get_report_settings()
    except Exception:
        logger.warning("Report settings unavailable, using UTC", exc_info=True)
        return ReportSettings()
    if row is None:
        return ReportSettings()

    offset = parse_utc_offset(row.timezone, now)
    if offset is None:
        if row.timezone:
            logger.warning("Unrecognised timezone %r, using UTC", row.timezone)
        offset = 0

    cutoff = row.cutoff_hour
    try:
        cutoff = int(cutoff) if cutoff is not None else 0
    except (TypeError, ValueError):
        cutoff = -1
    if not 0 <= cutoff <= 23:
        logger.warning("Invalid cutoff hour %r, using 0", row.cutoff_hour)
        cutoff = 0

    return ReportSettings(timezone_offset_minutes=offset, cutoff_hour=cutoff)


def local_now(settings: ReportSettings, now: Optional[datetime] = None) -> datetime:
    """Naive wall-clock time at the configured offset."""
    shifted = as_utc(now or utc_now()) + timedelta(
        minutes=settings.timezone_offset_minutes
    )
    return shifted.replace(tzinfo=None)


def minute_of_day(settings: ReportSettings, now: Optional[datetime] = None) -> int:
    local = local_now(settings, now)
    return local.hour * 60 + local.minute


__all__ = [
    "utc_now",
    "as_utc",
    "parse_utc_offset",
    "resolve_settings",
    "local_now",
    "minute_of_day",
]
