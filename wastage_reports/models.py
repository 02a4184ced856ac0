"""Data models used throughout the project."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple


class PeriodKind(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


@dataclass(frozen=True, slots=True)
class ReportSettings:
    """Timezone offset and cutoff hour that drive all period math.

    ``ReportSettings()`` is the fallback: UTC with a midnight cutoff.
    """

    timezone_offset_minutes: int = 0
    cutoff_hour: int = 0


@dataclass(frozen=True, slots=True)
class SettingsRow:
    """Raw settings as stored, before any parsing."""

    timezone: Optional[str]
    cutoff_hour: Optional[int]


@dataclass(frozen=True, slots=True)
class PeriodRange:
    start_utc: datetime
    end_utc: datetime

    def __post_init__(self) -> None:
        if not self.start_utc < self.end_utc:
            raise ValueError("period start must be before its end")

    def contains(self, instant: datetime) -> bool:
        return self.start_utc <= instant < self.end_utc


@dataclass(frozen=True, slots=True)
class WasteEntry:
    outlet_code: str
    item_code: str
    item_label: str
    unit: str
    color_tag: str
    quantity: Decimal
    recorded_at_utc: datetime


@dataclass(slots=True)
class AggregateRow:
    outlet_code: str
    item_code: str
    unit: str
    item_label: str
    color_tag: str
    total: Decimal

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.outlet_code, self.item_code, self.unit)


@dataclass(frozen=True, slots=True)
class Recipient:
    email: str
    report_type: PeriodKind
    send_time_minutes: int
    is_active: bool = True
    id: Optional[int] = None


@dataclass(frozen=True, slots=True)
class ReportArtifact:
    filename: str
    content: str


__all__ = [
    "PeriodKind",
    "ReportSettings",
    "SettingsRow",
    "PeriodRange",
    "WasteEntry",
    "AggregateRow",
    "Recipient",
    "ReportArtifact",
]
