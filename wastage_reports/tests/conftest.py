from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

import pytest

from wastage_reports.models import PeriodKind, Recipient, SettingsRow, WasteEntry


def make_entry(
    item_code: str = "VEGETABLES",
    quantity=1,
    recorded_at: Optional[datetime] = None,
    *,
    outlet_code: str = "OUTLET001",
    item_label: Optional[str] = None,
    unit: str = "kg",
    color_tag: str = "#228B22",
) -> WasteEntry:
    labels = {"VEGETABLES": "Fresh Vegetables", "FRIES": "French Fries"}
    return WasteEntry(
        outlet_code=outlet_code,
        item_code=item_code,
        item_label=item_label or labels.get(item_code, item_code.title()),
        unit=unit,
        color_tag=color_tag,
        quantity=Decimal(str(quantity)),
        recorded_at_utc=recorded_at
        or datetime(2024, 3, 5, 9, 0, tzinfo=timezone.utc),
    )


class FakeStore:
    """In-memory ReportStore."""

    def __init__(
        self,
        entries: Optional[List[WasteEntry]] = None,
        recipients: Optional[List[Recipient]] = None,
        settings: Optional[SettingsRow] = None,
    ) -> None:
        self.entries = list(entries or [])
        self.recipients = list(recipients or [])
        self.settings = settings
        self.queries: List[tuple] = []
        self.fail_entries = False

    def get_report_settings(self) -> Optional[SettingsRow]:
        return self.settings

    def list_active_recipients(self) -> List[Recipient]:
        return [r for r in self.recipients if r.is_active]

    def entries_between(self, start: datetime, end: datetime) -> List[WasteEntry]:
        self.queries.append((start, end))
        if self.fail_entries:
            raise RuntimeError("database is locked")
        return sorted(
            (e for e in self.entries if start <= e.recorded_at_utc < end),
            key=lambda e: e.recorded_at_utc,
        )


@pytest.fixture
def scenario_entries() -> List[WasteEntry]:
    return [
        make_entry("VEGETABLES", 10, color_tag="#228B22"),
        make_entry(
            "FRIES",
            4,
            datetime(2024, 3, 5, 10, 0, tzinfo=timezone.utc),
            color_tag="#FFD700",
        ),
    ]


@pytest.fixture
def fake_store(scenario_entries) -> FakeStore:
    return FakeStore(entries=scenario_entries)


def recipient(
    email: str = "manager@test.com",
    report_type: PeriodKind = PeriodKind.DAILY,
    send_time_minutes: int = 480,
    **kwargs,
) -> Recipient:
    return Recipient(email, report_type, send_time_minutes, **kwargs)
