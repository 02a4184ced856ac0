"""CSV report artifacts.

Two layouts are produced:

* totals – one row per outlet/item/unit, header
  ``outlet,item_code,item_label,unit,total,color``
* detailed – one row per raw waste entry, header
  ``date,outlet,item_code,item_label,unit,count,color``

Rows are newline-joined without a trailing newline.  Values containing a
comma or a double quote are quoted; plain identifiers are written as-is.

The filename carries the date the report was *generated*, not the start of
the period it covers, so each export run leaves its own audit trail.
"""

from __future__ import annotations

import logging
import pathlib
from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence, Union

import pandas as pd

from .aggregator import aggregate
from .clock import as_utc, resolve_settings, utc_now
from .db import ReportStore
from .models import AggregateRow, PeriodKind, ReportArtifact, WasteEntry
from .periods import resolve_period

logger = logging.getLogger(__name__)

TOTALS_HEADER = ["outlet", "item_code", "item_label", "unit", "total", "color"]
DETAILED_HEADER = [
    "date",
    "outlet",
    "item_code",
    "item_label",
    "unit",
    "count",
    "color",
]


def format_quantity(value: Union[Decimal, int, float], *, floor: bool = False) -> str:
    """Render *value* as a plain decimal string (``10``, ``2.5``)."""
    value = Decimal(str(value))
    if floor and value < 0:
        value = Decimal("0")
    if value == value.to_integral_value():
        return str(int(value))
    return format(value.normalize(), "f")


def report_filename(kind: PeriodKind, generated_at: Optional[datetime] = None) -> str:
    generated_at = generated_at or datetime.now()
    return f"food-wastage-{PeriodKind(kind).value}-report-{generated_at:%Y-%m-%d}.csv"


def _to_csv(rows: List[List[str]], header: Sequence[str]) -> str:
    df = pd.DataFrame(rows, columns=list(header), dtype=object)
    text = df.to_csv(index=False, lineterminator="\n")
    return text[:-1] if text.endswith("\n") else text


def _iso_utc(value: datetime) -> str:
    stamp = as_utc(value).isoformat(timespec="milliseconds")
    return stamp.replace("+00:00", "Z")


def format_totals(
    rows: Iterable[AggregateRow],
    kind: PeriodKind,
    generated_at: Optional[datetime] = None,
) -> ReportArtifact:
    body = [
        [
            r.outlet_code,
            r.item_code,
            r.item_label,
            r.unit,
            format_quantity(r.total, floor=True),
            r.color_tag,
        ]
        for r in rows
    ]
    return ReportArtifact(
        filename=report_filename(kind, generated_at),
        content=_to_csv(body, TOTALS_HEADER),
    )


def format_detailed(
    entries: Iterable[WasteEntry],
    kind: PeriodKind,
    generated_at: Optional[datetime] = None,
) -> ReportArtifact:
    body = [
        [
            _iso_utc(e.recorded_at_utc),
            e.outlet_code,
            e.item_code,
            e.item_label,
            e.unit,
            format_quantity(e.quantity),
            e.color_tag,
        ]
        for e in entries
    ]
    return ReportArtifact(
        filename=report_filename(kind, generated_at),
        content=_to_csv(body, DETAILED_HEADER),
    )


def generate_report(
    store: ReportStore,
    kind: PeriodKind,
    now: Optional[datetime] = None,
    *,
    generated_at: Optional[datetime] = None,
    detailed: bool = False,
) -> ReportArtifact:
    """Build the *kind* report for the period containing *now*.

    Storage errors propagate to the caller.  *generated_at* defaults to *now*
    in the host's local time.
    """
    kind = PeriodKind(kind)
    now = as_utc(now or utc_now())
    generated_at = generated_at or now.astimezone()

    settings = resolve_settings(store, now)
    period = resolve_period(kind, settings, now)
    logger.info(
        "Generating %s report for [%s, %s)",
        kind.value,
        period.start_utc.isoformat(),
        period.end_utc.isoformat(),
    )
    entries = store.entries_between(period.start_utc, period.end_utc)

    if detailed:
        return format_detailed(entries, kind, generated_at)
    return format_totals(aggregate(entries), kind, generated_at)


def save_artifact(
    artifact: ReportArtifact, directory: Union[str, pathlib.Path]
) -> pathlib.Path:
    """Write *artifact* into *directory*, creating it if needed."""
    folder = pathlib.Path(directory)
    folder.mkdir(parents=True, exist_ok=True)
    path = folder / artifact.filename
    path.write_text(artifact.content, encoding="utf-8")
    logger.info("Wrote %s", path)
    return path.resolve()


__all__ = [
    "TOTALS_HEADER",
    "DETAILED_HEADER",
    "format_quantity",
    "report_filename",
    "format_totals",
    "format_detailed",
    "generate_report",
    "save_artifact",
]
