from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable, List

import pandas as pd

from .models import AggregateRow, WasteEntry

logger = logging.getLogger(__name__)

KEY_COLUMNS = ["outlet_code", "item_code", "unit"]
ZERO = Decimal("0")


def entries_frame(entries: Iterable[WasteEntry]) -> pd.DataFrame:
    """Return *entries* as a DataFrame, one row per entry, input order kept."""
    records = [
        {
            "outlet_code": e.outlet_code,
            "item_code": e.item_code,
            "item_label": e.item_label,
            "unit": e.unit,
            "color_tag": e.color_tag,
            "quantity": Decimal(str(e.quantity)),
            "recorded_at_utc": e.recorded_at_utc,
        }
        for e in entries
    ]
    columns = KEY_COLUMNS + ["item_label", "color_tag", "quantity", "recorded_at_utc"]
    return pd.DataFrame.from_records(records, columns=columns)


def _decimal_sum(values: pd.Series) -> Decimal:
    return sum(values, ZERO)


def aggregate(entries: Iterable[WasteEntry]) -> List[AggregateRow]:
    """Sum quantities per ``(outlet, item, unit)``.

    Parameters
    ----------
    entries:
        Waste entries already restricted to the reporting period, ordered by
        recording time.

    Rows come out in the order their key was first seen.  Label and colour
    are taken from the first entry of each key and totals are floored at
    zero, so a net decrement is reported as ``0``.
    """
    df = entries_frame(entries)
    if df.empty:
        return []

    grouped = df.groupby(KEY_COLUMNS, sort=False, as_index=False).agg(
        item_label=("item_label", "first"),
        color_tag=("color_tag", "first"),
        total=("quantity", _decimal_sum),
    )
    logger.info("Aggregated %d entries into %d rows", len(df), len(grouped))

    return [
        AggregateRow(
            outlet_code=row.outlet_code,
            item_code=row.item_code,
            unit=row.unit,
            item_label=row.item_label,
            color_tag=row.color_tag,
            total=max(ZERO, Decimal(row.total)),
        )
        for row in grouped.itertuples(index=False)
    ]


__all__ = ["aggregate", "entries_frame"]
