"""On-demand exports for the web layer and the CLI."""

from __future__ import annotations

import logging
import pathlib
from datetime import datetime
from typing import Dict, Optional, Union

from .db import ReportStore
from .models import PeriodKind, ReportArtifact
from .report import generate_report, save_artifact

logger = logging.getLogger(__name__)


class InvalidPeriodError(ValueError):
    """Raised for a period other than daily, weekly or monthly."""


def parse_period(value: Optional[str]) -> PeriodKind:
    """Return the :class:`PeriodKind` named by *value*, case-insensitively."""
    normalized = (value or "").strip().lower()
    try:
        return PeriodKind(normalized)
    except ValueError:
        raise InvalidPeriodError(f"Invalid period: {value!r}") from None


def export_report(
    store: ReportStore,
    period: Union[str, PeriodKind],
    *,
    now: Optional[datetime] = None,
    detailed: bool = False,
) -> ReportArtifact:
    """Generate a report to be returned as a download."""
    kind = period if isinstance(period, PeriodKind) else parse_period(period)
    return generate_report(store, kind, now, detailed=detailed)


def download_headers(artifact: ReportArtifact) -> Dict[str, str]:
    return {
        "Content-Type": "text/csv",
        "Content-Disposition": f"attachment; filename={artifact.filename}",
    }


def save_report(
    store: ReportStore,
    period: Union[str, PeriodKind],
    folder: Union[str, pathlib.Path] = "csv",
    *,
    now: Optional[datetime] = None,
    detailed: bool = False,
) -> pathlib.Path:
    """Generate a report, write it into *folder* and return its path."""
    artifact = export_report(store, period, now=now, detailed=detailed)
    path = save_artifact(artifact, folder)
    logger.info("Saved on-demand report to %s", path)
    return path


__all__ = [
    "InvalidPeriodError",
    "parse_period",
    "export_report",
    "download_headers",
    "save_report",
]
