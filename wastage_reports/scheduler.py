"""scheduler.py – report dispatch with APScheduler.

• every ``TICK_SECONDS`` (a divisor of 60, aligned to the minute) run one tick
• a tick matches each active recipient's send time against the local minute
  and, on a match, generates the report, stores it and mails it

A recipient is served at most once per UTC minute however many ticks fall in
it.  With ``TICK_SECONDS=60`` that holds by construction, but a tick delayed
past the target minute then misses the send until the next cycle; shorter
ticks trade that risk for the de-duplication below.
"""

from __future__ import annotations

import logging
import pathlib
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple, Union

from apscheduler.schedulers.blocking import BlockingScheduler

from .clock import as_utc, minute_of_day, resolve_settings, utc_now
from .config import get_settings
from .db import ReportStore, SqliteStore, migrate
from .mailer import send_report_email
from .models import PeriodKind, Recipient, ReportArtifact
from .report import generate_report, save_artifact

logger = logging.getLogger(__name__)

Sender = Callable[[str, PeriodKind, ReportArtifact], str]
RecipientKey = Tuple[Optional[int], str, str, int]


@dataclass(slots=True)
class DispatchResult:
    """Outcome of serving one recipient in a tick."""

    email: str
    report_type: PeriodKind
    filename: Optional[str] = None
    path: Optional[pathlib.Path] = None
    message_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def delivered(self) -> bool:
        return self.message_id is not None


def _recipient_key(recipient: Recipient) -> RecipientKey:
    return (
        recipient.id,
        recipient.email,
        recipient.report_type.value,
        recipient.send_time_minutes,
    )


class ReportDispatcher:
    """Runs scheduler ticks against a :class:`ReportStore`."""

    def __init__(
        self,
        store: ReportStore,
        reports_dir: Union[str, pathlib.Path],
        sender: Sender = send_report_email,
    ) -> None:
        self.store = store
        self.reports_dir = pathlib.Path(reports_dir)
        self.sender = sender
        self._served: Dict[RecipientKey, datetime] = {}

    def tick(self, now: Optional[datetime] = None) -> List[DispatchResult]:
        now = as_utc(now or utc_now())
        minute = now.replace(second=0, microsecond=0)
        settings = resolve_settings(self.store, now)
        local_minutes = minute_of_day(settings, now)
        logger.debug(
            "Tick at %s (local minute %d, offset %d)",
            now.isoformat(),
            local_minutes,
            settings.timezone_offset_minutes,
        )

        try:
            recipients = self.store.list_active_recipients()
        except Exception:
            logger.exception("Cannot list report recipients")
            return []

        # Forget minutes that have passed; only the current one matters.
        self._served = {k: m for k, m in self._served.items() if m == minute}

        results: List[DispatchResult] = []
        for recipient in recipients:
            if not recipient.is_active:
                continue
            if recipient.send_time_minutes != local_minutes:
                continue
            key = _recipient_key(recipient)
            if key in self._served:
                logger.debug("Already served %s this minute", recipient.email)
                continue
            self._served[key] = minute
            results.append(self._serve(recipient, now))
        return results

    def _serve(self, recipient: Recipient, now: datetime) -> DispatchResult:
        result = DispatchResult(recipient.email, recipient.report_type)
        logger.info(
            "Dispatching %s report to %s",
            recipient.report_type.value,
            recipient.email,
        )
        try:
            artifact = generate_report(self.store, recipient.report_type, now)
            result.filename = artifact.filename
            result.path = save_artifact(artifact, self.reports_dir)
        except Exception as exc:
            logger.exception(
                "Report generation failed for %s", recipient.email
            )
            result.error = str(exc)
            return result
        logger.info("Generated %s for %s", artifact.filename, recipient.email)

        try:
            result.message_id = self.sender(
                recipient.email, recipient.report_type, artifact
            )
        except Exception as exc:
            logger.exception("Email failed for %s", recipient.email)
            result.error = str(exc)
        else:
            logger.info("Sent %s to %s", artifact.filename, recipient.email)
        return result


def tick_trigger_seconds(tick_seconds: int) -> str:
    """Cron ``second`` field firing every *tick_seconds* from ``:00``."""
    if tick_seconds <= 0 or 60 % tick_seconds:
        raise ValueError("tick interval must be a positive divisor of 60")
    return "0" if tick_seconds == 60 else f"*/{tick_seconds}"


def build_scheduler(
    dispatcher: ReportDispatcher, tick_seconds: int = 10
) -> BlockingScheduler:
    """Return a scheduler that ticks *dispatcher* without overlapping runs."""
    sched = BlockingScheduler(timezone="UTC")
    sched.add_job(
        dispatcher.tick,
        "cron",
        second=tick_trigger_seconds(tick_seconds),
        id="report_tick",
        max_instances=1,
        coalesce=True,
        misfire_grace_time=tick_seconds,
    )
    return sched


def run_worker(once: bool = False) -> None:
    """Start the report worker using the application settings."""
    cfg = get_settings()
    migrate(db_path=cfg.db_path)
    dispatcher = ReportDispatcher(SqliteStore(cfg.db_path), cfg.reports_dir)

    logger.info("Report worker started%s", " (once)" if once else "")
    dispatcher.tick()
    if once:
        logger.info("Report worker finished (once)")
        return
    build_scheduler(dispatcher, cfg.tick_seconds).start()


__all__ = [
    "DispatchResult",
    "ReportDispatcher",
    "build_scheduler",
    "tick_trigger_seconds",
    "run_worker",
]
