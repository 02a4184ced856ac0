from __future__ import annotations

import logging
from typing import Optional

import click

from .config import get_settings
from .db import SqliteStore, migrate
from .on_demand import InvalidPeriodError, export_report, parse_period, save_report
from .scheduler import run_worker

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.insert(0, logging.FileHandler(log_file))
    logging.basicConfig(level=level, handlers=handlers, format=LOG_FORMAT)


@click.group()
def cli() -> None:
    """Food wastage reporting."""
    cfg = get_settings()
    configure_logging(cfg.log_level, cfg.log_file or None)


@cli.command("init-db")
def init_db_cmd() -> None:
    """Create or migrate the report database."""
    cfg = get_settings()
    migrate(db_path=cfg.db_path)
    click.echo(cfg.db_path)


@cli.command()
@click.option("--once", is_flag=True, help="Run a single tick and exit")
def worker(once: bool) -> None:
    """Send scheduled reports to their recipients."""
    run_worker(once=once)


@cli.command()
@click.argument("period", default="daily")
@click.option("--folder", help="Output folder (default: EXPORT_DIR)")
@click.option("--detailed", is_flag=True, help="One row per waste entry")
@click.option("--stdout", "to_stdout", is_flag=True, help="Print the CSV instead")
def export(
    period: str, folder: Optional[str], detailed: bool, to_stdout: bool
) -> None:
    """Export the current PERIOD (daily, weekly or monthly) report."""
    try:
        kind = parse_period(period)
    except InvalidPeriodError as exc:
        raise click.BadParameter(str(exc), param_hint="PERIOD") from exc

    cfg = get_settings()
    migrate(db_path=cfg.db_path)
    store = SqliteStore(cfg.db_path)
    if to_stdout:
        click.echo(export_report(store, kind, detailed=detailed).content)
        return
    path = save_report(store, kind, folder or cfg.export_dir, detailed=detailed)
    click.echo(str(path))


if __name__ == "__main__":
    cli()
