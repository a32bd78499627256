from __future__ import annotations

import logging
import time

from .config import Settings
from .sync_pipeline import _configure_logging, run_once


logger = logging.getLogger(__name__)


def run_cycle(settings: Settings) -> str:
    try:
        report = run_once(settings)
    except Exception:
        logger.exception("Worker cycle failed.")
        return "error"
    logger.info("Cycle result: %s", report.status)
    return report.status


def main() -> int:
    settings = Settings.from_env()
    _configure_logging(settings.log_level)
    try:
        settings.validate()
    except ValueError as exc:
        logger.error("%s", exc)
        return 1
    settings.ensure_state_paths()

    interval = settings.sync_interval_hours * 3600
    logger.info("Worker started with sync interval: %sh", settings.sync_interval_hours)
    while True:
        run_cycle(settings)
        time.sleep(interval)


if __name__ == "__main__":
    raise SystemExit(main())
