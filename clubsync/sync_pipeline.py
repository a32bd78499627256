from __future__ import annotations

import argparse
import logging
from datetime import datetime, timedelta, tzinfo
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import gspread
import requests

from .activities import verified_activity
from .config import Settings
from .config_reader import default_window, read_config_window
from .credentials import ClientFactory, refresh_athlete_credential, refresh_club_credential
from .errors import FatalSyncError, RowStoreError
from .models import Activity, Athlete, AthleteSyncResult, ConfigWindow, RunReport, ScoreSummary
from .publisher import publish_scoreboard
from .reconcile import reconcile
from .row_store import (
    ATHLETE_COLUMNS,
    ATHLETES_TABLE,
    LEADERBOARD_TABLE,
    SCORES_COLUMNS,
    SCORES_TABLE,
    STATS_COLUMNS,
    STATS_TABLE,
    RowStore,
    RowTable,
    SheetRow,
    open_row_store,
)
from .scoring import rank_leaderboard, summarize
from .storage import utc_now, write_json
from .strava_client import StravaClient
from .writer import replace_stats, write_scores, write_sync_metadata


logger = logging.getLogger(__name__)

ATHLETE_ERRORS = (
    requests.RequestException,
    gspread.exceptions.GSpreadException,
    RuntimeError,
    ValueError,
    KeyError,
    TypeError,
)
STORE_ERRORS = (gspread.exceptions.GSpreadException, requests.RequestException)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )


def resolve_timezone(name: str) -> tzinfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone '%s'. Falling back to UTC.", name)
        return ZoneInfo("UTC")


def athlete_from_row(row: SheetRow) -> Athlete:
    return Athlete(
        athlete_id=row.get("athlete_id"),
        name=row.get("name"),
        refresh_token=row.get("refresh_token"),
        row=row,
    )


def sync_verified_athletes(
    settings: Settings,
    store: RowStore,
    athletes_table: RowTable,
    window: ConfigWindow,
    local_tz: tzinfo,
    report: RunReport,
    *,
    client_factory: ClientFactory = StravaClient,
    session: requests.Session | None = None,
) -> tuple[list[Athlete], list[Activity]]:
    synced: list[Athlete] = []
    activities: list[Activity] = []

    logger.info("Fetching verified athlete activities...")
    for row in athletes_table.get_rows():
        athlete = athlete_from_row(row)
        label = athlete.name or athlete.athlete_id or f"row {row.row_number}"
        if not athlete.refresh_token:
            report.athletes.append(
                AthleteSyncResult(athlete.athlete_id, athlete.name, "skipped", reason="missing refresh_token")
            )
            continue
        if not athlete.athlete_id:
            report.athletes.append(
                AthleteSyncResult(athlete.athlete_id, athlete.name, "skipped", reason="missing athlete_id")
            )
            continue

        rotated = False
        try:
            client, rotated = refresh_athlete_credential(
                settings,
                store,
                athlete,
                client_factory,
                session=session,
            )
            raw_activities = client.get_athlete_activities(
                window.start,
                window.end,
                per_page=settings.athlete_per_page,
            )
            athlete_activities = [verified_activity(raw, athlete, local_tz) for raw in raw_activities]
        except FatalSyncError:
            raise
        except ATHLETE_ERRORS as exc:
            logger.error("  - Failed to sync %s: %s", label, exc)
            report.athletes.append(
                AthleteSyncResult(
                    athlete.athlete_id,
                    athlete.name,
                    "failed",
                    token_rotated=rotated,
                    reason=f"{type(exc).__name__}: {exc}",
                )
            )
            continue

        logger.info("  - %s: Found %s activities.", label, len(athlete_activities))
        activities.extend(athlete_activities)
        synced.append(athlete)
        report.athletes.append(
            AthleteSyncResult(
                athlete.athlete_id,
                athlete.name,
                "ok",
                activity_count=len(athlete_activities),
                token_rotated=rotated,
            )
        )
    return synced, activities


def _write_scores_table(settings: Settings, store: RowStore, leaderboard: list[ScoreSummary], report: RunReport) -> None:
    if not settings.write_scores_table:
        return
    table = store.table(SCORES_TABLE)
    if table is None:
        logger.debug("No %s sheet; per-athlete summaries are left to sheet formulas.", SCORES_TABLE)
        return
    try:
        table.require_columns(SCORES_COLUMNS)
        write_scores(table, leaderboard)
    except (FatalSyncError, *STORE_ERRORS) as exc:
        logger.error("Scores update failed: %s", exc)
        report.warnings.append(f"scores: {exc}")


def _write_metadata(store: RowStore, settings: Settings, now_utc: datetime, window: ConfigWindow, report: RunReport) -> None:
    try:
        write_sync_metadata(
            store,
            synced_at=now_utc,
            next_sync_at=now_utc + timedelta(hours=settings.sync_interval_hours),
            window=window,
        )
    except STORE_ERRORS as exc:
        logger.error("Metadata update failed: %s", exc)
        report.warnings.append(f"metadata: {exc}")


def _save_report(settings: Settings, report: RunReport) -> None:
    try:
        write_json(settings.last_run_file, report.to_dict())
    except OSError as exc:
        logger.error("Failed to write run report to %s: %s", settings.last_run_file, exc)


def _log_summary(report: RunReport) -> None:
    logger.info(
        "Sync finished: status=%s athletes_ok=%s athletes_failed=%s club_kept=%s club_skipped=%s stats_rows=%s",
        report.status,
        len(report.synced_athletes),
        len(report.failed_athletes),
        report.club_activities,
        report.club_duplicates_skipped,
        report.stats_rows_written,
    )
    for result in report.failed_athletes:
        logger.warning("Athlete %s (%s) failed: %s", result.name, result.athlete_id, result.reason)


def run_once(
    settings: Settings | None = None,
    *,
    row_store: RowStore | None = None,
    client_factory: ClientFactory = StravaClient,
    now: datetime | None = None,
    scoreboard_file: Path | None = None,
) -> RunReport:
    settings = settings or Settings.from_env()
    now_utc = now or utc_now()
    report = RunReport(started_at=now_utc)
    local_tz = resolve_timezone(settings.timezone)
    session = requests.Session()

    logger.info("Starting club sync.")
    try:
        store = row_store or open_row_store(settings)
        try:
            athletes_table = store.require_table(ATHLETES_TABLE, ATHLETE_COLUMNS)
            store.require_table(STATS_TABLE, STATS_COLUMNS)
            store.require_table(LEADERBOARD_TABLE)
        except STORE_ERRORS as exc:
            raise RowStoreError(f"Failed to read spreadsheet schema: {exc}") from exc

        try:
            defaults = default_window(settings.default_start_date, settings.default_end_date, local_tz)
        except (ValueError, OverflowError) as exc:
            raise FatalSyncError(f"Invalid default sync window: {exc}") from exc
        window = read_config_window(store, defaults, local_tz)
        report.window = window
        logger.info("Sync window %s -> %s (%s).", window.start.isoformat(), window.end.isoformat(), window.source)

        try:
            verified_athletes, verified_activities = sync_verified_athletes(
                settings,
                store,
                athletes_table,
                window,
                local_tz,
                report,
                client_factory=client_factory,
                session=session,
            )
        except STORE_ERRORS as exc:
            raise RowStoreError(f"Failed to read {ATHLETES_TABLE}: {exc}") from exc

        club_client = refresh_club_credential(settings, client_factory, session=session)
        logger.info("Fetching club activities (ID: %s) since %s...", settings.club_id, window.start.isoformat())
        feed = club_client.get_club_activities(settings.club_id, window.start)
        report.club_pages = feed.pages
        report.club_error = feed.error
        if feed.capped:
            report.warnings.append("club feed truncated at page cap")

        merged = reconcile(verified_athletes, verified_activities, feed.activities, window, local_tz)
        report.club_activities = merged.club_kept
        report.club_duplicates_skipped = merged.club_skipped
        logger.info("Total activities to sync: %s", len(merged.activities))

        if merged.activities:
            try:
                report.stats_rows_written = replace_stats(store, merged.activities, window)
            except STORE_ERRORS as exc:
                raise RowStoreError(f"Failed to replace {STATS_TABLE}: {exc}") from exc
        else:
            logger.info("No activities found; keeping the previous %s snapshot.", STATS_TABLE)
            report.warnings.append("no activities; stats left untouched")

        leaderboard = rank_leaderboard(summarize(merged.activities, athletes=verified_athletes))
        report.summaries = len(leaderboard)
        _write_scores_table(settings, store, leaderboard, report)
        _write_metadata(store, settings, now_utc, window, report)
        try:
            publish_scoreboard(scoreboard_file or settings.scoreboard_file, leaderboard, now_utc)
        except OSError as exc:
            logger.error("Failed to publish scoreboard: %s", exc)
            report.warnings.append(f"scoreboard: {exc}")

        report.status = "partial" if report.failed_athletes or report.club_error else "ok"
    except FatalSyncError as exc:
        logger.error("Sync aborted: %s", exc)
        report.status = "failed"
        report.fatal_error = str(exc)
    except Exception as exc:
        report.status = "failed"
        report.fatal_error = f"{type(exc).__name__}: {exc}"
        raise
    finally:
        report.finished_at = utc_now()
        _save_report(settings, report)
        _log_summary(report)
    return report


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Sync Strava club and athlete activities into the leaderboard spreadsheet."
    )
    parser.add_argument("--scoreboard-file", type=Path, help="Override the scoreboard JSON output path.")
    parser.add_argument("--log-level", help="Override LOG_LEVEL for this run.")
    args = parser.parse_args(argv)

    settings = Settings.from_env()
    _configure_logging(args.log_level or settings.log_level)
    try:
        settings.validate()
    except ValueError as exc:
        logger.error("%s", exc)
        return 1
    settings.ensure_state_paths()

    report = run_once(settings, scoreboard_file=args.scoreboard_file)
    return 1 if report.status == "failed" else 0


if __name__ == "__main__":
    raise SystemExit(main())
