from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from .models import Activity, Athlete, ConfigWindow, ScoreSummary
from .row_store import (
    ATHLETES_TABLE,
    LEADERBOARD_TABLE,
    STATS_TABLE,
    RowStore,
    RowTable,
    SheetRow,
)


logger = logging.getLogger(__name__)

METADATA_RANGE = "E2:H2"


def _local_iso(moment: datetime) -> str:
    return moment.replace(tzinfo=None).isoformat(timespec="seconds")


def stats_row(activity: Activity, window: ConfigWindow) -> dict[str, Any]:
    occurred_at = activity.occurred_at or window.start
    return {
        "athlete_id": activity.athlete_id,
        "name": activity.name,
        "type": activity.type,
        "distance_meters": activity.distance_meters,
        "moving_time": activity.moving_time_seconds,
        "elevation_gain": activity.elevation_gain_meters,
        "date": _local_iso(occurred_at),
        "source": activity.source.value,
    }


def replace_stats(store: RowStore, activities: list[Activity], window: ConfigWindow) -> int:
    table = store.require_table(STATS_TABLE)
    table.clear_rows()
    written = table.add_rows([stats_row(activity, window) for activity in activities])
    logger.info("Stats table replaced with %s rows.", written)
    return written


def upsert_row(
    table: RowTable,
    key_field: str,
    key: str,
    fields: dict[str, Any],
    *,
    insert_fields: dict[str, Any] | None = None,
) -> SheetRow | None:
    """Update the row whose ``key_field`` equals ``key``, or append a new one.

    ``insert_fields`` are only written when a new row is appended. Returns the
    updated row, or ``None`` when a row was appended.
    """
    existing = table.find_row(key_field, key)
    if existing is None:
        table.add_row({**(insert_fields or {}), **fields, key_field: key})
        return None
    for name, value in fields.items():
        if table.column_index(name) is not None:
            existing.set(name, value)
    existing.save()
    return existing


def upsert_rows(table: RowTable, key_field: str, records: list[dict[str, Any]]) -> tuple[int, int]:
    existing = {row.get(key_field): row for row in table.get_rows() if row.get(key_field)}
    appended: list[dict[str, Any]] = []
    updated = 0
    for record in records:
        key = str(record.get(key_field) or "").strip()
        row = existing.get(key)
        if row is None:
            appended.append(record)
            continue
        for name, value in record.items():
            if table.column_index(name) is not None:
                row.set(name, value)
        row.save()
        updated += 1
    table.add_rows(appended)
    return updated, len(appended)


def persist_refresh_token(store: RowStore, athlete: Athlete, refresh_token: str) -> None:
    if athlete.row is not None:
        athlete.row.set("refresh_token", refresh_token)
        athlete.row.save()
    else:
        table = store.require_table(ATHLETES_TABLE)
        upsert_row(
            table,
            "athlete_id",
            athlete.athlete_id,
            {"name": athlete.name, "refresh_token": refresh_token},
        )
    athlete.refresh_token = refresh_token


def summary_row(summary: ScoreSummary) -> dict[str, Any]:
    return {
        "athlete_id": summary.athlete_id,
        "name": summary.name,
        "total_points": summary.total_points,
        "total_distance": summary.total_distance_km,
        "last_activity_at": _local_iso(summary.last_activity_at) if summary.last_activity_at else "",
        "last_activity": summary.last_activity_label,
    }


def write_scores(table: RowTable, summaries: list[ScoreSummary]) -> tuple[int, int]:
    """Upsert one row per summary and zero out rows for athletes absent from this run."""
    records = [summary_row(summary) for summary in summaries]
    current = {summary.athlete_id for summary in summaries}
    for row in table.get_rows():
        athlete_id = row.get("athlete_id")
        if athlete_id and athlete_id not in current:
            current.add(athlete_id)
            records.append(summary_row(ScoreSummary(athlete_id, row.get("name"), 0, 0.0, None, "")))
    updated, appended = upsert_rows(table, "athlete_id", records)
    logger.info("Scores table: %s rows updated, %s appended.", updated, appended)
    return updated, appended


def write_sync_metadata(
    store: RowStore,
    *,
    synced_at: datetime,
    next_sync_at: datetime,
    window: ConfigWindow,
) -> None:
    table = store.require_table(LEADERBOARD_TABLE)
    table.update_cells(
        METADATA_RANGE,
        [[
            synced_at.isoformat(),
            next_sync_at.isoformat(),
            window.start.isoformat(),
            window.end.isoformat(),
        ]],
    )
    logger.info("Leaderboard metadata updated.")
