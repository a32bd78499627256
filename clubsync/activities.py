from __future__ import annotations

import re
from datetime import datetime, tzinfo
from typing import Any

from .models import Activity, ActivitySource, Athlete


def _as_float(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return 0.0
    return 0.0


def _as_int(value: Any) -> int:
    return int(round(_as_float(value)))


def parse_local_datetime(raw: Any, local_tz: tzinfo) -> datetime | None:
    """Strava's ``start_date_local`` is wall-clock time dressed up with a ``Z``."""
    if not isinstance(raw, str) or not raw.strip():
        return None
    try:
        parsed = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed.replace(tzinfo=local_tz)


def normalize_name(name: str) -> str:
    return " ".join(str(name or "").split())


def club_display_name(raw: dict[str, Any]) -> str:
    athlete = raw.get("athlete")
    if not isinstance(athlete, dict):
        return ""
    first = str(athlete.get("firstname") or "").strip()
    last = str(athlete.get("lastname") or "").strip()
    return normalize_name(f"{first} {last}")


def synthesize_athlete_id(name: str) -> str:
    return re.sub(r"\s+", "_", normalize_name(name)).lower()


def verified_activity(raw: dict[str, Any], athlete: Athlete, local_tz: tzinfo) -> Activity:
    return Activity(
        athlete_id=athlete.athlete_id,
        name=athlete.name,
        type=str(raw.get("type") or raw.get("sport_type") or "Unknown"),
        distance_meters=_as_float(raw.get("distance")),
        moving_time_seconds=_as_int(raw.get("moving_time")),
        elevation_gain_meters=_as_float(raw.get("total_elevation_gain")),
        occurred_at=parse_local_datetime(raw.get("start_date_local"), local_tz),
        source=ActivitySource.VERIFIED,
    )


def club_activity(raw: dict[str, Any], local_tz: tzinfo) -> Activity:
    name = club_display_name(raw)
    athlete = raw.get("athlete") if isinstance(raw.get("athlete"), dict) else {}
    raw_id = athlete.get("id")
    if raw_id not in (None, ""):
        athlete_id = str(raw_id)
    else:
        athlete_id = synthesize_athlete_id(name) or "unknown"
    return Activity(
        athlete_id=athlete_id,
        name=name,
        type=str(raw.get("type") or raw.get("sport_type") or "Unknown"),
        distance_meters=_as_float(raw.get("distance")),
        moving_time_seconds=_as_int(raw.get("moving_time")),
        elevation_gain_meters=_as_float(raw.get("total_elevation_gain")),
        occurred_at=parse_local_datetime(raw.get("start_date_local"), local_tz),
        source=ActivitySource.CLUB_FEED,
    )
