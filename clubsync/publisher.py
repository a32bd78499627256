from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from .models import ScoreSummary
from .storage import write_json


logger = logging.getLogger(__name__)


def scoreboard_entry(summary: ScoreSummary) -> dict[str, Any]:
    entry: dict[str, Any] = {
        "name": summary.name,
        "points": summary.total_points,
        "distance": f"{summary.total_distance_km:.2f}",
    }
    if summary.last_activity_label:
        entry["last_activity"] = summary.last_activity_label
    return entry


def build_scoreboard(leaderboard: list[ScoreSummary], synced_at: datetime) -> dict[str, Any]:
    return {
        "last_synced": synced_at.isoformat(),
        "data": [scoreboard_entry(summary) for summary in leaderboard],
    }


def publish_scoreboard(path: Path, leaderboard: list[ScoreSummary], synced_at: datetime) -> dict[str, Any]:
    payload = build_scoreboard(leaderboard, synced_at)
    write_json(path, payload, sort_keys=False)
    logger.info("Scoreboard with %s entries written to %s.", len(leaderboard), path)
    return payload
