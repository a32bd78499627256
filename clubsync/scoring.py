from __future__ import annotations

import math
from datetime import datetime
from typing import Iterable, Mapping

from .models import Activity, Athlete, ScoreSummary


# Points per kilometre. Points are floored per activity, then summed.
POINT_WEIGHTS: dict[str, float] = {
    "Run": 1.0,
    "Ride": 0.3,
}
DEFAULT_POINT_WEIGHT = 0.5


def point_weight(activity_type: str, weights: Mapping[str, float] | None = None) -> float:
    table = POINT_WEIGHTS if weights is None else weights
    return float(table.get(activity_type, DEFAULT_POINT_WEIGHT))


def activity_points(activity: Activity, weights: Mapping[str, float] | None = None) -> int:
    km = max(0.0, activity.distance_meters) / 1000.0
    # Round before flooring so 0.3 * 10 km lands on 3, not 2.9999999999999996.
    return int(math.floor(round(km * point_weight(activity.type, weights), 9)))


def activity_label(moment: datetime | None) -> str:
    if moment is None:
        return ""
    return f"{moment.day} {moment.strftime('%b')}, {moment.strftime('%H:%M')}"


def summarize(
    activities: Iterable[Activity],
    weights: Mapping[str, float] | None = None,
    *,
    athletes: Iterable[Athlete] = (),
) -> list[ScoreSummary]:
    # Synced athletes appear even with nothing in the window.
    groups: dict[str, dict] = {
        athlete.athlete_id: {"name": athlete.name, "points": 0, "meters": 0.0, "last": None}
        for athlete in athletes
    }
    for activity in activities:
        group = groups.setdefault(
            activity.athlete_id,
            {"name": activity.name, "points": 0, "meters": 0.0, "last": None},
        )
        group["points"] += activity_points(activity, weights)
        group["meters"] += max(0.0, activity.distance_meters)
        if activity.occurred_at is not None and (
            group["last"] is None or activity.occurred_at > group["last"]
        ):
            group["last"] = activity.occurred_at

    return [
        ScoreSummary(
            athlete_id=athlete_id,
            name=group["name"],
            total_points=group["points"],
            total_distance_km=round(group["meters"] / 1000.0, 2),
            last_activity_at=group["last"],
            last_activity_label=activity_label(group["last"]),
        )
        for athlete_id, group in groups.items()
    ]


def rank_leaderboard(summaries: Iterable[ScoreSummary]) -> list[ScoreSummary]:
    return sorted(summaries, key=lambda summary: summary.total_points, reverse=True)
