"""Merge the verified per-athlete feed with the club feed.

The club feed only exposes a truncated "First L." display name, so the join
is by name rather than by athlete id. Two members who share a truncated
display name will suppress each other's club records; this is a known
limitation of the upstream data, not something this module tries to fix.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from typing import Any, Iterable

from .activities import club_activity, club_display_name, normalize_name
from .models import Activity, Athlete, ConfigWindow


logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    activities: list[Activity]
    club_kept: int = 0
    club_skipped: int = 0
    skipped_names: set[str] = field(default_factory=set)


def to_club_name(full_name: str) -> str:
    parts = normalize_name(full_name).split(" ")
    if not parts or not parts[0]:
        return ""
    if len(parts) == 1:
        return parts[0]
    return f"{parts[0]} {parts[-1][0]}."


def _identity_key(name: str) -> str:
    return normalize_name(name).casefold()


def verified_identities(athletes: Iterable[Athlete]) -> set[str]:
    identities: set[str] = set()
    for athlete in athletes:
        if not normalize_name(athlete.name):
            continue
        identities.add(_identity_key(athlete.name))
        identities.add(_identity_key(to_club_name(athlete.name)))
    return identities


def sort_activities(activities: list[Activity], window: ConfigWindow) -> list[Activity]:
    def _sort_key(activity: Activity) -> datetime:
        return activity.occurred_at or window.start

    return sorted(activities, key=_sort_key, reverse=True)


def reconcile(
    verified_athletes: Iterable[Athlete],
    verified_activities: list[Activity],
    club_raw: list[dict[str, Any]],
    window: ConfigWindow,
    local_tz: tzinfo,
) -> ReconcileResult:
    identities = verified_identities(verified_athletes)
    combined = list(verified_activities)
    result = ReconcileResult(activities=[])

    for raw in club_raw:
        display_name = club_display_name(raw)
        if display_name and _identity_key(display_name) in identities:
            result.club_skipped += 1
            result.skipped_names.add(display_name)
            continue
        combined.append(club_activity(raw, local_tz))
        result.club_kept += 1

    result.activities = sort_activities(combined, window)
    logger.info(
        "Reconciled %s verified + %s club activities (%s club duplicates skipped).",
        len(verified_activities),
        result.club_kept,
        result.club_skipped,
    )
    return result
