from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class ActivitySource(str, Enum):
    VERIFIED = "Verified"
    CLUB_FEED = "ClubFeed"


@dataclass
class Athlete:
    athlete_id: str
    name: str
    refresh_token: str
    row: Any = field(default=None, repr=False, compare=False)


@dataclass(frozen=True)
class Activity:
    athlete_id: str
    name: str
    type: str
    distance_meters: float
    moving_time_seconds: int
    elevation_gain_meters: float
    occurred_at: datetime | None
    source: ActivitySource


@dataclass(frozen=True)
class ScoreSummary:
    athlete_id: str
    name: str
    total_points: int
    total_distance_km: float
    last_activity_at: datetime | None
    last_activity_label: str


@dataclass(frozen=True)
class ConfigWindow:
    start: datetime
    end: datetime
    source: str = "default"

    def to_dict(self) -> dict[str, str]:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "source": self.source,
        }


@dataclass
class AthleteSyncResult:
    athlete_id: str
    name: str
    status: str
    activity_count: int = 0
    token_rotated: bool = False
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


@dataclass
class RunReport:
    started_at: datetime
    window: ConfigWindow | None = None
    finished_at: datetime | None = None
    athletes: list[AthleteSyncResult] = field(default_factory=list)
    club_pages: int = 0
    club_activities: int = 0
    club_duplicates_skipped: int = 0
    club_error: str | None = None
    stats_rows_written: int = 0
    summaries: int = 0
    warnings: list[str] = field(default_factory=list)
    status: str = "running"
    fatal_error: str | None = None

    @property
    def failed_athletes(self) -> list[AthleteSyncResult]:
        return [result for result in self.athletes if result.status == "failed"]

    @property
    def synced_athletes(self) -> list[AthleteSyncResult]:
        return [result for result in self.athletes if result.ok]

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "window": self.window.to_dict() if self.window else None,
            "athletes": [asdict(result) for result in self.athletes],
            "athletes_failed": len(self.failed_athletes),
            "athletes_synced": len(self.synced_athletes),
            "club_pages": self.club_pages,
            "club_activities": self.club_activities,
            "club_duplicates_skipped": self.club_duplicates_skipped,
            "club_error": self.club_error,
            "stats_rows_written": self.stats_rows_written,
            "summaries": self.summaries,
            "warnings": list(self.warnings),
            "fatal_error": self.fatal_error,
        }
