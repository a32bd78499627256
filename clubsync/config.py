from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


load_dotenv()

DEFAULT_START_DATE = "2026-02-01"
DEFAULT_END_DATE = "2026-12-31"


def _bool_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _int_env(name: str, default: int, minimum: int | None = None, maximum: int | None = None) -> int:
    value = os.getenv(name)
    if value is None:
        parsed = default
    else:
        try:
            parsed = int(value.strip())
        except ValueError:
            parsed = default

    if minimum is not None and parsed < minimum:
        parsed = minimum
    if maximum is not None and parsed > maximum:
        parsed = maximum
    return parsed


def _str_env(*names: str, default: str = "") -> str:
    for name in names:
        value = os.getenv(name)
        if value is not None and value.strip():
            return value.strip()
    return default


def _private_key_env(name: str) -> str:
    # Keys pasted into env files usually carry literal "\n" sequences.
    return os.getenv(name, "").strip().replace("\\n", "\n")


@dataclass(frozen=True)
class Settings:
    strava_client_id: str
    strava_client_secret: str

    club_id: str
    club_client_id: str
    club_client_secret: str
    club_refresh_token: str

    google_service_account_email: str
    google_private_key: str
    google_service_account_file: Path | None
    sheet_id: str

    log_level: str
    timezone: str
    sync_interval_hours: int
    athlete_per_page: int
    default_start_date: str
    default_end_date: str
    write_scores_table: bool

    api_port: int
    registration_redirect_url: str | None

    state_dir: Path
    last_run_file: Path
    club_token_file: Path
    scoreboard_file: Path

    @classmethod
    def from_env(cls) -> "Settings":
        state_dir = Path(os.getenv("STATE_DIR", "state")).resolve()
        last_run_file = state_dir / os.getenv("LAST_RUN_FILE", "last_run.json")
        scoreboard_file = Path(os.getenv("SCOREBOARD_FILE", "scoreboard.json")).resolve()

        strava_client_id = _str_env("STRAVA_CLIENT_ID")
        strava_client_secret = _str_env("STRAVA_CLIENT_SECRET")
        service_account_file = _str_env("GOOGLE_SERVICE_ACCOUNT_FILE")

        return cls(
            strava_client_id=strava_client_id,
            strava_client_secret=strava_client_secret,
            club_id=_str_env("STRAVA_CLUB_ID"),
            club_client_id=_str_env("STRAVA_CLUB_CLIENT_ID", default=strava_client_id),
            club_client_secret=_str_env("STRAVA_CLUB_CLIENT_SECRET", default=strava_client_secret),
            club_refresh_token=_str_env("STRAVA_CLUB_REFRESH_TOKEN"),
            google_service_account_email=_str_env("GOOGLE_SERVICE_ACCOUNT_EMAIL"),
            google_private_key=_private_key_env("GOOGLE_PRIVATE_KEY"),
            google_service_account_file=Path(service_account_file) if service_account_file else None,
            sheet_id=_str_env("SHEET_ID"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            timezone=_str_env("TIMEZONE", "TZ", default="UTC"),
            sync_interval_hours=_int_env("SYNC_INTERVAL_HOURS", 2, minimum=1, maximum=24),
            athlete_per_page=_int_env("ATHLETE_PER_PAGE", 200, minimum=1, maximum=200),
            default_start_date=_str_env("DEFAULT_START_DATE", default=DEFAULT_START_DATE),
            default_end_date=_str_env("DEFAULT_END_DATE", default=DEFAULT_END_DATE),
            write_scores_table=_bool_env("WRITE_SCORES_TABLE", True),
            api_port=_int_env("API_PORT", 8080, minimum=1, maximum=65535),
            registration_redirect_url=_str_env("REGISTRATION_REDIRECT_URL") or None,
            state_dir=state_dir,
            last_run_file=last_run_file,
            club_token_file=state_dir / os.getenv("CLUB_TOKEN_FILE", "club_tokens.json"),
            scoreboard_file=scoreboard_file,
        )

    def validate(self) -> None:
        missing = []
        if not self.strava_client_id:
            missing.append("STRAVA_CLIENT_ID")
        if not self.strava_client_secret:
            missing.append("STRAVA_CLIENT_SECRET")
        if not self.club_id:
            missing.append("STRAVA_CLUB_ID")
        if not self.club_refresh_token:
            missing.append("STRAVA_CLUB_REFRESH_TOKEN")
        if not self.sheet_id:
            missing.append("SHEET_ID")
        if self.google_service_account_file is None:
            if not self.google_service_account_email:
                missing.append("GOOGLE_SERVICE_ACCOUNT_EMAIL")
            if not self.google_private_key:
                missing.append("GOOGLE_PRIVATE_KEY")
        if missing:
            missing_str = ", ".join(missing)
            raise ValueError(f"Missing required environment variables: {missing_str}")

    def ensure_state_paths(self) -> None:
        self.state_dir.mkdir(parents=True, exist_ok=True)
        self.scoreboard_file.parent.mkdir(parents=True, exist_ok=True)
