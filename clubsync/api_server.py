from __future__ import annotations

import logging
from datetime import datetime, timezone
from urllib.parse import urlencode

import gspread
import requests
from flask import Flask, redirect, request

from .config import Settings
from .row_store import ATHLETE_COLUMNS, ATHLETES_TABLE, open_row_store
from .storage import read_json
from .strava_client import exchange_authorization_code
from .sync_pipeline import resolve_timezone
from .writer import upsert_row


logger = logging.getLogger(__name__)

app = Flask(__name__)
settings = Settings.from_env()


def _upstream_message(exc: Exception) -> str:
    if isinstance(exc, requests.HTTPError) and exc.response is not None:
        try:
            payload = exc.response.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict) and payload.get("message"):
            return f"{exc} ({payload['message']})"
    return str(exc)


def _register_athlete(code: str) -> tuple[str, bool]:
    payload = exchange_authorization_code(settings.strava_client_id, settings.strava_client_secret, code)
    athlete = payload.get("athlete") if isinstance(payload.get("athlete"), dict) else {}
    athlete_id = str(athlete.get("id") or "").strip()
    if not athlete_id:
        raise RuntimeError("Strava code exchange returned no athlete id.")
    name = " ".join(
        part for part in (str(athlete.get("firstname") or "").strip(), str(athlete.get("lastname") or "").strip()) if part
    )
    registered_at = datetime.now(resolve_timezone(settings.timezone)).strftime("%d/%m/%Y, %H:%M:%S")

    store = open_row_store(settings)
    table = store.require_table(ATHLETES_TABLE, ATHLETE_COLUMNS)
    existing = upsert_row(
        table,
        "athlete_id",
        athlete_id,
        {"refresh_token": str(payload["refresh_token"]).strip(), "last_registered": registered_at},
        insert_fields={"name": name},
    )
    if existing is None:
        logger.info("Adding new athlete: %s", name or athlete_id)
    else:
        logger.info("Updating token for existing athlete: %s", name or athlete_id)
    return athlete_id, existing is not None


@app.get("/health")
def health() -> tuple[dict, int]:
    last_run = read_json(settings.last_run_file) or {}
    return (
        {
            "status": "ok",
            "time_utc": datetime.now(timezone.utc).isoformat(),
            "last_run_status": last_run.get("status"),
            "last_run_finished_at": last_run.get("finished_at"),
            "last_run_athletes_failed": last_run.get("athletes_failed"),
        },
        200,
    )


@app.get("/scoreboard.json")
def scoreboard() -> tuple[dict, int]:
    payload = read_json(settings.scoreboard_file)
    if payload is None:
        return {"status": "error", "error": "Scoreboard has not been published yet."}, 404
    return payload, 200


@app.get("/strava/callback")
def strava_callback():
    error = str(request.args.get("error") or "").strip()
    if error:
        logger.error("Strava authorization denied: %s", error)
        return f"Strava authorization failed: {error}", 400

    code = str(request.args.get("code") or "").strip()
    if not code:
        logger.error("No code found in request query.")
        return "No code provided by Strava.", 400

    try:
        athlete_id, updated = _register_athlete(code)
    except (requests.RequestException, gspread.exceptions.GSpreadException, RuntimeError, ValueError) as exc:
        message = _upstream_message(exc)
        logger.error("Registration error: %s", message)
        return f"Authentication failed: {message}", 500

    if settings.registration_redirect_url:
        return redirect(f"{settings.registration_redirect_url}?{urlencode({'status': 'success'})}")
    return {"status": "ok", "athlete_id": athlete_id, "updated": updated}, 200


def main() -> None:
    app.run(host="0.0.0.0", port=settings.api_port)


if __name__ == "__main__":
    main()
