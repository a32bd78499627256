from __future__ import annotations

import logging
from typing import Callable

import requests

from .config import Settings
from .errors import ClubAuthError
from .models import Athlete
from .row_store import RowStore
from .storage import read_json, write_json
from .strava_client import StravaClient
from .writer import persist_refresh_token


logger = logging.getLogger(__name__)

ClientFactory = Callable[..., StravaClient]


def refresh_athlete_credential(
    settings: Settings,
    store: RowStore,
    athlete: Athlete,
    client_factory: ClientFactory = StravaClient,
    *,
    session: requests.Session | None = None,
) -> tuple[StravaClient, bool]:
    """Refresh one athlete's credential and persist a rotated refresh token.

    Strava refresh tokens rotate and the previous one stops working, so the
    new value is written back to the Athletes row before the access token is
    used. Errors propagate; the caller decides whether they are fatal.
    """
    client = client_factory(
        settings.strava_client_id,
        settings.strava_client_secret,
        athlete.refresh_token,
        session=session,
    )
    grant = client.refresh_access_token()
    if grant.rotated:
        persist_refresh_token(store, athlete, grant.refresh_token)
        logger.info("Rotated refresh token saved for %s.", athlete.name)
    return client, grant.rotated


def _cached_club_refresh_token(settings: Settings) -> str | None:
    cached = read_json(settings.club_token_file)
    if not cached:
        return None
    token = cached.get("refresh_token")
    if isinstance(token, str) and token.strip():
        return token.strip()
    return None


def refresh_club_credential(
    settings: Settings,
    client_factory: ClientFactory = StravaClient,
    *,
    session: requests.Session | None = None,
) -> StravaClient:
    # The environment cannot be written back, so a rotated club token lives in the state dir.
    refresh_token = _cached_club_refresh_token(settings) or settings.club_refresh_token
    client = client_factory(
        settings.club_client_id,
        settings.club_client_secret,
        refresh_token,
        session=session,
    )
    try:
        grant = client.refresh_access_token()
    except (requests.RequestException, RuntimeError, ValueError) as exc:
        raise ClubAuthError(f"Failed to authenticate with Strava club: {exc}") from exc
    if grant.rotated:
        write_json(settings.club_token_file, {"refresh_token": grant.refresh_token})
        logger.info("Rotated club refresh token cached in %s.", settings.club_token_file)
    return client
