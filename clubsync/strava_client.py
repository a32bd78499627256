from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import requests


logger = logging.getLogger(__name__)

BASE_URL = "https://www.strava.com"
API_URL = f"{BASE_URL}/api/v3"
TOKEN_URL = f"{BASE_URL}/oauth/token"
TIMEOUT_SECONDS = 30
CLUB_PAGE_SIZE = 200
MAX_CLUB_PAGES = 10


@dataclass(frozen=True)
class TokenGrant:
    access_token: str
    refresh_token: str
    rotated: bool
    athlete: dict[str, Any] | None = None


@dataclass
class ClubFeed:
    activities: list[dict[str, Any]]
    pages: int
    capped: bool = False
    error: str | None = None


def _epoch_seconds(moment: datetime) -> int:
    return int(moment.timestamp())


def exchange_authorization_code(
    client_id: str,
    client_secret: str,
    code: str,
    *,
    session: requests.Session | None = None,
) -> dict[str, Any]:
    http = session or requests.Session()
    response = http.post(
        TOKEN_URL,
        data={
            "client_id": client_id,
            "client_secret": client_secret,
            "code": code,
            "grant_type": "authorization_code",
        },
        timeout=TIMEOUT_SECONDS,
    )
    response.raise_for_status()
    payload = response.json()
    if not isinstance(payload, dict) or not payload.get("refresh_token"):
        raise RuntimeError("Strava code exchange succeeded without refresh_token.")
    return payload


class StravaClient:
    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        *,
        session: requests.Session | None = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.access_token: str | None = None
        self.session = session or requests.Session()

    def refresh_access_token(self) -> TokenGrant:
        response = self.session.post(
            TOKEN_URL,
            data={
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "refresh_token": self.refresh_token,
                "grant_type": "refresh_token",
            },
            timeout=TIMEOUT_SECONDS,
        )
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict):
            raise RuntimeError("Strava token refresh returned a non-object response.")
        token = payload.get("access_token")
        if not isinstance(token, str) or not token.strip():
            raise RuntimeError("Strava token refresh succeeded without access_token.")
        self.access_token = token.strip()

        previous = self.refresh_token
        next_refresh = payload.get("refresh_token")
        if isinstance(next_refresh, str) and next_refresh.strip():
            self.refresh_token = next_refresh.strip()
        athlete = payload.get("athlete")
        return TokenGrant(
            access_token=self.access_token,
            refresh_token=self.refresh_token,
            rotated=self.refresh_token != previous,
            athlete=athlete if isinstance(athlete, dict) else None,
        )

    def _get(self, path: str, *, params: dict[str, Any] | None = None) -> Any:
        if not self.access_token:
            raise RuntimeError("Strava access token missing; refresh the credential first.")
        response = self.session.get(
            f"{API_URL}{path}",
            headers={"Authorization": f"Bearer {self.access_token}"},
            params=params,
            timeout=TIMEOUT_SECONDS,
        )
        response.raise_for_status()
        return response.json()

    def get_athlete_activities(
        self,
        after: datetime,
        before: datetime,
        per_page: int = 200,
    ) -> list[dict[str, Any]]:
        payload = self._get(
            "/athlete/activities",
            params={
                "after": _epoch_seconds(after),
                "before": _epoch_seconds(before),
                "per_page": per_page,
            },
        )
        if not isinstance(payload, list):
            raise RuntimeError("Strava athlete activities response was not a list.")
        return [item for item in payload if isinstance(item, dict)]

    def get_club_activities(
        self,
        club_id: str,
        after: datetime,
        per_page: int = CLUB_PAGE_SIZE,
    ) -> ClubFeed:
        per_page = max(1, min(int(per_page), CLUB_PAGE_SIZE))
        feed = ClubFeed(activities=[], pages=0)
        page = 1
        while page <= MAX_CLUB_PAGES:
            try:
                page_items = self._get(
                    f"/clubs/{club_id}/activities",
                    params={
                        "page": page,
                        "per_page": per_page,
                        "after": _epoch_seconds(after),
                    },
                )
            except requests.RequestException as exc:
                logger.error("Error fetching club activities page %s: %s", page, exc)
                feed.error = f"page {page}: {exc}"
                break
            if not isinstance(page_items, list) or not page_items:
                break
            feed.pages = page
            feed.activities.extend(item for item in page_items if isinstance(item, dict))
            logger.info("Club page %s: fetched %s activities.", page, len(page_items))
            if len(page_items) < per_page:
                break
            page += 1
        else:
            feed.capped = True
            logger.warning(
                "Club activities pagination hit cap (%s pages, per_page=%s). Results may be truncated.",
                MAX_CLUB_PAGES,
                per_page,
            )
        return feed
