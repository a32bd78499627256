import os
import tempfile
import unittest
from pathlib import Path

import requests
from fakes import build_spreadsheet

import clubsync.api_server as api_server
from clubsync.row_store import RowStore
from clubsync.storage import write_json


def _token_payload(athlete_id: int = 42, refresh_token: str = "fresh-token") -> dict:
    return {
        "access_token": "acc",
        "refresh_token": refresh_token,
        "athlete": {"id": athlete_id, "firstname": "Jane", "lastname": "Doe"},
    }


class TestApiServer(unittest.TestCase):
    def setUp(self) -> None:
        self.client = api_server.app.test_client()
        self._original_exchange = api_server.exchange_authorization_code
        self._original_open_row_store = api_server.open_row_store
        self._original_settings = api_server.settings
        self._original_env = dict(os.environ)
        self._tmp = tempfile.TemporaryDirectory()
        self.spreadsheet = build_spreadsheet([["7", "Kim Lee", "old-kim", ""]])
        api_server.open_row_store = lambda settings: RowStore(self.spreadsheet)

    def tearDown(self) -> None:
        api_server.exchange_authorization_code = self._original_exchange
        api_server.open_row_store = self._original_open_row_store
        api_server.settings = self._original_settings
        os.environ.clear()
        os.environ.update(self._original_env)
        self._tmp.cleanup()

    def _set_temp_state_dir(self, **extra_env: str) -> None:
        os.environ["STATE_DIR"] = self._tmp.name
        os.environ["SCOREBOARD_FILE"] = str(Path(self._tmp.name) / "scoreboard.json")
        os.environ.update(extra_env)
        api_server.settings = api_server.Settings.from_env()
        api_server.settings.ensure_state_paths()

    def test_callback_without_code(self) -> None:
        response = self.client.get("/strava/callback")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_data(as_text=True), "No code provided by Strava.")

    def test_callback_with_denied_authorization(self) -> None:
        response = self.client.get("/strava/callback?error=access_denied")
        self.assertEqual(response.status_code, 400)
        self.assertIn("access_denied", response.get_data(as_text=True))

    def test_callback_appends_new_athlete(self) -> None:
        self._set_temp_state_dir()
        calls = []

        def fake_exchange(client_id, client_secret, code):
            calls.append(code)
            return _token_payload()

        api_server.exchange_authorization_code = fake_exchange
        response = self.client.get("/strava/callback?code=abc")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json(), {"status": "ok", "athlete_id": "42", "updated": False})
        self.assertEqual(calls, ["abc"])

        rows = self.spreadsheet.sheet("Athletes").data_rows()
        self.assertEqual(len(rows), 2)
        self.assertEqual(rows[1][:3], ["42", "Jane Doe", "fresh-token"])
        self.assertTrue(rows[1][3])

    def test_callback_updates_existing_athlete_in_place(self) -> None:
        self._set_temp_state_dir()
        api_server.exchange_authorization_code = lambda *args: {
            "refresh_token": "new-kim",
            "athlete": {"id": 7, "firstname": "Kimberly", "lastname": "Lee"},
        }
        response = self.client.get("/strava/callback?code=abc")
        self.assertEqual(response.get_json()["updated"], True)

        rows = self.spreadsheet.sheet("Athletes").data_rows()
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0][1], "Kim Lee")
        self.assertEqual(rows[0][2], "new-kim")

    def test_callback_redirects_when_configured(self) -> None:
        self._set_temp_state_dir(REGISTRATION_REDIRECT_URL="https://club.example.com/joined")
        api_server.exchange_authorization_code = lambda *args: _token_payload()
        response = self.client.get("/strava/callback?code=abc")
        self.assertEqual(response.status_code, 302)
        self.assertEqual(response.headers["Location"], "https://club.example.com/joined?status=success")

    def test_callback_failure_echoes_upstream_message(self) -> None:
        self._set_temp_state_dir()
        upstream = requests.Response()
        upstream.status_code = 400
        upstream._content = b'{"message": "Bad Request", "errors": []}'

        def failing_exchange(*args):
            raise requests.HTTPError("400 Client Error", response=upstream)

        api_server.exchange_authorization_code = failing_exchange
        response = self.client.get("/strava/callback?code=expired")
        self.assertEqual(response.status_code, 500)
        body = response.get_data(as_text=True)
        self.assertTrue(body.startswith("Authentication failed:"))
        self.assertIn("Bad Request", body)
        self.assertEqual(len(self.spreadsheet.sheet("Athletes").data_rows()), 1)

    def test_callback_without_athlete_id_fails(self) -> None:
        self._set_temp_state_dir()
        api_server.exchange_authorization_code = lambda *args: {"refresh_token": "tok"}
        response = self.client.get("/strava/callback?code=abc")
        self.assertEqual(response.status_code, 500)
        self.assertIn("no athlete id", response.get_data(as_text=True))

    def test_health_reports_last_run(self) -> None:
        self._set_temp_state_dir()
        write_json(
            api_server.settings.last_run_file,
            {"status": "partial", "finished_at": "2026-03-10T06:00:05+00:00", "athletes_failed": 2},
        )
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        payload = response.get_json()
        self.assertEqual(payload["status"], "ok")
        self.assertEqual(payload["last_run_status"], "partial")
        self.assertEqual(payload["last_run_athletes_failed"], 2)

    def test_scoreboard_endpoint(self) -> None:
        self._set_temp_state_dir()
        response = self.client.get("/scoreboard.json")
        self.assertEqual(response.status_code, 404)

        write_json(api_server.settings.scoreboard_file, {"last_synced": "x", "data": []})
        response = self.client.get("/scoreboard.json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["data"], [])


if __name__ == "__main__":
    unittest.main()
