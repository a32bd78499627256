import json
import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path

from clubsync.models import ScoreSummary
from clubsync.publisher import build_scoreboard, publish_scoreboard
from clubsync.storage import read_json, write_json


class TestStorage(unittest.TestCase):
    def test_write_json_replaces_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "nested" / "state.json"
            write_json(path, {"b": 1, "a": 2})
            write_json(path, {"c": 3})
            self.assertEqual(read_json(path), {"c": 3})
            self.assertEqual([p.name for p in path.parent.iterdir()], ["state.json"])

    def test_read_json_ignores_missing_or_invalid(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "state.json"
            self.assertIsNone(read_json(path))
            path.write_text("{not json", encoding="utf-8")
            self.assertIsNone(read_json(path))
            path.write_text("[1, 2]", encoding="utf-8")
            self.assertIsNone(read_json(path))


class TestScoreboard(unittest.TestCase):
    def setUp(self) -> None:
        self.synced_at = datetime(2026, 3, 10, 6, 0, tzinfo=timezone.utc)
        self.leaderboard = [
            ScoreSummary("1", "Jane Doe", 8, 15.0, datetime(2026, 3, 2, 8, 0), "2 Mar, 08:00"),
            ScoreSummary("john_d.", "John D.", 4, 4.0, None, ""),
        ]

    def test_scoreboard_shape(self) -> None:
        payload = build_scoreboard(self.leaderboard, self.synced_at)
        self.assertEqual(payload["last_synced"], "2026-03-10T06:00:00+00:00")
        self.assertEqual(
            payload["data"],
            [
                {"name": "Jane Doe", "points": 8, "distance": "15.00", "last_activity": "2 Mar, 08:00"},
                {"name": "John D.", "points": 4, "distance": "4.00"},
            ],
        )

    def test_publish_keeps_leaderboard_order(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "public" / "scoreboard.json"
            publish_scoreboard(path, list(reversed(self.leaderboard)), self.synced_at)
            payload = json.loads(path.read_text(encoding="utf-8"))
            self.assertEqual([entry["name"] for entry in payload["data"]], ["John D.", "Jane Doe"])
            self.assertEqual(list(payload), ["last_synced", "data"])


if __name__ == "__main__":
    unittest.main()
