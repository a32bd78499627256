import unittest
from datetime import datetime, timezone

from clubsync.models import Activity, ActivitySource, Athlete, ScoreSummary
from clubsync.scoring import activity_label, activity_points, rank_leaderboard, summarize


def _activity(activity_type: str, distance: float, athlete_id: str = "1", occurred_at=None) -> Activity:
    return Activity(
        athlete_id=athlete_id,
        name=f"Athlete {athlete_id}",
        type=activity_type,
        distance_meters=distance,
        moving_time_seconds=600,
        elevation_gain_meters=0.0,
        occurred_at=occurred_at,
        source=ActivitySource.VERIFIED,
    )


def _summary(athlete_id: str, points: int) -> ScoreSummary:
    return ScoreSummary(athlete_id, f"Athlete {athlete_id}", points, 0.0, None, "")


class TestActivityPoints(unittest.TestCase):
    def test_weights_by_type(self) -> None:
        self.assertEqual(activity_points(_activity("Run", 5000)), 5)
        self.assertEqual(activity_points(_activity("Ride", 10000)), 3)
        self.assertEqual(activity_points(_activity("Walk", 4000)), 2)
        self.assertEqual(activity_points(_activity("Swim", 3000)), 1)

    def test_custom_weight_table(self) -> None:
        self.assertEqual(activity_points(_activity("Ride", 10000), {"Ride": 1.0}), 10)


class TestSummarize(unittest.TestCase):
    def test_run_and_ride_total(self) -> None:
        summary = summarize([_activity("Run", 5000), _activity("Ride", 10000)])[0]
        self.assertEqual(summary.total_points, 8)
        self.assertEqual(summary.total_distance_km, 15.0)

    def test_points_floor_per_activity_before_summing(self) -> None:
        summary = summarize([_activity("Run", 900), _activity("Run", 900)])[0]
        self.assertEqual(summary.total_points, 0)
        self.assertEqual(summary.total_distance_km, 1.8)

        summary = summarize([_activity("Run", 1500), _activity("Ride", 1500)])[0]
        self.assertEqual(summary.total_points, 1)

    def test_groups_by_athlete_and_tracks_latest_activity(self) -> None:
        early = datetime(2026, 3, 1, 7, 30, tzinfo=timezone.utc)
        late = datetime(2026, 3, 9, 18, 5, tzinfo=timezone.utc)
        summaries = summarize(
            [
                _activity("Run", 3333, "1", early),
                _activity("Run", 2222, "2", None),
                _activity("Run", 1111, "1", late),
            ]
        )
        by_id = {summary.athlete_id: summary for summary in summaries}
        self.assertEqual(by_id["1"].total_distance_km, 4.44)
        self.assertEqual(by_id["1"].last_activity_at, late)
        self.assertEqual(by_id["1"].last_activity_label, "9 Mar, 18:05")
        self.assertIsNone(by_id["2"].last_activity_at)
        self.assertEqual(by_id["2"].last_activity_label, "")

    def test_synced_athletes_without_activities_score_zero(self) -> None:
        athletes = [Athlete("1", "Athlete 1", "t"), Athlete("7", "Quiet Rider", "t")]
        summaries = summarize([_activity("Run", 5000, "1")], athletes=athletes)
        by_id = {summary.athlete_id: summary for summary in summaries}
        self.assertEqual(by_id["1"].total_points, 5)
        self.assertEqual((by_id["7"].name, by_id["7"].total_points, by_id["7"].total_distance_km), ("Quiet Rider", 0, 0.0))
        self.assertEqual(by_id["7"].last_activity_label, "")

    def test_activity_label(self) -> None:
        self.assertEqual(activity_label(datetime(2026, 12, 25, 6, 0)), "25 Dec, 06:00")
        self.assertEqual(activity_label(None), "")


class TestLeaderboard(unittest.TestCase):
    def test_sorted_descending_by_points(self) -> None:
        ranked = rank_leaderboard([_summary("a", 10), _summary("b", 30), _summary("c", 20)])
        self.assertEqual([s.total_points for s in ranked], [30, 20, 10])

    def test_ties_keep_input_order(self) -> None:
        ranked = rank_leaderboard([_summary("a", 5), _summary("b", 9), _summary("c", 5), _summary("d", 5)])
        self.assertEqual([s.athlete_id for s in ranked], ["b", "a", "c", "d"])


if __name__ == "__main__":
    unittest.main()
