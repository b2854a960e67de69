"""HTTP tests for the leaderboard, competition and check-in endpoints."""
from __future__ import annotations

import unittest
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from mealcomp.checkins.schemas import CheckInRecord
from mealcomp.checkins.service import check_in_service
from mealcomp.competitions.exceptions import CheckInNotFound, CompetitionNotFound
from mealcomp.competitions.schemas import CompetitionDefinition, ScoringRules
from mealcomp.competitions.service import competition_service
from mealcomp.core.cache import SnapshotCache
from mealcomp.dependencies import get_session, get_session_maker, get_snapshot_cache
from mealcomp.main import app
from mealcomp.scoring import FETCH_FAILED, IncompleteDataPolicy, LeaderboardBuilder
from mealcomp.scoring.service import scoring_service

UTC = timezone.utc
API_KEY = "test-api-key"

DEFINITION = CompetitionDefinition(
    id="c1",
    owner_id="nutri",
    name="January challenge",
    start_date=date(2024, 1, 1),
    end_date=date(2024, 1, 31),
    participant_ids=("alice", "bob"),
    scoring_rules=ScoringRules(check_in_points=10, rating_bonus=2, rating_bonus_threshold=4),
)


def check_in(participant_id, day, hunger=3, satisfaction=3):
    return CheckInRecord(
        id=f"{participant_id}-{day}",
        participant_id=participant_id,
        occurred_at=datetime(2024, 1, day, 12, tzinfo=UTC),
        hunger_rating=hunger,
        satisfaction_rating=satisfaction,
    )


@asynccontextmanager
async def fake_session_maker():
    yield None


class ApiTestCase(unittest.TestCase):
    def setUp(self):
        self.cache = SnapshotCache()
        self.check_ins = {
            "alice": [check_in("alice", 1, 4, 5), check_in("alice", 2)],
            "bob": [check_in("bob", 1)],
        }

        async def session():
            yield None

        app.dependency_overrides[get_session] = session
        app.dependency_overrides[get_session_maker] = lambda: fake_session_maker
        app.dependency_overrides[get_snapshot_cache] = lambda: self.cache
        self.addCleanup(app.dependency_overrides.clear)

        async def get_definition(db, competition_id):
            if competition_id != DEFINITION.id:
                raise CompetitionNotFound(competition_id)
            return DEFINITION

        async def fetch_many(session_maker, participant_ids, start_date, end_date, concurrency=8):
            return {pid: self.check_ins.get(pid, FETCH_FAILED) for pid in participant_ids}

        self.patch(competition_service, "get_definition", get_definition)
        self.patch(competition_service, "competitions_for_participant", AsyncMock(return_value=["c1"]))
        self.patch(check_in_service, "fetch_many", fetch_many)

        self.client = TestClient(app)

    def patch(self, target, name, side_effect):
        mock = side_effect if isinstance(side_effect, AsyncMock) else AsyncMock(side_effect=side_effect)
        patcher = patch.object(target, name, new=mock)
        patcher.start()
        self.addCleanup(patcher.stop)
        return mock

    def get(self, path, viewer_id="nutri", api_key=API_KEY):
        return self.client.get(path, headers={"X-API-Key": api_key, "X-User-Id": viewer_id})


class TestLeaderboardEndpoints(ApiTestCase):
    def test_leaderboard(self):
        response = self.get("/competitions/c1/leaderboard")

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["competition_id"], "c1")
        self.assertEqual(body["definition_version"], 1)
        self.assertTrue(body["is_complete"])
        self.assertEqual(
            [(e["participant_id"], e["rank"], e["total_score"]) for e in body["entries"]],
            [("alice", 1, 22), ("bob", 2, 10)],
        )
        alice = body["entries"][0]
        self.assertEqual((alice["base_points"], alice["rating_points"]), (20, 2))
        self.assertIn("X-Request-ID", response.headers)

    def test_participant_can_view(self):
        self.assertEqual(self.get("/competitions/c1/leaderboard", viewer_id="bob").status_code, 200)

    def test_stranger_is_forbidden(self):
        response = self.get("/competitions/c1/leaderboard", viewer_id="mallory")
        self.assertEqual(response.status_code, 403)
        self.assertIn("request_id", response.json())

    def test_wrong_api_key_is_forbidden(self):
        response = self.get("/competitions/c1/leaderboard", api_key="nope")
        self.assertEqual(response.status_code, 403)

    def test_unknown_competition(self):
        self.assertEqual(self.get("/competitions/c9/leaderboard").status_code, 404)

    def test_missing_viewer_header(self):
        response = self.client.get("/competitions/c1/leaderboard", headers={"X-API-Key": API_KEY})
        self.assertEqual(response.status_code, 422)

    def test_unknown_participants_are_listed(self):
        del self.check_ins["bob"]
        body = self.get("/competitions/c1/leaderboard").json()
        self.assertFalse(body["is_complete"])
        self.assertEqual(body["unknown_participant_ids"], ["bob"])
        self.assertEqual([e["participant_id"] for e in body["entries"]], ["alice"])

    def test_refused_incomplete_leaderboard(self):
        del self.check_ins["bob"]
        with patch.object(scoring_service, "builder", LeaderboardBuilder(IncompleteDataPolicy.REFUSE)):
            response = self.get("/competitions/c1/leaderboard")
        self.assertEqual(response.status_code, 503)
        self.assertIn("bob", response.json()["detail"])

    def test_summary(self):
        body = self.get("/competitions/c1/leaderboard/summary").json()
        self.assertEqual(
            body,
            {
                "competition_id": "c1",
                "total_participants": 2,
                "total_check_ins": 3,
                "average_points": 16,
                "unknown_participants": 0,
            },
        )

    def test_participant_score(self):
        response = self.get("/competitions/c1/participants/bob/score", viewer_id="bob")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["rank"], 2)

    def test_participant_score_not_ranked(self):
        response = self.get("/competitions/c1/participants/mallory/score")
        self.assertEqual(response.status_code, 404)

    def test_health(self):
        self.assertEqual(self.client.get("/health").json(), {"status": "healthy"})


class TestCompetitionEndpoints(ApiTestCase):
    def test_get_competition(self):
        response = self.get("/competitions/c1", viewer_id="alice")
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["participant_ids"], ["alice", "bob"])
        self.assertEqual(body["status"], "finished")

    def test_update_with_new_version_drops_cached_leaderboard(self):
        self.get("/competitions/c1/leaderboard")
        updated = DEFINITION.model_copy(update={"version": 2})
        self.patch(competition_service, "update_competition", AsyncMock(return_value=updated))

        response = self.client.patch(
            "/competitions/c1",
            json={"end_date": "2024-02-15"},
            headers={"X-API-Key": API_KEY, "X-User-Id": "nutri"},
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["version"], 2)
        self.assertEqual(self.cache._snapshots, {})


class TestCheckInEndpoints(ApiTestCase):
    def test_create_check_in_refreshes_leaderboard(self):
        self.get("/competitions/c1/leaderboard")
        record = check_in("bob", 2, 5, 5)

        async def add_check_in(db, patient_id, data):
            self.check_ins[patient_id] = self.check_ins[patient_id] + [record]
            return record

        self.patch(check_in_service, "add_check_in", add_check_in)

        response = self.client.post(
            "/checkins",
            json={
                "meal_type": "lunch",
                "occurred_at": "2024-01-02T12:00:00Z",
                "hunger_rating": 5,
                "satisfaction_rating": 5,
                "observations": "salad",
            },
            headers={"X-API-Key": API_KEY, "X-User-Id": "bob"},
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["id"], "bob-2")
        bob = self.cache._snapshots["c1"].entry_for("bob")
        self.assertEqual(bob.total_score, 22)

    def test_edit_rating_refreshes_cached_rating_points(self):
        before = self.get("/competitions/c1/leaderboard").json()
        alice = next(e for e in before["entries"] if e["participant_id"] == "alice")
        self.assertEqual(alice["rating_points"], 2)

        async def update_check_in(db, patient_id, check_in_id, data):
            edited = check_in(patient_id, 2, data.hunger_rating, data.satisfaction_rating)
            self.check_ins[patient_id] = [
                edited if r.id == check_in_id else r for r in self.check_ins[patient_id]
            ]
            return edited

        update = self.patch(check_in_service, "update_check_in", update_check_in)

        response = self.client.patch(
            "/checkins/alice-2",
            json={"hunger_rating": 4, "satisfaction_rating": 5},
            headers={"X-API-Key": API_KEY, "X-User-Id": "alice"},
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["satisfaction_rating"], 5)
        self.assertEqual(update.await_args.args[1:3], ("alice", "alice-2"))
        cached = self.cache._snapshots["c1"].entry_for("alice")
        self.assertEqual(cached.rating_points, 4)
        self.assertEqual(cached.total_score, 24)

    def test_edit_check_in_of_another_patient(self):
        self.patch(
            check_in_service,
            "update_check_in",
            AsyncMock(side_effect=CheckInNotFound("alice-2")),
        )
        response = self.client.patch(
            "/checkins/alice-2",
            json={"hunger_rating": 4},
            headers={"X-API-Key": API_KEY, "X-User-Id": "bob"},
        )
        self.assertEqual(response.status_code, 404)

    def test_edit_rating_out_of_range_is_rejected(self):
        response = self.client.patch(
            "/checkins/alice-2",
            json={"satisfaction_rating": 0},
            headers={"X-API-Key": API_KEY, "X-User-Id": "alice"},
        )
        self.assertEqual(response.status_code, 422)

    def test_rating_out_of_range_is_rejected(self):
        response = self.client.post(
            "/checkins",
            json={"meal_type": "lunch", "hunger_rating": 6, "satisfaction_rating": 3},
            headers={"X-API-Key": API_KEY, "X-User-Id": "bob"},
        )
        self.assertEqual(response.status_code, 422)


if __name__ == "__main__":
    unittest.main()
