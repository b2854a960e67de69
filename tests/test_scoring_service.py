"""Tests for ScoringService caching and refresh behaviour.

Storage is replaced by in-memory fakes; the real LeaderboardBuilder runs.
"""
from __future__ import annotations

import unittest
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, patch

from mealcomp.checkins.schemas import CheckInRecord
from mealcomp.checkins.service import check_in_service
from mealcomp.competitions.exceptions import CompetitionAccessDenied, ParticipantNotRanked
from mealcomp.competitions.schemas import CompetitionDefinition, ScoringRules
from mealcomp.competitions.service import competition_service
from mealcomp.core.cache import SnapshotCache
from mealcomp.scoring import FETCH_FAILED, IncompleteDataPolicy, LeaderboardBuilder
from mealcomp.scoring.exceptions import IncompleteDataError
from mealcomp.scoring.service import ScoringService, summarize

UTC = timezone.utc


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
    yield object()


class FakeStorage:
    """Definitions and check-ins behind the patched service methods."""

    def __init__(self):
        self.definitions = {
            "c1": CompetitionDefinition(
                id="c1",
                owner_id="nutri",
                start_date=date(2024, 1, 1),
                end_date=date(2024, 1, 31),
                participant_ids=("alice", "bob"),
                scoring_rules=ScoringRules(check_in_points=10),
            )
        }
        self.check_ins = {
            "alice": [check_in("alice", 1), check_in("alice", 2)],
            "bob": [check_in("bob", 1)],
        }
        self.failing: set[str] = set()
        self.fetch_calls: list[list[str]] = []

    async def get_definition(self, db, competition_id):
        return self.definitions[competition_id]

    async def competitions_for_participant(self, db, participant_id):
        return sorted(
            cid for cid, d in self.definitions.items() if participant_id in d.participant_ids
        )

    async def fetch_many(self, session_maker, participant_ids, start_date, end_date, concurrency=8):
        ids = list(participant_ids)
        self.fetch_calls.append(ids)
        return {
            pid: FETCH_FAILED if pid in self.failing else list(self.check_ins.get(pid, []))
            for pid in ids
        }


class ScoringServiceTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.storage = FakeStorage()
        self.cache = SnapshotCache()
        self.service = ScoringService(builder=LeaderboardBuilder(), fetch_concurrency=4)
        for target, name in (
            (competition_service, "get_definition"),
            (competition_service, "competitions_for_participant"),
            (check_in_service, "fetch_many"),
        ):
            patcher = patch.object(
                target, name, new=AsyncMock(side_effect=getattr(self.storage, name))
            )
            patcher.start()
            self.addCleanup(patcher.stop)

    async def leaderboard(self, viewer_id="nutri"):
        return await self.service.get_leaderboard(
            None, fake_session_maker, self.cache, "c1", viewer_id
        )


class TestGetLeaderboard(ScoringServiceTestCase):
    async def test_builds_and_caches(self):
        first = await self.leaderboard()
        second = await self.leaderboard("alice")

        self.assertIs(first, second)
        self.assertEqual(len(self.storage.fetch_calls), 1)
        self.assertEqual([e.participant_id for e in first.entries], ["alice", "bob"])

    async def test_stranger_is_denied(self):
        with self.assertRaises(CompetitionAccessDenied):
            await self.leaderboard("mallory")
        self.assertEqual(self.storage.fetch_calls, [])

    async def test_incomplete_snapshot_is_not_cached(self):
        self.storage.failing.add("bob")
        snapshot = await self.leaderboard()
        self.assertEqual(snapshot.unknown_participant_ids, ("bob",))
        self.assertIsNone(await self.cache.get("c1"))

        self.storage.failing.clear()
        snapshot = await self.leaderboard()
        self.assertTrue(snapshot.is_complete)
        self.assertEqual(len(self.storage.fetch_calls), 2)

    async def test_refuse_policy_propagates(self):
        self.service = ScoringService(builder=LeaderboardBuilder(IncompleteDataPolicy.REFUSE))
        self.storage.failing.add("bob")
        with self.assertRaises(IncompleteDataError):
            await self.leaderboard()

    async def test_new_definition_version_rebuilds(self):
        await self.leaderboard()
        definition = self.storage.definitions["c1"]
        self.storage.definitions["c1"] = definition.model_copy(
            update={"version": 2, "scoring_rules": ScoringRules(check_in_points=1)}
        )

        snapshot = await self.leaderboard()

        self.assertEqual(snapshot.definition_version, 2)
        self.assertEqual(snapshot.entry_for("alice").total_score, 2)
        self.assertEqual(len(self.storage.fetch_calls), 2)

    async def test_disabled_cache_always_rebuilds(self):
        self.cache = SnapshotCache(enabled=False)
        await self.leaderboard()
        await self.leaderboard()
        self.assertEqual(len(self.storage.fetch_calls), 2)

    async def test_participant_score(self):
        entry = await self.service.get_participant_score(
            None, fake_session_maker, self.cache, "c1", "bob", "bob"
        )
        self.assertEqual((entry.rank, entry.total_score), (2, 10))

        with self.assertRaises(ParticipantNotRanked):
            await self.service.get_participant_score(
                None, fake_session_maker, self.cache, "c1", "mallory", "nutri"
            )


class TestRefresh(ScoringServiceTestCase):
    async def test_check_in_change_updates_cached_snapshot(self):
        await self.leaderboard()
        self.storage.check_ins["bob"] += [check_in("bob", 2), check_in("bob", 3)]

        await self.service.on_check_in_changed(None, fake_session_maker, self.cache, "bob")

        cached = await self.cache.get("c1")
        self.assertEqual(cached.entries[0].participant_id, "bob")
        self.assertEqual(cached.entry_for("bob").total_score, 30)
        self.assertEqual(self.storage.fetch_calls[-1], ["bob"])

    async def test_check_in_change_without_cached_snapshot_fetches_nothing(self):
        await self.service.on_check_in_changed(None, fake_session_maker, self.cache, "bob")
        self.assertEqual(self.storage.fetch_calls, [])

    async def test_failed_refresh_drops_snapshot(self):
        await self.leaderboard()
        self.storage.failing.add("bob")
        await self.service.on_check_in_changed(None, fake_session_maker, self.cache, "bob")
        self.assertIsNone(await self.cache.get("c1"))

    async def test_version_mismatch_drops_snapshot(self):
        await self.leaderboard()
        definition = self.storage.definitions["c1"]
        self.storage.definitions["c1"] = definition.model_copy(update={"version": 2})

        await self.service.on_check_in_changed(None, fake_session_maker, self.cache, "alice")

        self.assertIsNone(await self.cache.get("c1"))

    async def test_added_participant_is_scored(self):
        await self.leaderboard()
        definition = self.storage.definitions["c1"]
        self.storage.definitions["c1"] = definition.with_participants(("alice", "bob", "carol"))
        self.storage.check_ins["carol"] = [check_in("carol", d) for d in (1, 2, 3)]

        await self.service.on_participants_changed(
            None, fake_session_maker, self.cache, "c1", added=["carol"]
        )

        cached = await self.cache.get("c1")
        self.assertEqual(cached.entries[0].participant_id, "carol")
        self.assertEqual(cached.entry_for("alice").total_score, 20)
        self.assertEqual(self.storage.fetch_calls[-1], ["carol"])

    async def test_removed_participant_leaves_others_untouched(self):
        before = await self.leaderboard()
        definition = self.storage.definitions["c1"]
        self.storage.definitions["c1"] = definition.with_participants(("alice",))

        await self.service.on_participants_changed(None, fake_session_maker, self.cache, "c1")

        cached = await self.cache.get("c1")
        self.assertIsNone(cached.entry_for("bob"))
        self.assertEqual(cached.entry_for("alice"), before.entry_for("alice"))


class TestSummary(unittest.TestCase):
    def test_average_is_rounded_half_up(self):
        definition = CompetitionDefinition(
            id="c1",
            owner_id="nutri",
            start_date=date(2024, 1, 1),
            end_date=date(2024, 1, 31),
            participant_ids=("a", "b"),
            scoring_rules=ScoringRules(check_in_points=5),
        )
        snapshot = LeaderboardBuilder().build(
            definition,
            {"a": [check_in("a", 1), check_in("a", 2)], "b": [check_in("b", d) for d in (1, 2, 3)]},
        )
        summary = summarize(snapshot)
        self.assertEqual(summary.total_participants, 2)
        self.assertEqual(summary.total_check_ins, 5)
        self.assertEqual(summary.average_points, 13)

    def test_empty_snapshot(self):
        definition = CompetitionDefinition(
            id="c1", owner_id="nutri", start_date=date(2024, 1, 1), end_date=date(2024, 1, 31)
        )
        summary = summarize(LeaderboardBuilder().build(definition, {}))
        self.assertEqual((summary.total_participants, summary.average_points), (0, 0))


class TestFetchMany(unittest.IsolatedAsyncioTestCase):
    async def test_failed_fetch_maps_to_marker(self):
        async def fetch(session, participant_id, start_date, end_date):
            if participant_id == "bob":
                raise ConnectionError("connection reset")
            return [check_in(participant_id, 1)]

        with patch.object(
            check_in_service, "fetch_participant_check_ins", new=AsyncMock(side_effect=fetch)
        ):
            result = await check_in_service.fetch_many(
                fake_session_maker, ["alice", "bob"], date(2024, 1, 1), date(2024, 1, 31), concurrency=2
            )

        self.assertEqual(result["alice"], [check_in("alice", 1)])
        self.assertIs(result["bob"], FETCH_FAILED)


if __name__ == "__main__":
    unittest.main()
