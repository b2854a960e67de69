"""Leaderboard snapshot construction.

``LeaderboardBuilder`` composes aggregation, streak detection and ranking.
Both ``build`` and ``update`` are pure given their inputs: no I/O and no state
besides the configured incomplete-data policy.
"""

from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, timezone
from enum import Enum
from typing import Literal, Union

from loguru import logger

from mealcomp.checkins.schemas import CheckInRecord
from mealcomp.competitions.schemas import CompetitionDefinition
from mealcomp.scoring.aggregator import aggregate_check_ins, partition_valid_check_ins
from mealcomp.scoring.calculator import window_check_ins
from mealcomp.scoring.exceptions import (
    IncompleteDataError,
    InvalidWindowError,
    SnapshotMismatchError,
)
from mealcomp.scoring.ranking import rank_scores
from mealcomp.scoring.schemas import LeaderboardSnapshot, ParticipantScore
from mealcomp.scoring.streaks import calculate_consistency_points


class FetchStatus(Enum):
    """Marker for a participant whose check-ins could not be fetched."""

    FAILED = "failed"


FETCH_FAILED = FetchStatus.FAILED

ParticipantCheckIns = Union[Sequence[CheckInRecord], Literal[FetchStatus.FAILED]]


class IncompleteDataPolicy(str, Enum):
    """What to do when some participants' check-ins are unavailable."""

    OMIT = "omit"  # rank the rest, list the others as unknown
    REFUSE = "refuse"  # raise IncompleteDataError


def _check_window(definition: CompetitionDefinition) -> None:
    if definition.start_date > definition.end_date:
        raise InvalidWindowError(
            definition.id, definition.start_date, definition.end_date
        )


class LeaderboardBuilder:
    """Turns check-ins into ranked ``LeaderboardSnapshot`` values."""

    def __init__(self, incomplete_policy: IncompleteDataPolicy = IncompleteDataPolicy.OMIT):
        self.incomplete_policy = IncompleteDataPolicy(incomplete_policy)

    def score_participant(
        self,
        definition: CompetitionDefinition,
        participant_id: str,
        check_ins: Sequence[CheckInRecord],
    ) -> ParticipantScore:
        """Compute the full score of one participant.

        In-window records with a rating outside [1, 5] are excluded and
        counted in ``excluded_check_in_count``.
        """
        scoped = window_check_ins(
            check_ins, participant_id, definition.start_date, definition.end_date
        )
        valid, invalid = partition_valid_check_ins(scoped)
        if invalid:
            logger.warning(
                "Excluded check-ins with invalid ratings",
                competition_id=definition.id,
                participant_id=participant_id,
                check_in_ids=[record.id for record in invalid],
            )

        aggregate = aggregate_check_ins(definition, participant_id, valid)
        consistency_points = calculate_consistency_points(
            aggregate.check_ins, definition.scoring_rules
        )
        return ParticipantScore(
            participant_id=participant_id,
            competition_id=definition.id,
            check_in_count=aggregate.check_in_count,
            base_points=aggregate.base_points,
            consistency_points=consistency_points,
            rating_points=aggregate.rating_points,
            total_score=aggregate.base_points + consistency_points + aggregate.rating_points,
            last_check_in_at=aggregate.last_check_in_at,
            excluded_check_in_count=len(invalid),
        )

    def build(
        self,
        definition: CompetitionDefinition,
        check_ins: Mapping[str, ParticipantCheckIns],
        generated_at: datetime | None = None,
    ) -> LeaderboardSnapshot:
        """Build a snapshot from scratch.

        Parameters
        ----------
        definition : CompetitionDefinition
            Competition to rank
        check_ins : Mapping[str, ParticipantCheckIns]
            Per participant, the full list of their check-ins or
            ``FETCH_FAILED``. Participants absent from the mapping are
            treated as failed, never as having zero check-ins.
        generated_at : datetime | None
            Snapshot timestamp. If None, uses the current UTC time.

        Returns
        -------
        LeaderboardSnapshot
            New immutable snapshot

        Raises
        ------
        InvalidWindowError
            If the competition starts after it ends
        IncompleteDataError
            If data is missing and the policy is ``REFUSE``
        """
        _check_window(definition)

        scores: list[ParticipantScore] = []
        unknown: list[str] = []
        for participant_id in definition.participant_ids:
            data = check_ins.get(participant_id, FETCH_FAILED)
            if data is FETCH_FAILED:
                unknown.append(participant_id)
                continue
            scores.append(self.score_participant(definition, participant_id, data))

        logger.debug(
            "Built leaderboard",
            competition_id=definition.id,
            participants=len(definition.participant_ids),
        )
        return self._snapshot(definition, scores, unknown, generated_at)

    def update(
        self,
        previous: LeaderboardSnapshot,
        definition: CompetitionDefinition,
        participant_id: str,
        check_ins: ParticipantCheckIns,
        generated_at: datetime | None = None,
    ) -> LeaderboardSnapshot:
        """Recompute one participant and re-rank everyone.

        Parameters
        ----------
        previous : LeaderboardSnapshot
            Snapshot built from the same definition version
        definition : CompetitionDefinition
            Current definition; its participant set may differ from the one
            ``previous`` was built with
        participant_id : str
            Participant whose check-ins changed
        check_ins : ParticipantCheckIns
            That participant's full check-in list (never a delta), or
            ``FETCH_FAILED``
        generated_at : datetime | None
            Snapshot timestamp. If None, uses the current UTC time.

        Returns
        -------
        LeaderboardSnapshot
            Same result a full ``build`` over the final data would give

        Raises
        ------
        InvalidWindowError
            If the competition starts after it ends
        SnapshotMismatchError
            If ``previous`` belongs to another competition or version
        IncompleteDataError
            If data is missing and the policy is ``REFUSE``
        """
        _check_window(definition)
        scores, unknown = self._reconcile(previous, definition)

        if participant_id in definition.participant_ids:
            if check_ins is FETCH_FAILED:
                scores.pop(participant_id, None)
                unknown.add(participant_id)
            else:
                scores[participant_id] = self.score_participant(
                    definition, participant_id, check_ins
                )
                unknown.discard(participant_id)
        else:
            logger.debug(
                "Ignoring update for non-participant",
                competition_id=definition.id,
                participant_id=participant_id,
            )

        return self._snapshot(definition, scores.values(), unknown, generated_at)

    def sync_participants(
        self,
        previous: LeaderboardSnapshot,
        definition: CompetitionDefinition,
        generated_at: datetime | None = None,
    ) -> LeaderboardSnapshot:
        """Apply participant additions and removals without touching scores.

        Added participants get a zero-score entry; removed participants are
        dropped. Other participants' scores are unaffected.
        """
        _check_window(definition)
        scores, unknown = self._reconcile(previous, definition)
        return self._snapshot(definition, scores.values(), unknown, generated_at)

    def _reconcile(
        self, previous: LeaderboardSnapshot, definition: CompetitionDefinition
    ) -> tuple[dict[str, ParticipantScore], set[str]]:
        if (
            previous.competition_id != definition.id
            or previous.definition_version != definition.version
        ):
            raise SnapshotMismatchError(
                f"Snapshot of competition {previous.competition_id} "
                f"v{previous.definition_version} cannot be updated with "
                f"competition {definition.id} v{definition.version}"
            )

        members = set(definition.participant_ids)
        scores = {
            entry.participant_id: ParticipantScore.model_validate(
                entry.model_dump(exclude={"rank"})
            )
            for entry in previous.entries
            if entry.participant_id in members
        }
        unknown = set(previous.unknown_participant_ids) & members
        for participant_id in definition.participant_ids:
            if participant_id not in scores and participant_id not in unknown:
                scores[participant_id] = ParticipantScore(
                    participant_id=participant_id, competition_id=definition.id
                )
        return scores, unknown

    def _snapshot(
        self,
        definition: CompetitionDefinition,
        scores: Iterable[ParticipantScore],
        unknown: Iterable[str],
        generated_at: datetime | None,
    ) -> LeaderboardSnapshot:
        unknown_ids = tuple(sorted(unknown))
        if unknown_ids:
            if self.incomplete_policy is IncompleteDataPolicy.REFUSE:
                raise IncompleteDataError(definition.id, unknown_ids)
            logger.warning(
                "Leaderboard built without some participants",
                competition_id=definition.id,
                unknown_participant_ids=list(unknown_ids),
            )

        entries = rank_scores(scores)
        return LeaderboardSnapshot(
            competition_id=definition.id,
            definition_version=definition.version,
            generated_at=generated_at or datetime.now(timezone.utc),
            entries=tuple(entries),
            total_participants=len(entries),
            unknown_participant_ids=unknown_ids,
            excluded_check_in_count=sum(e.excluded_check_in_count for e in entries),
        )
