"""Ordering and rank assignment for leaderboard entries."""

from collections.abc import Iterable
from datetime import datetime, timezone

from mealcomp.scoring.schemas import LeaderboardEntry, ParticipantScore

_NEVER = datetime.min.replace(tzinfo=timezone.utc)


def tie_key(score: ParticipantScore) -> tuple:
    """Fields whose equality makes two participants share a rank."""
    return (score.total_score, score.check_in_count, score.last_check_in_at)


def ranking_key(score: ParticipantScore) -> tuple:
    """Sort key giving the leaderboard's total order.

    1. ``total_score`` descending
    2. ``check_in_count`` descending
    3. ``last_check_in_at`` ascending, participants without check-ins last
    4. ``participant_id`` ascending
    """
    last = score.last_check_in_at
    return (
        -score.total_score,
        -score.check_in_count,
        last is None,
        last or _NEVER,
        score.participant_id,
    )


def rank_scores(scores: Iterable[ParticipantScore]) -> list[LeaderboardEntry]:
    """Sort scores and assign standard competition ranks.

    Parameters
    ----------
    scores : Iterable[ParticipantScore]
        One score per participant, in any order

    Returns
    -------
    list[LeaderboardEntry]
        Entries in ranking order. Entries with the same ``tie_key`` share a
        rank and the next group starts at ``previous rank + group size``
        (1, 1, 3, 4).
    """
    ordered = sorted(scores, key=ranking_key)

    entries: list[LeaderboardEntry] = []
    rank = 0
    previous_key = None
    for position, score in enumerate(ordered, start=1):
        key = tie_key(score)
        if key != previous_key:
            rank = position
            previous_key = key
        entries.append(
            LeaderboardEntry(**score.model_dump(exclude={"rank"}), rank=rank)
        )
    return entries
