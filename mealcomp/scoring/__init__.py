"""Competition scoring and leaderboard engine."""

from mealcomp.scoring.leaderboard import (
    FETCH_FAILED,
    IncompleteDataPolicy,
    LeaderboardBuilder,
)
from mealcomp.scoring.schemas import LeaderboardEntry, LeaderboardSnapshot, ParticipantScore

__all__ = [
    "FETCH_FAILED",
    "IncompleteDataPolicy",
    "LeaderboardBuilder",
    "LeaderboardEntry",
    "LeaderboardSnapshot",
    "ParticipantScore",
]
