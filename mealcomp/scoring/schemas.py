"""Pydantic schemas for scores and leaderboard snapshots."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, computed_field, model_validator


class ParticipantScore(BaseModel):
    """Aggregated score of one participant in one competition.

    Attributes
    ----------
    participant_id : str
        Patient identifier
    competition_id : str
        Competition identifier
    check_in_count : int
        Check-ins inside the competition window
    base_points : int
        Points for checking in
    consistency_points : int
        Bonus for consecutive-day streaks
    rating_points : int
        Bonus for check-ins with both ratings at or above the threshold
    total_score : int
        Sum of all point components
    last_check_in_at : datetime | None
        Most recent contributing check-in (None with zero check-ins)
    excluded_check_in_count : int
        Records left out because a rating was outside [1, 5]
    """

    participant_id: str
    competition_id: str
    check_in_count: int = 0
    base_points: int = 0
    consistency_points: int = 0
    rating_points: int = 0
    total_score: int = 0
    last_check_in_at: datetime | None = None
    excluded_check_in_count: int = 0

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _check_decomposition(self) -> "ParticipantScore":
        expected = self.base_points + self.consistency_points + self.rating_points
        if self.total_score != expected:
            raise ValueError(
                f"total_score {self.total_score} does not match the sum of its "
                f"components ({expected})"
            )
        return self


class LeaderboardEntry(ParticipantScore):
    """Participant score with its 1-based rank (ties share a rank)."""

    rank: int


class LeaderboardSnapshot(BaseModel):
    """Immutable, fully ranked leaderboard at one point in time.

    Attributes
    ----------
    competition_id : str
        Competition identifier
    definition_version : int
        Version of the competition definition the snapshot was built from
    generated_at : datetime
        When the snapshot was produced
    entries : tuple[LeaderboardEntry, ...]
        Entries in ranking order
    total_participants : int
        Number of ranked entries
    unknown_participant_ids : tuple[str, ...]
        Participants left out because their check-ins could not be fetched
    excluded_check_in_count : int
        Records excluded for invalid ratings, across all entries
    """

    competition_id: str
    definition_version: int
    generated_at: datetime
    entries: tuple[LeaderboardEntry, ...] = ()
    total_participants: int = 0
    unknown_participant_ids: tuple[str, ...] = ()
    excluded_check_in_count: int = 0

    model_config = ConfigDict(frozen=True)

    @computed_field
    @property
    def is_complete(self) -> bool:
        """Whether every participant's data was available."""
        return not self.unknown_participant_ids

    def entry_for(self, participant_id: str) -> LeaderboardEntry | None:
        """Get the entry of one participant, if ranked."""
        for entry in self.entries:
            if entry.participant_id == participant_id:
                return entry
        return None


class LeaderboardSummary(BaseModel):
    """Headline numbers shown on the reports screen."""

    competition_id: str
    total_participants: int
    total_check_ins: int
    average_points: int
    unknown_participants: int
