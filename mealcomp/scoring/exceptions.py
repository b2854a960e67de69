"""Scoring engine exceptions."""

from collections.abc import Iterable
from datetime import date


class ScoringError(Exception):
    """Base exception for scoring engine errors."""

    pass


class InvalidRatingError(ScoringError):
    """Raised when a check-in rating lies outside [1, 5]."""

    def __init__(self, check_in_id: str, field: str, value: int):
        super().__init__(
            f"Check-in {check_in_id} has {field}={value}, expected a value in [1, 5]"
        )
        self.check_in_id = check_in_id
        self.field = field
        self.value = value


class InvalidWindowError(ScoringError):
    """Raised when a competition starts after it ends."""

    def __init__(self, competition_id: str, start_date: date, end_date: date):
        super().__init__(
            f"Competition {competition_id} has start_date {start_date} "
            f"after end_date {end_date}"
        )
        self.competition_id = competition_id
        self.start_date = start_date
        self.end_date = end_date


class IncompleteDataError(ScoringError):
    """Raised when check-ins of some participants could not be fetched."""

    def __init__(self, competition_id: str, participant_ids: Iterable[str]):
        self.competition_id = competition_id
        self.participant_ids = tuple(sorted(participant_ids))
        super().__init__(
            f"Competition {competition_id} is missing check-in data for "
            f"participants: {', '.join(self.participant_ids)}"
        )


class SnapshotMismatchError(ScoringError):
    """Raised when an incremental update targets a snapshot of another definition."""

    pass
