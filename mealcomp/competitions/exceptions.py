"""Competition and check-in service exceptions."""


class CompetitionException(Exception):
    """Base exception for competition service errors."""

    pass


class CompetitionNotFound(CompetitionException):
    """Raised when a competition does not exist."""

    def __init__(self, competition_id: str):
        super().__init__(f"Competition {competition_id} not found")
        self.competition_id = competition_id


class CompetitionAccessDenied(CompetitionException):
    """Raised when a viewer is neither the owner nor a participant."""

    def __init__(self, competition_id: str, viewer_id: str):
        super().__init__(
            f"User {viewer_id} is not allowed to access competition {competition_id}"
        )
        self.competition_id = competition_id
        self.viewer_id = viewer_id


class ParticipantNotRanked(CompetitionException):
    """Raised when a participant has no entry in the leaderboard."""

    def __init__(self, competition_id: str, participant_id: str):
        super().__init__(
            f"Participant {participant_id} has no score in competition {competition_id}"
        )
        self.competition_id = competition_id
        self.participant_id = participant_id


class CheckInNotFound(CompetitionException):
    """Raised when a check-in does not exist or belongs to someone else."""

    def __init__(self, check_in_id: str):
        super().__init__(f"Check-in {check_in_id} not found")
        self.check_in_id = check_in_id
