"""Pure functions folding a participant's check-ins into points.

No database access - these functions only see already-fetched records.
"""

from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import NamedTuple

from mealcomp.checkins.schemas import CheckInRecord
from mealcomp.competitions.schemas import CompetitionDefinition, ScoringRules
from mealcomp.scoring.calculator import window_check_ins
from mealcomp.scoring.exceptions import InvalidRatingError

MIN_RATING = 1
MAX_RATING = 5


class Aggregate(NamedTuple):
    """Window-scoped totals for one participant, before streak bonuses."""

    check_ins: tuple[CheckInRecord, ...]
    check_in_count: int
    base_points: int
    rating_points: int
    last_check_in_at: datetime | None


def validate_ratings(record: CheckInRecord) -> None:
    """Raise ``InvalidRatingError`` if a scored rating is outside [1, 5]."""
    for field in ("hunger_rating", "satisfaction_rating"):
        value = getattr(record, field)
        if not MIN_RATING <= value <= MAX_RATING:
            raise InvalidRatingError(record.id, field, value)


def partition_valid_check_ins(
    check_ins: Iterable[CheckInRecord],
) -> tuple[list[CheckInRecord], list[CheckInRecord]]:
    """Split records into (valid, invalid) according to their ratings."""
    valid: list[CheckInRecord] = []
    invalid: list[CheckInRecord] = []
    for record in check_ins:
        try:
            validate_ratings(record)
        except InvalidRatingError:
            invalid.append(record)
        else:
            valid.append(record)
    return valid, invalid


def calculate_base_points(check_in_count: int, rules: ScoringRules) -> int:
    """Points for checking in (``check_in_points`` per check-in)."""
    return check_in_count * rules.check_in_points


def qualifies_for_rating_bonus(record: CheckInRecord, threshold: int) -> bool:
    """Check whether hunger AND satisfaction ratings both reach the threshold.

    A check-in with hunger 5 and satisfaction 3 does not qualify at
    threshold 4; one with 4 and 4 does.
    """
    return record.hunger_rating >= threshold and record.satisfaction_rating >= threshold


def calculate_rating_points(check_ins: Iterable[CheckInRecord], rules: ScoringRules) -> int:
    """Bonus points for well-rated check-ins.

    Parameters
    ----------
    check_ins : Iterable[CheckInRecord]
        Window-scoped, validated records
    rules : ScoringRules
        Competition scoring rules

    Returns
    -------
    int
        ``rating_bonus`` times the number of qualifying check-ins
    """
    qualifying = sum(
        1
        for record in check_ins
        if qualifies_for_rating_bonus(record, rules.rating_bonus_threshold)
    )
    return qualifying * rules.rating_bonus


def aggregate_check_ins(
    definition: CompetitionDefinition,
    participant_id: str,
    check_ins: Sequence[CheckInRecord],
) -> Aggregate:
    """Compute base and rating points for one participant.

    Parameters
    ----------
    definition : CompetitionDefinition
        Competition whose window and rules apply
    participant_id : str
        Participant being scored; records of anyone else are ignored
    check_ins : Sequence[CheckInRecord]
        The participant's records, possibly over-fetched around the window

    Returns
    -------
    Aggregate
        Counts and points; all zero and no ``last_check_in_at`` when nothing
        falls inside the window

    Raises
    ------
    InvalidRatingError
        If any in-window record has a rating outside [1, 5]
    """
    scoped = window_check_ins(
        check_ins, participant_id, definition.start_date, definition.end_date
    )
    for record in scoped:
        validate_ratings(record)

    rules = definition.scoring_rules
    count = len(scoped)
    return Aggregate(
        check_ins=tuple(scoped),
        check_in_count=count,
        base_points=calculate_base_points(count, rules),
        rating_points=calculate_rating_points(scoped, rules),
        last_check_in_at=scoped[-1].occurred_at if scoped else None,
    )
