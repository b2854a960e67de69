"""Consecutive-day streak detection for the consistency bonus."""

from collections.abc import Iterable
from datetime import date, timedelta

from mealcomp.checkins.schemas import CheckInRecord
from mealcomp.competitions.schemas import ScoringRules
from mealcomp.scoring.calculator import utc_day


def collapse_check_in_days(check_ins: Iterable[CheckInRecord]) -> list[date]:
    """Distinct UTC days with at least one check-in, ascending."""
    return sorted({utc_day(record.occurred_at) for record in check_ins})


def find_streaks(days: Iterable[date]) -> list[int]:
    """Lengths of maximal runs of consecutive days.

    Parameters
    ----------
    days : Iterable[date]
        Calendar days, in any order, duplicates allowed

    Returns
    -------
    list[int]
        Run lengths in chronological order of the runs
    """
    streaks: list[int] = []
    previous: date | None = None
    for day in sorted(set(days)):
        if previous is not None and day - previous == timedelta(days=1):
            streaks[-1] += 1
        else:
            streaks.append(1)
        previous = day
    return streaks


def calculate_consistency_points(
    check_ins: Iterable[CheckInRecord], rules: ScoringRules
) -> int:
    """Bonus points for consecutive-day streaks.

    Parameters
    ----------
    check_ins : Iterable[CheckInRecord]
        Window-scoped records of one participant
    rules : ScoringRules
        Competition scoring rules

    Returns
    -------
    int
        Consistency points

    Notes
    -----
    Every maximal run of ``L`` days earns
    ``L // consistency_threshold_days`` bonuses: with a threshold of 7, a
    7- or 8-day run earns one bonus and a 14-day run earns two. Runs never
    combine across a missed day. Only in-window days count, so the caller
    must pass window-scoped records.
    """
    threshold = rules.consistency_threshold_days
    completed = sum(
        length // threshold for length in find_streaks(collapse_check_in_days(check_ins))
    )
    return completed * rules.consistency_bonus
