"""Day-boundary helpers shared by every scoring step.

All windowing and streak detection uses UTC calendar days. Keeping the
conversion in one place is what makes every viewer see the same numbers.
"""

from collections.abc import Iterable
from datetime import date, datetime, timedelta, timezone

from mealcomp.checkins.schemas import CheckInRecord


def utc_day(moment: datetime) -> date:
    """Get the UTC calendar day of a timestamp.

    Parameters
    ----------
    moment : datetime
        Any timestamp; naive values are taken as UTC

    Returns
    -------
    date
        Calendar day in UTC
    """
    if moment.tzinfo is None:
        return moment.date()
    return moment.astimezone(timezone.utc).date()


def in_window(moment: datetime, start_date: date, end_date: date) -> bool:
    """Check whether a timestamp falls on a day of an inclusive window."""
    return start_date <= utc_day(moment) <= end_date


def window_check_ins(
    check_ins: Iterable[CheckInRecord],
    participant_id: str,
    start_date: date,
    end_date: date,
) -> list[CheckInRecord]:
    """Select a participant's check-ins inside a window, once per id.

    Parameters
    ----------
    check_ins : Iterable[CheckInRecord]
        Possibly over-fetched records, in any order
    participant_id : str
        Participant whose records are kept
    start_date : date
        First day of the window (inclusive)
    end_date : date
        Last day of the window (inclusive)

    Returns
    -------
    list[CheckInRecord]
        Records ordered by ``(occurred_at, id)``

    Notes
    -----
    When the same id appears more than once the earliest occurrence wins, so
    aggregating the same data twice never double-counts.
    """
    selected: dict[str, CheckInRecord] = {}
    for record in sorted(check_ins, key=lambda r: (r.occurred_at, r.id)):
        if record.participant_id != participant_id:
            continue
        if not in_window(record.occurred_at, start_date, end_date):
            continue
        selected.setdefault(record.id, record)
    return sorted(selected.values(), key=lambda r: (r.occurred_at, r.id))


def get_fetch_boundaries(start_date: date, end_date: date) -> tuple[datetime, datetime]:
    """Get the instants a check-in source should query between.

    Over-fetches by one day on each side; the engine does the exact filtering.

    Returns
    -------
    tuple[datetime, datetime]
        (fetch_start, fetch_end) as UTC datetimes, end exclusive
    """
    fetch_start = datetime.combine(
        start_date - timedelta(days=1), datetime.min.time(), tzinfo=timezone.utc
    )
    fetch_end = datetime.combine(
        end_date + timedelta(days=2), datetime.min.time(), tzinfo=timezone.utc
    )
    return fetch_start, fetch_end
