"""Check-in service: storage operations and the scoring check-in source."""

import asyncio
from collections.abc import Iterable
from datetime import date, datetime, timezone

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mealcomp.checkins.models import MealCheckIn
from mealcomp.checkins.schemas import CheckInCreate, CheckInRecord, CheckInUpdate
from mealcomp.competitions.exceptions import CheckInNotFound
from mealcomp.scoring.calculator import get_fetch_boundaries
from mealcomp.scoring.leaderboard import FETCH_FAILED, ParticipantCheckIns

# Rows written without a timestamp took place when they were created
OCCURRED_AT = func.coalesce(MealCheckIn.timestamp, MealCheckIn.created_at)


class CheckInService:
    """Service for managing meal check-ins in the database."""

    async def get_check_in(
        self, db: AsyncSession, check_in_id: str
    ) -> MealCheckIn | None:
        """Get check-in by ID."""
        result = await db.execute(
            select(MealCheckIn).filter(MealCheckIn.id == check_in_id)
        )
        return result.scalar_one_or_none()

    async def add_check_in(
        self, db: AsyncSession, patient_id: str, data: CheckInCreate
    ) -> CheckInRecord:
        """Store a new check-in for a patient.

        Parameters
        ----------
        db : AsyncSession
            Database session
        patient_id : str
            Patient logging the check-in
        data : CheckInCreate
            Validated request body

        Returns
        -------
        CheckInRecord
            The stored check-in
        """
        check_in = MealCheckIn(
            patient_id=patient_id,
            meal_type=data.meal_type,
            timestamp=data.occurred_at or datetime.now(timezone.utc),
            hunger_rating=data.hunger_rating,
            satiety_rating=data.satiety_rating,
            satisfaction_rating=data.satisfaction_rating,
            photo_url=data.photo_url,
            tag=data.tag,
            observations=data.observations,
        )

        db.add(check_in)
        await db.commit()
        await db.refresh(check_in)

        logger.info("Created check-in", check_in_id=check_in.id, patient_id=patient_id)
        return CheckInRecord.from_row(check_in)

    async def delete_check_in(
        self, db: AsyncSession, patient_id: str, check_in_id: str
    ) -> None:
        """Delete one of the patient's own check-ins.

        Raises
        ------
        CheckInNotFound
            If the check-in does not exist or belongs to another patient
        """
        check_in = await self.get_check_in(db, check_in_id)
        if check_in is None or check_in.patient_id != patient_id:
            raise CheckInNotFound(check_in_id)

        await db.delete(check_in)
        await db.commit()

        logger.info("Deleted check-in", check_in_id=check_in_id, patient_id=patient_id)

    async def update_check_in(
        self,
        db: AsyncSession,
        patient_id: str,
        check_in_id: str,
        data: CheckInUpdate,
    ) -> CheckInRecord:
        """Edit one of the patient's own check-ins.

        Parameters
        ----------
        db : AsyncSession
            Database session
        patient_id : str
            Patient editing the check-in
        check_in_id : str
            Check-in to edit
        data : CheckInUpdate
            Fields to change; fields not sent are kept

        Returns
        -------
        CheckInRecord
            The edited check-in

        Raises
        ------
        CheckInNotFound
            If the check-in does not exist or belongs to another patient
        """
        check_in = await self.get_check_in(db, check_in_id)
        if check_in is None or check_in.patient_id != patient_id:
            raise CheckInNotFound(check_in_id)

        changes = data.model_dump(exclude_unset=True)
        if "occurred_at" in changes:
            changes["timestamp"] = changes.pop("occurred_at")
        for field, value in changes.items():
            setattr(check_in, field, value)

        await db.commit()
        await db.refresh(check_in)

        logger.info(
            "Updated check-in",
            check_in_id=check_in_id,
            patient_id=patient_id,
            fields=sorted(changes),
        )
        return CheckInRecord.from_row(check_in)

    async def list_patient_check_ins(
        self,
        db: AsyncSession,
        patient_id: str,
        limit: int = 50,
        offset: int = 0,
    ) -> list[CheckInRecord]:
        """Get a patient's check-ins, most recent first."""
        result = await db.execute(
            select(MealCheckIn)
            .filter(MealCheckIn.patient_id == patient_id)
            .order_by(OCCURRED_AT.desc(), MealCheckIn.id)
            .limit(limit)
            .offset(offset)
        )
        return [CheckInRecord.from_row(row) for row in result.scalars().all()]

    async def fetch_participant_check_ins(
        self,
        db: AsyncSession,
        participant_id: str,
        start_date: date,
        end_date: date,
    ) -> list[CheckInRecord]:
        """Fetch every check-in that could fall inside a competition window.

        Over-fetches around the window; the scoring engine filters exactly.
        Rows without a ``timestamp`` are matched on ``created_at``, the same
        instant ``CheckInRecord.from_row`` assigns them. Errors propagate so that a failed fetch is never mistaken for an
        empty list.
        """
        fetch_start, fetch_end = get_fetch_boundaries(start_date, end_date)
        result = await db.execute(
            select(MealCheckIn)
            .filter(
                MealCheckIn.patient_id == participant_id,
                OCCURRED_AT >= fetch_start,
                OCCURRED_AT < fetch_end,
            )
            .order_by(OCCURRED_AT, MealCheckIn.id)
        )
        return [CheckInRecord.from_row(row) for row in result.scalars().all()]

    async def fetch_many(
        self,
        session_maker: async_sessionmaker,
        participant_ids: Iterable[str],
        start_date: date,
        end_date: date,
        concurrency: int = 8,
    ) -> dict[str, ParticipantCheckIns]:
        """Fetch several participants' check-ins concurrently.

        Each participant is fetched in its own session. A participant whose
        fetch fails maps to ``FETCH_FAILED``.

        Parameters
        ----------
        session_maker : async_sessionmaker
            Session factory (one session per concurrent fetch)
        participant_ids : Iterable[str]
            Participants to fetch
        start_date : date
            First day of the competition window
        end_date : date
            Last day of the competition window
        concurrency : int
            Maximum number of fetches in flight

        Returns
        -------
        dict[str, ParticipantCheckIns]
            Check-ins or ``FETCH_FAILED`` per participant
        """
        semaphore = asyncio.Semaphore(max(concurrency, 1))

        async def fetch_one(participant_id: str) -> ParticipantCheckIns:
            async with semaphore:
                try:
                    async with session_maker() as session:
                        return await self.fetch_participant_check_ins(
                            session, participant_id, start_date, end_date
                        )
                except Exception as e:
                    logger.error(
                        "Check-in fetch failed",
                        participant_id=participant_id,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    return FETCH_FAILED

        ids = list(participant_ids)
        results = await asyncio.gather(*(fetch_one(pid) for pid in ids))
        return dict(zip(ids, results))


check_in_service = CheckInService()
