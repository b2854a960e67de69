"""Competition service: storage operations and definition mapping."""

from loguru import logger
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from mealcomp.competitions.exceptions import CompetitionAccessDenied, CompetitionNotFound
from mealcomp.competitions.models import Competition, CompetitionParticipant
from mealcomp.competitions.schemas import (
    CompetitionCreate,
    CompetitionDefinition,
    CompetitionUpdate,
    ScoringRules,
)


class CompetitionService:
    """Service for managing competitions in the database."""

    @staticmethod
    def to_definition(competition: Competition) -> CompetitionDefinition:
        """Map a ``competitions`` row (with participants) to a definition.

        Competitions stored without scoring criteria get zero-point rules.
        """
        return CompetitionDefinition(
            id=competition.id,
            owner_id=competition.nutritionist_id,
            version=competition.version,
            name=competition.name,
            description=competition.description,
            start_date=competition.start_date,
            end_date=competition.end_date,
            participant_ids=[p.patient_id for p in competition.participants],
            scoring_rules=ScoringRules.model_validate(competition.scoring_criteria or {}),
        )

    @staticmethod
    def ensure_can_view(definition: CompetitionDefinition, viewer_id: str) -> None:
        """Allow the owner and the participants only."""
        if viewer_id != definition.owner_id and viewer_id not in definition.participant_ids:
            raise CompetitionAccessDenied(definition.id, viewer_id)

    @staticmethod
    def ensure_owner(definition: CompetitionDefinition, viewer_id: str) -> None:
        if viewer_id != definition.owner_id:
            raise CompetitionAccessDenied(definition.id, viewer_id)

    async def get_competition(self, db: AsyncSession, competition_id: str) -> Competition:
        """Get competition by ID.

        Raises
        ------
        CompetitionNotFound
            If no competition has this ID
        """
        result = await db.execute(
            select(Competition).filter(Competition.id == competition_id)
        )
        competition = result.scalar_one_or_none()
        if competition is None:
            raise CompetitionNotFound(competition_id)
        return competition

    async def get_definition(
        self, db: AsyncSession, competition_id: str
    ) -> CompetitionDefinition:
        """Get the current definition of a competition."""
        return self.to_definition(await self.get_competition(db, competition_id))

    async def create_competition(
        self, db: AsyncSession, owner_id: str, data: CompetitionCreate
    ) -> CompetitionDefinition:
        """Create a competition owned by a nutritionist."""
        competition = Competition(
            nutritionist_id=owner_id,
            name=data.name,
            description=data.description,
            start_date=data.start_date,
            end_date=data.end_date,
            scoring_criteria=data.scoring_rules.model_dump(),
            version=1,
        )
        db.add(competition)
        await db.commit()
        await db.refresh(competition)

        logger.info(
            "Created competition", competition_id=competition.id, owner_id=owner_id
        )
        return self.to_definition(competition)

    async def update_competition(
        self,
        db: AsyncSession,
        owner_id: str,
        competition_id: str,
        data: CompetitionUpdate,
    ) -> CompetitionDefinition:
        """Change a competition's metadata, window or rules.

        A window or rules change bumps the definition version; earlier
        snapshots are then stale and cannot be updated incrementally.
        """
        competition = await self.get_competition(db, competition_id)
        self.ensure_owner(self.to_definition(competition), owner_id)

        if data.name is not None:
            competition.name = data.name
        if data.description is not None:
            competition.description = data.description

        changed = False
        if data.start_date is not None and data.start_date != competition.start_date:
            competition.start_date = data.start_date
            changed = True
        if data.end_date is not None and data.end_date != competition.end_date:
            competition.end_date = data.end_date
            changed = True
        if data.scoring_rules is not None:
            rules = data.scoring_rules.model_dump()
            if rules != ScoringRules.model_validate(competition.scoring_criteria or {}).model_dump():
                competition.scoring_criteria = rules
                changed = True
        if changed:
            competition.version = competition.version + 1

        await db.commit()
        await db.refresh(competition)

        logger.info(
            "Updated competition",
            competition_id=competition_id,
            version=competition.version,
        )
        return self.to_definition(competition)

    async def list_owned(
        self, db: AsyncSession, owner_id: str
    ) -> list[CompetitionDefinition]:
        """Get competitions owned by a nutritionist, newest first."""
        result = await db.execute(
            select(Competition)
            .filter(Competition.nutritionist_id == owner_id)
            .order_by(Competition.created_at.desc(), Competition.id)
        )
        return [self.to_definition(c) for c in result.scalars().all()]

    async def list_visible(
        self, db: AsyncSession, viewer_id: str
    ) -> list[CompetitionDefinition]:
        """Get competitions the viewer owns or takes part in, newest first."""
        participating = select(CompetitionParticipant.competition_id).filter(
            CompetitionParticipant.patient_id == viewer_id
        )
        result = await db.execute(
            select(Competition)
            .filter(
                or_(
                    Competition.nutritionist_id == viewer_id,
                    Competition.id.in_(participating),
                )
            )
            .order_by(Competition.created_at.desc(), Competition.id)
        )
        return [self.to_definition(c) for c in result.scalars().all()]

    async def competitions_for_participant(
        self, db: AsyncSession, participant_id: str
    ) -> list[str]:
        """Get IDs of the competitions a patient takes part in."""
        result = await db.execute(
            select(CompetitionParticipant.competition_id)
            .filter(CompetitionParticipant.patient_id == participant_id)
            .order_by(CompetitionParticipant.competition_id)
        )
        return list(result.scalars().all())

    async def add_participant(
        self, db: AsyncSession, owner_id: str, competition_id: str, patient_id: str
    ) -> CompetitionDefinition:
        """Add a patient to a competition (no-op if already a participant)."""
        competition = await self.get_competition(db, competition_id)
        definition = self.to_definition(competition)
        self.ensure_owner(definition, owner_id)

        if patient_id in definition.participant_ids:
            return definition

        competition.participants.append(
            CompetitionParticipant(competition_id=competition_id, patient_id=patient_id)
        )
        await db.commit()
        await db.refresh(competition)

        logger.info(
            "Added participant", competition_id=competition_id, patient_id=patient_id
        )
        return self.to_definition(competition)

    async def remove_participant(
        self, db: AsyncSession, owner_id: str, competition_id: str, patient_id: str
    ) -> CompetitionDefinition:
        """Remove a patient from a competition (no-op if not a participant)."""
        competition = await self.get_competition(db, competition_id)
        self.ensure_owner(self.to_definition(competition), owner_id)

        for participant in list(competition.participants):
            if participant.patient_id == patient_id:
                competition.participants.remove(participant)
        await db.commit()
        await db.refresh(competition)

        logger.info(
            "Removed participant", competition_id=competition_id, patient_id=patient_id
        )
        return self.to_definition(competition)


competition_service = CompetitionService()
