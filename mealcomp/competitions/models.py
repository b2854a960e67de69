"""Competition database models."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from mealcomp.core.database import Base


class Competition(Base):
    """Competition run by a nutritionist.

    ``scoring_criteria`` holds the serialized ``ScoringRules``; ``version``
    increases whenever the window or the rules change.
    """

    __tablename__ = "competitions"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))

    nutritionist_id = Column(String, nullable=False, index=True)

    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)

    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)

    scoring_criteria = Column(JSONB, nullable=True)
    version = Column(Integer, nullable=False, default=1)

    participants = relationship(
        "CompetitionParticipant",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self):
        return f"<Competition(id={self.id}, name='{self.name}', version={self.version})>"


class CompetitionParticipant(Base):
    """Membership of a patient in a competition."""

    __tablename__ = "competition_participants"

    competition_id = Column(
        String,
        ForeignKey("competitions.id", ondelete="CASCADE"),
        primary_key=True,
    )
    patient_id = Column(String, primary_key=True, index=True)

    joined_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
