"""Meal check-in database models."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String, Text

from mealcomp.core.database import Base


class MealCheckIn(Base):
    """Meal check-in logged by a patient."""

    __tablename__ = "meal_check_ins"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))

    patient_id = Column(String, nullable=False, index=True)

    meal_type = Column(String, nullable=False)  # breakfast, lunch, dinner, snack
    timestamp = Column(DateTime(timezone=True), nullable=True, index=True)  # UTC

    # Ratings (1-5); satiety is recorded but not scored
    hunger_rating = Column(Integer, nullable=True)
    satiety_rating = Column(Integer, nullable=True)
    satisfaction_rating = Column(Integer, nullable=True)

    photo_url = Column(String, nullable=True)
    tag = Column(String, nullable=True)
    observations = Column(Text, nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self):
        return f"<MealCheckIn(id={self.id}, patient_id='{self.patient_id}', timestamp={self.timestamp})>"
