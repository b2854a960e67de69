"""Pydantic schemas for meal check-ins."""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class CheckInRecord(BaseModel):
    """Canonical, immutable representation of one meal check-in.

    Ratings are deliberately not range-constrained here: out-of-range values
    coming from storage must reach the scoring engine so that they are
    reported as excluded instead of disappearing at the mapping boundary.

    Attributes
    ----------
    id : str
        Opaque check-in identifier
    participant_id : str
        Patient who logged the check-in
    occurred_at : datetime
        Check-in instant (timezone-aware, UTC if given naive)
    hunger_rating : int
        Hunger rating, expected in [1, 5]
    satisfaction_rating : int
        Satisfaction rating, expected in [1, 5]
    satiety_rating : int | None
        Satiety rating; recorded but never scored
    meal_type : str | None
        Meal label (breakfast, lunch, ...)
    tag : str | None
        Free-form tag chosen by the patient
    observations : str | None
        Patient notes
    photo_url : str | None
        Public URL of the meal photo
    """

    id: str
    participant_id: str
    occurred_at: datetime
    hunger_rating: int
    satisfaction_rating: int
    satiety_rating: int | None = None
    meal_type: str | None = None
    tag: str | None = None
    observations: str | None = None
    photo_url: str | None = None

    model_config = ConfigDict(frozen=True)

    @field_validator("occurred_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @classmethod
    def from_row(cls, row: Any) -> "CheckInRecord":
        """Map a ``meal_check_ins`` row to a record.

        This is the only place where stored check-ins are converted for
        scoring. Missing ratings become 0, which the aggregator rejects as
        out of range.

        Parameters
        ----------
        row : Any
            ``MealCheckIn`` ORM instance or any object with the same attributes

        Returns
        -------
        CheckInRecord
            Scoring-ready record
        """
        occurred_at = row.timestamp if row.timestamp is not None else row.created_at
        return cls(
            id=str(row.id),
            participant_id=str(row.patient_id),
            occurred_at=occurred_at,
            hunger_rating=row.hunger_rating or 0,
            satisfaction_rating=row.satisfaction_rating or 0,
            satiety_rating=row.satiety_rating,
            meal_type=row.meal_type,
            tag=row.tag,
            observations=row.observations,
            photo_url=row.photo_url,
        )


class CheckInCreate(BaseModel):
    """Request body for logging a new check-in."""

    meal_type: str
    occurred_at: datetime | None = Field(
        None,
        description="Check-in instant (ISO 8601). Defaults to now.",
        examples=["2024-01-15T12:30:00Z"],
    )
    hunger_rating: int = Field(..., ge=1, le=5)
    satiety_rating: int | None = Field(None, ge=1, le=5)
    satisfaction_rating: int = Field(..., ge=1, le=5)
    tag: str | None = None
    observations: str | None = None
    photo_url: str | None = None


class CheckInUpdate(BaseModel):
    """Request body for editing a check-in; only the fields sent change."""

    meal_type: str | None = None
    occurred_at: datetime | None = Field(None, examples=["2024-01-15T12:30:00Z"])
    hunger_rating: int | None = Field(None, ge=1, le=5)
    satiety_rating: int | None = Field(None, ge=1, le=5)
    satisfaction_rating: int | None = Field(None, ge=1, le=5)
    tag: str | None = None
    observations: str | None = None
    photo_url: str | None = None

    @model_validator(mode="after")
    def _required_fields_not_cleared(self) -> "CheckInUpdate":
        for field in ("meal_type", "occurred_at", "hunger_rating", "satisfaction_rating"):
            if field in self.model_fields_set and getattr(self, field) is None:
                raise ValueError(f"{field} cannot be cleared")
        return self
