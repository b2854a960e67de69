"""Pydantic schemas for competitions."""

from collections.abc import Iterable
from datetime import date
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class ScoringRules(BaseModel):
    """Point values a competition awards.

    Attributes
    ----------
    check_in_points : int
        Points per check-in inside the window
    consistency_bonus : int
        Bonus per completed streak of ``consistency_threshold_days`` days
    consistency_threshold_days : int
        Consecutive days needed for one consistency bonus
    rating_bonus : int
        Bonus per check-in whose ratings both reach ``rating_bonus_threshold``
    rating_bonus_threshold : int
        Minimum hunger and satisfaction rating for the rating bonus
    """

    check_in_points: int = Field(
        0, ge=0, validation_alias=AliasChoices("check_in_points", "checkInPoints")
    )
    consistency_bonus: int = Field(
        0, ge=0, validation_alias=AliasChoices("consistency_bonus", "consistencyBonus")
    )
    consistency_threshold_days: int = Field(
        7,
        ge=1,
        validation_alias=AliasChoices(
            "consistency_threshold_days", "consistencyThresholdDays"
        ),
    )
    rating_bonus: int = Field(
        0, ge=0, validation_alias=AliasChoices("rating_bonus", "ratingBonus")
    )
    rating_bonus_threshold: int = Field(
        4,
        ge=1,
        le=5,
        validation_alias=AliasChoices("rating_bonus_threshold", "ratingBonusThreshold"),
    )

    # Criteria rows written by the mobile app use camelCase keys; any other
    # key is a schema mismatch and must not turn into zero-point rules
    model_config = ConfigDict(frozen=True, extra="forbid")


class CompetitionDefinition(BaseModel):
    """One version of a competition, treated as an immutable value.

    ``start_date > end_date`` is accepted here so that the leaderboard builder
    can refuse it with ``InvalidWindowError``.
    """

    id: str
    owner_id: str
    version: int = Field(1, ge=1)
    name: str = ""
    description: str | None = None
    start_date: date
    end_date: date
    participant_ids: tuple[str, ...] = ()
    scoring_rules: ScoringRules = ScoringRules()

    model_config = ConfigDict(frozen=True)

    @field_validator("participant_ids", mode="before")
    @classmethod
    def _unique_sorted(cls, value: Any) -> tuple[str, ...]:
        return tuple(sorted(set(value)))

    def with_participants(self, participant_ids: Iterable[str]) -> "CompetitionDefinition":
        """Return a copy with a different participant set (same version)."""
        return self.model_validate(
            {**self.model_dump(), "participant_ids": tuple(participant_ids)}
        )

    def status_on(self, day: date) -> Literal["upcoming", "active", "finished"]:
        """Competition status on a given UTC calendar day."""
        if day < self.start_date:
            return "upcoming"
        if day > self.end_date:
            return "finished"
        return "active"


class CompetitionCreate(BaseModel):
    """Request body for creating a competition."""

    name: str
    description: str | None = None
    start_date: date = Field(..., examples=["2024-01-01"])
    end_date: date = Field(..., examples=["2024-01-31"])
    scoring_rules: ScoringRules = ScoringRules()


class CompetitionUpdate(BaseModel):
    """Request body for changing a competition's window or rules.

    Any change produces a new definition version.
    """

    name: str | None = None
    description: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    scoring_rules: ScoringRules | None = None


class CompetitionResponse(BaseModel):
    """Competition as returned by the API."""

    id: str
    owner_id: str
    version: int
    name: str
    description: str | None
    start_date: date
    end_date: date
    participant_ids: list[str]
    scoring_rules: ScoringRules
    status: Literal["upcoming", "active", "finished"]
