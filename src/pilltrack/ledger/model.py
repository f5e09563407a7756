from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, StrictInt, field_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError

DEFAULT_NAME = "My Medication"
DEFAULT_TOTAL_PILLS = 30
DEFAULT_DAILY_DOSE = 1


class MedicationConfig(BaseModel):
    """What is being tracked and how fast it is used up."""

    model_config = ConfigDict(frozen=True)

    name: str
    total_pills: StrictInt
    daily_dose: StrictInt
    start_date: date

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be empty")
        return v

    @field_validator("total_pills", "daily_dose")
    @classmethod
    def at_least_one(cls, v: int, info) -> int:
        if v < 1:
            raise ValueError(f"{info.field_name} must be >= 1, got {v}")
        return v


def make_config(name: Any, total_pills: Any, daily_dose: Any, start_date: Any) -> MedicationConfig:
    """Build a MedicationConfig, converting pydantic errors to ValidationError."""
    try:
        return MedicationConfig(
            name=name,
            total_pills=total_pills,
            daily_dose=daily_dose,
            start_date=start_date,
        )
    except PydanticValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ValidationError(f"Invalid medication settings: {problems}") from e


@dataclass(frozen=True)
class IntakeEntry:
    """Pills taken on one calendar date."""

    date: date
    count: int


@dataclass(frozen=True)
class ForecastPoint:
    date: date
    remaining: int


@dataclass(frozen=True)
class ForecastSummary:
    """Figures derived from the current inventory at a reference date.

    Attributes:
        days_remaining: whole days of supply left at the daily dose
        run_out_date: reference_date + days_remaining
        percent_remaining: pills_remaining as a percentage of total_pills
        next_refill_date: first refill on or after the reference date, if any
        runs_out_before_refill: True when run_out_date precedes next_refill_date
    """

    reference_date: date
    pills_remaining: int
    total_pills: int
    daily_dose: int
    days_remaining: int
    run_out_date: date
    percent_remaining: float
    next_refill_date: Optional[date] = None
    runs_out_before_refill: bool = False


@dataclass(frozen=True)
class IntakeStats:
    total: int
    days: int
    average: float
