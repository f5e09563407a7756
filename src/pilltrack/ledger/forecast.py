"""
Forward projection of the pill count and refill policies.

A forecast is a pure function of (remaining, total, dose, horizon, reference
date, refill policy). `Forecast` is lazy and restartable: each iteration
recomputes the sequence from its inputs, so repeated reads always agree.

Refill policies answer one question: does the container get refilled on a
given day? Two rules are provided:
- `MonthlyRefill(19)`: the 19th of each month (last day for short months)
- `FixedDateRefill(date(2024, 3, 17))`: a single known pharmacy date
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Iterator, List, Mapping, Optional, Protocol

from .errors import ValidationError
from .model import ForecastPoint

REFILL_SEARCH_DAYS = 366


class RefillPolicy(Protocol):
    def matches(self, day: date) -> bool: ...


@dataclass(frozen=True)
class MonthlyRefill:
    day_of_month: int

    def __post_init__(self) -> None:
        if isinstance(self.day_of_month, bool) or not isinstance(self.day_of_month, int) or not 1 <= self.day_of_month <= 31:
            raise ValidationError(f"day_of_month must be an integer in 1..31, got {self.day_of_month!r}")

    def matches(self, day: date) -> bool:
        last = calendar.monthrange(day.year, day.month)[1]
        return day.day == min(self.day_of_month, last)


@dataclass(frozen=True)
class FixedDateRefill:
    on: date

    def matches(self, day: date) -> bool:
        return day == self.on


def refill_policy_from_config(cfg: Optional[Mapping[str, Any]]) -> Optional[RefillPolicy]:
    """Build a refill policy from a config mapping.

    Accepted shapes: None, {"type": "none"}, {"type": "monthly", "day": 19},
    {"type": "fixed", "date": "2024-03-17"}.
    """
    if not cfg:
        return None
    kind = str(cfg.get("type", "none")).lower()
    if kind == "none":
        return None
    if kind == "monthly":
        return MonthlyRefill(cfg.get("day", 1))
    if kind == "fixed":
        raw = cfg.get("date")
        if isinstance(raw, date):
            return FixedDateRefill(raw)
        try:
            return FixedDateRefill(date.fromisoformat(str(raw)))
        except ValueError as e:
            raise ValidationError(f"Invalid fixed refill date: {raw!r}") from e
    raise ValidationError(f"Unknown refill policy type: {kind!r}")


def next_refill_date(policy: Optional[RefillPolicy], start: date, within_days: int = REFILL_SEARCH_DAYS) -> Optional[date]:
    """Return the first day on or after `start` matched by `policy`."""
    if policy is None:
        return None
    for offset in range(within_days):
        day = start + timedelta(days=offset)
        if policy.matches(day):
            return day
    return None


class Forecast:
    """Day-by-day projected pill counts starting at `reference_date`."""

    def __init__(
        self,
        pills_remaining: int,
        total_pills: int,
        daily_dose: int,
        horizon_days: int,
        reference_date: date,
        refill_policy: Optional[RefillPolicy] = None,
    ):
        if isinstance(horizon_days, bool) or not isinstance(horizon_days, int) or horizon_days < 0:
            raise ValidationError(f"horizon_days must be a non-negative integer, got {horizon_days!r}")
        if daily_dose < 1:
            raise ValidationError(f"daily_dose must be >= 1, got {daily_dose}")
        self.pills_remaining = int(pills_remaining)
        self.total_pills = int(total_pills)
        self.daily_dose = int(daily_dose)
        self.horizon_days = horizon_days
        self.reference_date = reference_date
        self.refill_policy = refill_policy

    def __iter__(self) -> Iterator[ForecastPoint]:
        remaining = self.pills_remaining
        for offset in range(self.horizon_days):
            day = self.reference_date + timedelta(days=offset)
            if self.refill_policy is not None and self.refill_policy.matches(day):
                remaining = self.total_pills
            yield ForecastPoint(date=day, remaining=max(0, remaining))
            remaining = max(0, remaining - self.daily_dose)

    def __len__(self) -> int:
        return self.horizon_days

    def points(self) -> List[ForecastPoint]:
        return list(self)

    def refill_dates(self) -> List[date]:
        """Dates inside the horizon on which the policy refills."""
        if self.refill_policy is None:
            return []
        return [p.date for p in self if self.refill_policy.matches(p.date)]
