from __future__ import annotations

from datetime import date, timedelta
from typing import Callable, Iterable, List, Optional, Tuple

from .errors import InsufficientInventory, ValidationError
from .forecast import Forecast, RefillPolicy, next_refill_date
from .model import (
    DEFAULT_DAILY_DOSE,
    DEFAULT_NAME,
    DEFAULT_TOTAL_PILLS,
    ForecastSummary,
    IntakeEntry,
    IntakeStats,
    MedicationConfig,
    make_config,
)

Clock = Callable[[], date]


class Ledger:
    """Medication inventory and intake history.

    The ledger holds no I/O: callers load and save it through a store. `clock`
    supplies "today" for intake dating and defaults to `date.today`.
    """

    def __init__(
        self,
        config: MedicationConfig,
        pills_remaining: Optional[int] = None,
        intake_history: Iterable[IntakeEntry] = (),
        version: int = 0,
        clock: Optional[Clock] = None,
    ):
        self.config = config
        self._clock: Clock = clock or date.today
        self._pills_remaining = config.total_pills if pills_remaining is None else pills_remaining
        self._history: List[IntakeEntry] = list(intake_history)
        self.version = int(version)
        self._check_invariants()

    @classmethod
    def default(cls, clock: Optional[Clock] = None) -> "Ledger":
        today = (clock or date.today)()
        cfg = make_config(DEFAULT_NAME, DEFAULT_TOTAL_PILLS, DEFAULT_DAILY_DOSE, today)
        return cls(cfg, clock=clock)

    def _check_invariants(self) -> None:
        total = self.config.total_pills
        if isinstance(self._pills_remaining, bool) or not isinstance(self._pills_remaining, int):
            raise ValidationError(f"pills_remaining must be an integer, got {self._pills_remaining!r}")
        if not 0 <= self._pills_remaining <= total:
            raise ValidationError(f"pills_remaining must be within [0, {total}], got {self._pills_remaining}")
        seen = set()
        for entry in self._history:
            if entry.count < 1:
                raise ValidationError(f"intake count must be >= 1, got {entry.count} on {entry.date}")
            if entry.date in seen:
                raise ValidationError(f"duplicate intake entry for {entry.date}")
            seen.add(entry.date)

    # ---- read-only state ----

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def total_pills(self) -> int:
        return self.config.total_pills

    @property
    def daily_dose(self) -> int:
        return self.config.daily_dose

    @property
    def start_date(self) -> date:
        return self.config.start_date

    @property
    def pills_remaining(self) -> int:
        return self._pills_remaining

    @property
    def intake_history(self) -> Tuple[IntakeEntry, ...]:
        return tuple(self._history)

    # ---- mutations ----

    def update_settings(self, name: str, total_pills: int, daily_dose: int, start_date: date) -> None:
        """Replace the configuration.

        Changing total_pills assumes a fresh container: pills_remaining is reset
        to the new capacity rather than scaled.
        """
        new_cfg = make_config(name, total_pills, daily_dose, start_date)
        if new_cfg.total_pills != self.config.total_pills:
            self._pills_remaining = new_cfg.total_pills
        self.config = new_cfg
        self.version += 1

    def record_intake(self, count: int) -> IntakeEntry:
        """Take `count` pills today; returns today's (possibly merged) entry.

        Raises InsufficientInventory without touching state when count exceeds
        what remains.
        """
        if isinstance(count, bool) or not isinstance(count, int) or count < 1:
            raise ValidationError(f"Intake count must be a positive integer, got {count!r}")
        if count > self._pills_remaining:
            raise InsufficientInventory(count, self._pills_remaining)
        today = self._clock()
        entry = None
        for i, existing in enumerate(self._history):
            if existing.date == today:
                entry = IntakeEntry(date=today, count=existing.count + count)
                self._history[i] = entry
                break
        if entry is None:
            entry = IntakeEntry(date=today, count=count)
            self._history.append(entry)
        self._pills_remaining = max(0, self._pills_remaining - count)
        self.version += 1
        return entry

    def reset_medicine(self) -> None:
        """Refill: full container, empty history."""
        self._pills_remaining = self.config.total_pills
        self._history = []
        self.version += 1

    # ---- derived ----

    def project_forecast(
        self,
        horizon_days: int,
        reference_date: Optional[date] = None,
        refill_policy: Optional[RefillPolicy] = None,
    ) -> Forecast:
        return Forecast(
            pills_remaining=self._pills_remaining,
            total_pills=self.config.total_pills,
            daily_dose=self.config.daily_dose,
            horizon_days=horizon_days,
            reference_date=reference_date or self._clock(),
            refill_policy=refill_policy,
        )

    def days_remaining(self) -> int:
        return self._pills_remaining // self.config.daily_dose

    def summary(self, reference_date: Optional[date] = None, refill_policy: Optional[RefillPolicy] = None) -> ForecastSummary:
        ref = reference_date or self._clock()
        days = self.days_remaining()
        run_out = ref + timedelta(days=days)
        refill = next_refill_date(refill_policy, ref)
        return ForecastSummary(
            reference_date=ref,
            pills_remaining=self._pills_remaining,
            total_pills=self.config.total_pills,
            daily_dose=self.config.daily_dose,
            days_remaining=days,
            run_out_date=run_out,
            percent_remaining=100.0 * self._pills_remaining / self.config.total_pills,
            next_refill_date=refill,
            runs_out_before_refill=refill is not None and run_out < refill,
        )

    def intake_stats(self) -> IntakeStats:
        if not self._history:
            return IntakeStats(total=0, days=0, average=0.0)
        total = sum(e.count for e in self._history)
        return IntakeStats(total=total, days=len(self._history), average=total / len(self._history))
