"""
Ledger service: binds one user's Ledger to a store.

What it does:
- Loads the ledger on open (or creates the default ledger on first use).
- Forwards mutations to the Ledger, then saves explicitly with the version it
  last loaded or saved, so a concurrent writer is detected, not overwritten.
- Publishes a structured event and updates metrics for every mutation.

Where it is used:
- The CLI (`pilltrack.main`), the HTTP API and the report generator each own
  one service instance; nothing here is module-level state.
"""

from __future__ import annotations

import logging
import time
from datetime import date
from typing import Optional

from .events.bus import publish as publish_event
from .events.schema import (
    BaseEvent,
    EventEnvelope,
    IntakeRecorded,
    IntakeRejected,
    MedicineReset,
    SettingsUpdated,
)
from .ledger import (
    Forecast,
    ForecastSummary,
    InsufficientInventory,
    IntakeEntry,
    Ledger,
    PersistenceFailure,
    RefillPolicy,
    ValidationError,
)
from .ledger.ledger import Clock
from .metrics.ledger import (
    get_days_remaining_gauge,
    get_intakes_recorded_total,
    get_intakes_rejected_total,
    get_medicine_resets_total,
    get_pills_remaining_gauge,
    get_pills_taken_total,
    get_store_errors_total,
)
from .store import SQLiteStore

log = logging.getLogger("pilltrack.service")


class LedgerService:
    def __init__(
        self,
        store: SQLiteStore,
        user_id: str = "default",
        refill_policy: Optional[RefillPolicy] = None,
        horizon_days: int = 30,
        clock: Optional[Clock] = None,
    ):
        self.store = store
        self.user_id = user_id
        self.refill_policy = refill_policy
        self.horizon_days = horizon_days
        self.clock: Clock = clock or date.today
        self._sequence = 0
        self._stored_version = 0
        self.ledger = self._load()

    def _load(self) -> Ledger:
        try:
            ledger = self.store.load(self.user_id, clock=self.clock)
        except PersistenceFailure:
            get_store_errors_total().labels("load").inc()
            log.error(f"failed to load ledger for {self.user_id}", exc_info=True)
            raise
        if ledger is None:
            log.info(f"no stored ledger for {self.user_id}; starting with defaults")
            ledger = Ledger.default(clock=self.clock)
            self._stored_version = 0
        else:
            self._stored_version = ledger.version
        self._update_gauges(ledger)
        return ledger

    def save(self) -> None:
        """Persist the in-memory ledger.

        On failure the in-memory ledger is kept as is and the error propagates.
        """
        try:
            self.store.save(self.user_id, self.ledger, expected_version=self._stored_version)
        except PersistenceFailure:
            get_store_errors_total().labels("save").inc()
            log.error(f"failed to save ledger for {self.user_id}", exc_info=True)
            raise
        self._stored_version = self.ledger.version

    # ---- mutations ----

    def update_settings(self, name: str, total_pills: int, daily_dose: int, start_date: date) -> None:
        before = self.ledger.total_pills
        self.ledger.update_settings(name, total_pills, daily_dose, start_date)
        self._emit(SettingsUpdated(
            **self._base(),
            total_pills=self.ledger.total_pills,
            daily_dose=self.ledger.daily_dose,
            start_date=self.ledger.start_date.isoformat(),
            capacity_changed=before != self.ledger.total_pills,
        ))
        self._after_mutation()

    def record_intake(self, count: int) -> IntakeEntry:
        try:
            entry = self.ledger.record_intake(count)
        except InsufficientInventory as e:
            get_intakes_rejected_total().labels("insufficient_inventory").inc()
            self._emit(IntakeRejected(**self._base(), count=e.requested, reason="insufficient_inventory", deficit=e.deficit))
            raise
        except ValidationError:
            get_intakes_rejected_total().labels("invalid").inc()
            self._emit(IntakeRejected(**self._base(), count=count if isinstance(count, int) and not isinstance(count, bool) else None, reason="invalid"))
            raise
        get_intakes_recorded_total().inc()
        get_pills_taken_total().inc(count)
        self._emit(IntakeRecorded(**self._base(), count=count, day_total=entry.count, date=entry.date.isoformat()))
        self._after_mutation()
        return entry

    def reset_medicine(self) -> None:
        self.ledger.reset_medicine()
        get_medicine_resets_total().inc()
        self._emit(MedicineReset(**self._base(), total_pills=self.ledger.total_pills))
        self._after_mutation()

    # ---- reads ----

    def forecast(self, horizon_days: Optional[int] = None, reference_date: Optional[date] = None) -> Forecast:
        days = self.horizon_days if horizon_days is None else horizon_days
        return self.ledger.project_forecast(days, reference_date or self.clock(), self.refill_policy)

    def summary(self, reference_date: Optional[date] = None) -> ForecastSummary:
        return self.ledger.summary(reference_date or self.clock(), self.refill_policy)

    # ---- internals ----

    def _after_mutation(self) -> None:
        self._update_gauges(self.ledger)
        self.save()

    def _update_gauges(self, ledger: Ledger) -> None:
        get_pills_remaining_gauge().set(ledger.pills_remaining)
        get_days_remaining_gauge().set(ledger.days_remaining())

    def _base(self) -> dict:
        return {
            "ts": int(time.time() * 1000),
            "user_id": self.user_id,
            "medication": self.ledger.name,
            "pills_remaining": self.ledger.pills_remaining,
        }

    def _emit(self, evt: BaseEvent) -> None:
        self._sequence += 1
        publish_event(EventEnvelope(correlation_id=f"{self.user_id}:{self.ledger.version}", sequence=self._sequence, event=evt))
