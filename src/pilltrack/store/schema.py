"""Persisted ledger layout (one JSON object per user).

    {"schemaVersion": 1, "version": 3, "name": "...", "totalPills": 30,
     "pillsRemaining": 25, "dailyDose": 1, "startDate": "2024-03-01",
     "intakeHistory": [{"date": "2024-03-02", "count": 5}]}

Blobs written before `schemaVersion` existed load as version 1.
"""

from __future__ import annotations

import datetime as dt
from datetime import date
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..ledger import IntakeEntry, Ledger, make_config
from ..ledger.ledger import Clock

SCHEMA_VERSION = 1


class IntakeRecord(BaseModel):
    date: dt.date
    count: int


class LedgerDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    schema_version: int = Field(default=SCHEMA_VERSION, alias="schemaVersion")
    version: int = 0
    name: str
    total_pills: int = Field(alias="totalPills")
    pills_remaining: int = Field(alias="pillsRemaining")
    daily_dose: int = Field(alias="dailyDose")
    start_date: date = Field(alias="startDate")
    intake_history: List[IntakeRecord] = Field(default_factory=list, alias="intakeHistory")

    @classmethod
    def from_ledger(cls, ledger: Ledger) -> "LedgerDocument":
        return cls(
            version=ledger.version,
            name=ledger.name,
            total_pills=ledger.total_pills,
            pills_remaining=ledger.pills_remaining,
            daily_dose=ledger.daily_dose,
            start_date=ledger.start_date,
            intake_history=[IntakeRecord(date=e.date, count=e.count) for e in ledger.intake_history],
        )

    def to_ledger(self, clock: Optional[Clock] = None) -> Ledger:
        """Rebuild a Ledger; raises ValidationError if the blob breaks an invariant."""
        cfg = make_config(self.name, self.total_pills, self.daily_dose, self.start_date)
        return Ledger(
            cfg,
            pills_remaining=self.pills_remaining,
            intake_history=[IntakeEntry(date=r.date, count=r.count) for r in self.intake_history],
            version=self.version,
            clock=clock,
        )

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)
