from __future__ import annotations

from typing import Literal, Optional, Union
from pydantic import BaseModel


# ---- Base + envelope ----

class BaseEvent(BaseModel):
    event_type: str
    ts: int
    user_id: str
    medication: str
    pills_remaining: int


class EventEnvelope(BaseModel):
    schema_version: str = "v1"
    correlation_id: str
    sequence: int = 0
    event: BaseEvent


# ---- Event types ----

class SettingsUpdated(BaseEvent):
    event_type: Literal["settings_updated"] = "settings_updated"
    total_pills: int
    daily_dose: int
    start_date: str
    capacity_changed: bool = False


class IntakeRecorded(BaseEvent):
    event_type: Literal["intake_recorded"] = "intake_recorded"
    count: int
    day_total: int
    date: str


class IntakeRejected(BaseEvent):
    event_type: Literal["intake_rejected"] = "intake_rejected"
    count: Optional[int] = None
    reason: str
    deficit: Optional[int] = None


class MedicineReset(BaseEvent):
    event_type: Literal["medicine_reset"] = "medicine_reset"
    total_pills: int


AnyEvent = Union[
    SettingsUpdated,
    IntakeRecorded,
    IntakeRejected,
    MedicineReset,
]
