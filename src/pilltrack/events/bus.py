from __future__ import annotations

import json
import logging

from .schema import EventEnvelope
from ..metrics.ledger import get_events_total


log = logging.getLogger("pilltrack.events")


def encode(env: EventEnvelope) -> str:
    return json.dumps({
        "schema_version": env.schema_version,
        "correlation_id": env.correlation_id,
        "sequence": env.sequence,
        "event": env.event.model_dump(),
    }, separators=(",", ":"))


def publish(env: EventEnvelope) -> None:
    """Log a ledger event as a single-line JSON record.

    Safe: never raises, so a logging problem cannot undo a recorded intake.
    """
    try:
        get_events_total().labels(env.event.event_type).inc()
    except Exception:
        pass
    try:
        log.info(encode(env))
    except Exception:
        pass
