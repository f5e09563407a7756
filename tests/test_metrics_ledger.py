import pytest
from prometheus_client import REGISTRY

from pilltrack.ledger import InsufficientInventory
from pilltrack.metrics.ledger import _NoOp, _safe_counter, get_intakes_recorded_total
from pilltrack.service import LedgerService
from pilltrack.store import SQLiteStore


def _sample(metric: str, labels: dict = None) -> float:
    val = REGISTRY.get_sample_value(metric, labels or {})
    return 0.0 if val is None else float(val)


def test_intake_counters_and_gauges(tmp_path, clock):
    svc = LedgerService(SQLiteStore(str(tmp_path / "m.sqlite")), clock=clock)
    recorded = _sample("intakes_recorded_total")
    taken = _sample("pills_taken_total")
    rejected = _sample("intakes_rejected_total", {"reason": "insufficient_inventory"})
    svc.record_intake(3)
    svc.record_intake(2)
    with pytest.raises(InsufficientInventory):
        svc.record_intake(100)
    assert _sample("intakes_recorded_total") - recorded == 2
    assert _sample("pills_taken_total") - taken == 5
    assert _sample("intakes_rejected_total", {"reason": "insufficient_inventory"}) - rejected == 1
    assert _sample("pills_remaining") == 25
    assert _sample("days_remaining") == 25


def test_duplicate_registration_returns_existing_collector():
    first = get_intakes_recorded_total()
    again = _safe_counter("intakes_recorded_total", "Intakes recorded")
    assert again is first


def test_disabled_metrics_are_noop(monkeypatch):
    monkeypatch.setenv("DISABLE_PROMETHEUS", "1")
    c = _safe_counter("some_disabled_total", "unused", ["x"])
    assert isinstance(c, _NoOp)
    c.labels("a").inc()
