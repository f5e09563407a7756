import json
import sqlite3
import threading
import time
from datetime import date

import pytest

from pilltrack.ledger import IntakeEntry, Ledger, PersistenceFailure, StaleStateError, make_config
from pilltrack.store import LedgerDocument, SQLiteStore, decode


def test_store_roundtrip(tmp_path, clock):
    st = SQLiteStore(str(tmp_path / "led.sqlite"))
    assert st.load("alice") is None
    led = Ledger(make_config("Iron", 20, 1, date(2024, 3, 1)), clock=clock)
    led.record_intake(3)
    st.save("alice", led, expected_version=0)
    back = st.load("alice", clock=clock)
    assert back.name == "Iron"
    assert back.pills_remaining == 17
    assert back.intake_history == (IntakeEntry(date(2024, 3, 1), 3),)
    assert back.version == 1
    assert st.users() == ["alice"]


def test_persisted_layout_uses_camel_case_and_schema_version(tmp_path, clock):
    path = tmp_path / "led.sqlite"
    st = SQLiteStore(str(path))
    led = Ledger.default(clock=clock)
    led.record_intake(2)
    st.save("u", led)
    with sqlite3.connect(path) as con:
        blob = json.loads(con.execute("SELECT json FROM ledger_state").fetchone()[0])
    assert blob == {
        "schemaVersion": 1,
        "version": 1,
        "name": "My Medication",
        "totalPills": 30,
        "pillsRemaining": 28,
        "dailyDose": 1,
        "startDate": "2024-03-01",
        "intakeHistory": [{"date": "2024-03-01", "count": 2}],
    }


def test_legacy_blob_without_schema_version_loads():
    legacy = json.dumps({
        "name": "My Medication",
        "totalPills": 30,
        "pillsRemaining": 25,
        "dailyDose": 2,
        "startDate": "2024-01-05",
        "intakeHistory": [{"date": "2024-01-06", "count": 5}],
    })
    led = decode(legacy)
    assert led.pills_remaining == 25
    assert led.version == 0
    assert led.intake_history[0].count == 5


@pytest.mark.parametrize(
    "blob",
    [
        "not json",
        "[1, 2]",
        json.dumps({"schemaVersion": 2, "name": "x"}),
        # pillsRemaining above capacity
        json.dumps({"name": "x", "totalPills": 5, "pillsRemaining": 9, "dailyDose": 1, "startDate": "2024-01-01"}),
        # duplicate dates
        json.dumps({"name": "x", "totalPills": 5, "pillsRemaining": 1, "dailyDose": 1, "startDate": "2024-01-01",
                    "intakeHistory": [{"date": "2024-01-02", "count": 1}, {"date": "2024-01-02", "count": 1}]}),
        json.dumps({"name": "x", "totalPills": 5}),
    ],
)
def test_invalid_blobs_raise_persistence_failure(blob):
    with pytest.raises(PersistenceFailure):
        decode(blob)


def test_stale_save_is_rejected(tmp_path, clock):
    st = SQLiteStore(str(tmp_path / "led.sqlite"))
    st.save("u", Ledger.default(clock=clock), expected_version=0)
    # Two writers start from the same stored version
    a = st.load("u", clock=clock)
    b = st.load("u", clock=clock)
    a.record_intake(1)
    st.save("u", a, expected_version=0)
    b.record_intake(2)
    with pytest.raises(StaleStateError) as exc:
        st.save("u", b, expected_version=0)
    assert exc.value.stored == 1
    assert st.load("u").pills_remaining == 29


def test_interleaved_saves_from_same_version_lose_no_update(tmp_path, clock):
    path = str(tmp_path / "led.sqlite")
    st = SQLiteStore(path)
    a = Ledger.default(clock=clock)
    b = Ledger.default(clock=clock)
    a.record_intake(1)
    b.record_intake(5)

    # Hold the write lock so both writers are queued on the same stored version
    blocker = sqlite3.connect(path, isolation_level=None)
    blocker.execute("BEGIN IMMEDIATE")
    start = threading.Barrier(3)
    outcomes = {}

    def writer(name, led):
        start.wait()
        try:
            st.save("u", led, expected_version=0)
            outcomes[name] = "saved"
        except StaleStateError:
            outcomes[name] = "stale"
        except PersistenceFailure:
            outcomes[name] = "failed"

    threads = [threading.Thread(target=writer, args=("a", a)), threading.Thread(target=writer, args=("b", b))]
    for t in threads:
        t.start()
    start.wait()
    time.sleep(0.2)
    blocker.execute("COMMIT")
    blocker.close()
    for t in threads:
        t.join(timeout=10)

    assert sorted(outcomes.values()) == ["saved", "stale"]
    winner = a if outcomes["a"] == "saved" else b
    stored = st.load("u", clock=clock)
    assert stored.version == 1
    assert stored.pills_remaining == winner.pills_remaining


def test_save_at_version_zero_over_existing_default_row(tmp_path, clock):
    st = SQLiteStore(str(tmp_path / "led.sqlite"))
    st.save("u", Ledger.default(clock=clock))
    led = st.load("u", clock=clock)
    led.record_intake(2)
    st.save("u", led, expected_version=0)
    assert st.load("u").pills_remaining == 28


def test_delete(tmp_path, clock):
    st = SQLiteStore(str(tmp_path / "led.sqlite"))
    st.save("u", Ledger.default(clock=clock))
    assert st.delete("u") is True
    assert st.delete("u") is False
    assert st.load("u") is None


def test_unopenable_store_raises_persistence_failure(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x")
    with pytest.raises(PersistenceFailure):
        SQLiteStore(str(blocker / "led.sqlite"))


def test_document_from_ledger_roundtrip(clock):
    led = Ledger(make_config("Iron", 20, 2, date(2024, 3, 1)), clock=clock)
    led.record_intake(4)
    doc = LedgerDocument.from_ledger(led)
    assert doc.to_ledger().intake_history == led.intake_history
