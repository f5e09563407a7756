"""Ledger metrics.

Counters:
- intakes_recorded_total
- pills_taken_total
- intakes_rejected_total{reason="insufficient_inventory|invalid"}
- medicine_resets_total
- store_errors_total{op="load|save"}
- ledger_events_total{type}

Gauges:
- pills_remaining
- days_remaining
"""

from __future__ import annotations

import os
from typing import Optional

from prometheus_client import Counter, Gauge, REGISTRY

_intakes_recorded: Optional[Counter] = None
_pills_taken: Optional[Counter] = None
_intakes_rejected: Optional[Counter] = None
_medicine_resets: Optional[Counter] = None
_store_errors: Optional[Counter] = None
_events_total: Optional[Counter] = None
_pills_remaining: Optional[Gauge] = None
_days_remaining: Optional[Gauge] = None


class _NoOp:
    def labels(self, *args, **kwargs):
        return self
    def inc(self, *args, **kwargs):
        return None
    def set(self, *args, **kwargs):
        return None


def _existing(name: str):
    coll = getattr(REGISTRY, "_names_to_collectors", {}).get(name)
    if coll is not None:
        return coll
    # Counters register under their "_total"-stripped name as well
    for coll in list(getattr(REGISTRY, "_collector_to_names", {}).keys()):
        if getattr(coll, "_name", None) in (name, name.removesuffix("_total")):
            return coll
    return None


def _safe_counter(name: str, doc: str, labelnames=()):
    if os.getenv("DISABLE_PROMETHEUS", "0") == "1":
        return _NoOp()
    try:
        return Counter(name, doc, labelnames)
    except ValueError:
        return _existing(name) or _NoOp()


def _safe_gauge(name: str, doc: str, labelnames=()):
    if os.getenv("DISABLE_PROMETHEUS", "0") == "1":
        return _NoOp()
    try:
        return Gauge(name, doc, labelnames)
    except ValueError:
        return _existing(name) or _NoOp()


def get_intakes_recorded_total():
    global _intakes_recorded
    if _intakes_recorded is None:
        _intakes_recorded = _safe_counter("intakes_recorded_total", "Intakes recorded")
    return _intakes_recorded


def get_pills_taken_total():
    global _pills_taken
    if _pills_taken is None:
        _pills_taken = _safe_counter("pills_taken_total", "Pills taken across all intakes")
    return _pills_taken


def get_intakes_rejected_total():
    global _intakes_rejected
    if _intakes_rejected is None:
        _intakes_rejected = _safe_counter("intakes_rejected_total", "Intakes rejected", ["reason"])
    return _intakes_rejected


def get_medicine_resets_total():
    global _medicine_resets
    if _medicine_resets is None:
        _medicine_resets = _safe_counter("medicine_resets_total", "Refills (resets) performed")
    return _medicine_resets


def get_store_errors_total():
    global _store_errors
    if _store_errors is None:
        _store_errors = _safe_counter("store_errors_total", "Persistent store failures", ["op"])
    return _store_errors


def get_events_total():
    global _events_total
    if _events_total is None:
        _events_total = _safe_counter("ledger_events_total", "Ledger events emitted", ["type"])
    return _events_total


def get_pills_remaining_gauge():
    global _pills_remaining
    if _pills_remaining is None:
        _pills_remaining = _safe_gauge("pills_remaining", "Pills left in the container")
    return _pills_remaining


def get_days_remaining_gauge():
    global _days_remaining
    if _days_remaining is None:
        _days_remaining = _safe_gauge("days_remaining", "Whole days of supply left")
    return _days_remaining
