"""
REST client for the optional remote mirror.

What it does:
- Talks to a PostgREST-style database (e.g. Supabase) over two tables:
  `medications` (id, name, total_pills, pills_remaining, daily_dose, start_date)
  and `intake_history` (id, medication_id, count, taken_at).
- Offers create/read/append operations, a connectivity self-test, and a
  one-shot export of a Ledger.

Not wired into the ledger flow: there is no retry, conflict resolution or
sync. Appends are at-least-once; exporting twice creates two medication rows.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Optional

import requests

from ..ledger import Ledger

log = logging.getLogger("pilltrack.remote")

MEDICATIONS = "medications"
INTAKE_HISTORY = "intake_history"
MISSING_TABLE_CODES = {"PGRST204", "PGRST205", "42P01"}


class RemoteError(Exception):
    """The remote mirror rejected a request or could not be reached."""

    def __init__(self, message: str, status: Optional[int] = None, code: Optional[str] = None, details: Any = None):
        super().__init__(message)
        self.status = status
        self.code = code
        self.details = details


class RemoteConfigError(RemoteError):
    """Remote URL or key is missing."""


class RemoteMirror:
    def __init__(self, url: str, anon_key: str, timeout_s: float = 10.0, session: Optional[requests.Session] = None):
        if not url or not anon_key:
            raise RemoteConfigError(
                "Missing remote mirror credentials. Expected env vars: SUPABASE_URL, SUPABASE_ANON_KEY"
            )
        self.base = url.rstrip("/") + "/rest/v1"
        self.timeout_s = timeout_s
        self.session = session or requests.Session()
        self.headers = {
            "apikey": anon_key,
            "Authorization": f"Bearer {anon_key}",
            "Content-Type": "application/json",
        }
        log.debug(f"remote mirror configured for {url[:10]}... (key length {len(anon_key)})")

    @classmethod
    def from_settings(cls, settings) -> "RemoteMirror":
        return cls(settings.remote.url, settings.remote.anon_key, timeout_s=settings.remote.timeout_s)

    def _request(self, method: str, table: str, params: Optional[Dict[str, str]] = None, json_body: Any = None, prefer: Optional[str] = None) -> Any:
        headers = dict(self.headers)
        if prefer:
            headers["Prefer"] = prefer
        try:
            r = self.session.request(method, f"{self.base}/{table}", params=params, json=json_body, headers=headers, timeout=self.timeout_s)
        except requests.RequestException as e:
            raise RemoteError(f"{method} {table} failed: {e}") from e
        if r.status_code >= 400:
            try:
                body = r.json()
            except ValueError:
                body = {"message": r.text}
            if not isinstance(body, dict):
                body = {"message": str(body)}
            raise RemoteError(
                f"{method} {table} returned {r.status_code}: {body.get('message', '')}",
                status=r.status_code,
                code=body.get("code"),
                details=body,
            )
        if r.status_code == 204 or not r.content:
            return None
        return r.json()

    # ---- medications ----

    def create_medication(self, medication: Dict[str, Any]) -> Dict[str, Any]:
        rows = self._request("POST", MEDICATIONS, json_body=[medication], prefer="return=representation")
        return rows[0]

    def get_medication(self, medication_id: str) -> Optional[Dict[str, Any]]:
        rows = self._request("GET", MEDICATIONS, params={"id": f"eq.{medication_id}", "select": "*"})
        return rows[0] if rows else None

    def delete_medication(self, medication_id: str) -> None:
        """Delete a medication and its intake rows."""
        self._request("DELETE", INTAKE_HISTORY, params={"medication_id": f"eq.{medication_id}"})
        self._request("DELETE", MEDICATIONS, params={"id": f"eq.{medication_id}"})

    # ---- intake history ----

    def record_intake(self, medication_id: str, count: int, taken_at: Optional[str] = None) -> Dict[str, Any]:
        row: Dict[str, Any] = {"medication_id": medication_id, "count": count}
        if taken_at is not None:
            row["taken_at"] = taken_at
        rows = self._request("POST", INTAKE_HISTORY, json_body=[row], prefer="return=representation")
        return rows[0]

    def get_medication_history(self, medication_id: str) -> List[Dict[str, Any]]:
        return self._request(
            "GET",
            INTAKE_HISTORY,
            params={"medication_id": f"eq.{medication_id}", "select": "*", "order": "taken_at.desc"},
        ) or []

    # ---- composite operations ----

    def export_ledger(self, ledger: Ledger) -> Dict[str, Any]:
        """Create one medication row and append one intake row per history entry."""
        med = self.create_medication(medication_record(ledger))
        intakes = [
            self.record_intake(med["id"], e.count, taken_at=e.date.isoformat())
            for e in ledger.intake_history
        ]
        log.info(f"exported ledger {ledger.name!r} as medication {med['id']} with {len(intakes)} intake rows")
        return {"medication": med, "intakes": intakes}

    def test_connection(self) -> Dict[str, Any]:
        """Create a test medication, record an intake, then clean up.

        Returns {"success": bool, "data"|"error": ..., "details": ...}; never raises
        for remote failures.
        """
        log.info("Starting remote connection test...")
        try:
            self._request("GET", MEDICATIONS, params={"select": "*", "limit": "1"})
        except RemoteError as e:
            log.error(f"Medications table test failed: {e}")
            if e.code in MISSING_TABLE_CODES:
                return {
                    "success": False,
                    "error": "Required tables are missing. Please create:\n\n"
                             "1. medications (id, name, total_pills, pills_remaining, daily_dose, start_date)\n"
                             "2. intake_history (id, medication_id, count, taken_at)",
                    "details": e.details,
                }
            return {"success": False, "error": f"Table access failed: {e}", "details": e.details}

        test_medication = {
            "name": "Test Medication",
            "total_pills": 30,
            "pills_remaining": 30,
            "daily_dose": 1,
            "start_date": date.today().isoformat(),
        }
        try:
            med = self.create_medication(test_medication)
        except RemoteError as e:
            return {"success": False, "error": f"Failed to create test medication: {e}", "details": e.details}
        try:
            intake = self.record_intake(med["id"], 1)
        except RemoteError as e:
            self._cleanup(med["id"])
            return {"success": False, "error": f"Failed to record test intake: {e}", "details": e.details}
        self._cleanup(med["id"])
        log.info("Remote connection test successful")
        return {
            "success": True,
            "data": {
                "message": "Successfully tested all database operations",
                "testResults": {"createMedication": med, "recordIntake": intake},
            },
        }

    def _cleanup(self, medication_id: str) -> None:
        try:
            self.delete_medication(medication_id)
        except RemoteError as e:
            log.warning(f"Failed to clean up test medication {medication_id}: {e}")


def medication_record(ledger: Ledger) -> Dict[str, Any]:
    return {
        "name": ledger.name,
        "total_pills": ledger.total_pills,
        "pills_remaining": ledger.pills_remaining,
        "daily_dose": ledger.daily_dose,
        "start_date": ledger.start_date.isoformat(),
    }
