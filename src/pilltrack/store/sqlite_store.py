from __future__ import annotations

import json
import logging
import os
import sqlite3
import time
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError

from .schema import SCHEMA_VERSION, LedgerDocument
from ..ledger import Ledger, LedgerError, PersistenceFailure, StaleStateError
from ..ledger.ledger import Clock


DDL = """
CREATE TABLE IF NOT EXISTS ledger_state (
  user_id TEXT PRIMARY KEY,
  version INTEGER NOT NULL,
  updated_at INTEGER NOT NULL,
  json TEXT NOT NULL
);
"""

log = logging.getLogger("pilltrack.store")


class SQLiteStore:
    """Key-value store holding one ledger JSON blob per user.

    `save` takes the version the caller loaded; a mismatch with the stored
    version raises StaleStateError instead of overwriting another writer.
    """

    def __init__(self, path: str = "data/pilltrack.sqlite"):
        self.path = path
        try:
            parent = os.path.dirname(path)
            if parent:
                os.makedirs(parent, exist_ok=True)
            with sqlite3.connect(self.path) as con:
                con.execute(DDL)
        except (OSError, sqlite3.Error) as e:
            raise PersistenceFailure(f"Cannot open store at {path}: {e}") from e

    def load(self, user_id: str, clock: Optional[Clock] = None) -> Optional[Ledger]:
        """Return the stored ledger for `user_id`, or None if there is none."""
        try:
            with sqlite3.connect(self.path) as con:
                row = con.execute("SELECT json FROM ledger_state WHERE user_id = ?", (user_id,)).fetchone()
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Failed to load ledger for {user_id!r}: {e}") from e
        if row is None:
            return None
        return decode(row[0], clock=clock)

    def save(self, user_id: str, ledger: Ledger, expected_version: Optional[int] = None) -> None:
        """Write the ledger blob.

        A missing row counts as version 0. `expected_version=None` skips the check.
        The check and the write are one conditional statement, so two writers
        holding the same version cannot both succeed.
        """
        blob = LedgerDocument.from_ledger(ledger).to_json()
        now = int(time.time() * 1000)
        try:
            with sqlite3.connect(self.path) as con:
                if expected_version is None:
                    con.execute(
                        "INSERT INTO ledger_state(user_id, version, updated_at, json) VALUES (?,?,?,?) "
                        "ON CONFLICT(user_id) DO UPDATE SET version=excluded.version, "
                        "updated_at=excluded.updated_at, json=excluded.json",
                        (user_id, ledger.version, now, blob),
                    )
                else:
                    cur = con.execute(
                        "UPDATE ledger_state SET version = ?, updated_at = ?, json = ? "
                        "WHERE user_id = ? AND version = ?",
                        (ledger.version, now, blob, user_id, expected_version),
                    )
                    written = cur.rowcount
                    if written == 0 and expected_version == 0:
                        cur = con.execute(
                            "INSERT INTO ledger_state(user_id, version, updated_at, json) VALUES (?,?,?,?) "
                            "ON CONFLICT(user_id) DO NOTHING",
                            (user_id, ledger.version, now, blob),
                        )
                        written = cur.rowcount
                    if written == 0:
                        row = con.execute("SELECT version FROM ledger_state WHERE user_id = ?", (user_id,)).fetchone()
                        raise StaleStateError(user_id, expected_version, row[0] if row is not None else 0)
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Failed to save ledger for {user_id!r}: {e}") from e
        log.debug(f"saved ledger for {user_id} at version {ledger.version}")

    def delete(self, user_id: str) -> bool:
        try:
            with sqlite3.connect(self.path) as con:
                cur = con.execute("DELETE FROM ledger_state WHERE user_id = ?", (user_id,))
                return cur.rowcount > 0
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Failed to delete ledger for {user_id!r}: {e}") from e

    def users(self) -> List[str]:
        try:
            with sqlite3.connect(self.path) as con:
                return [r[0] for r in con.execute("SELECT user_id FROM ledger_state ORDER BY user_id")]
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Failed to list users: {e}") from e


def decode(blob: str, clock: Optional[Clock] = None) -> Ledger:
    """Parse a stored blob into a Ledger, rejecting unknown schema versions."""
    try:
        data = json.loads(blob)
    except ValueError as e:
        raise PersistenceFailure(f"Corrupt ledger blob: {e}") from e
    if not isinstance(data, dict):
        raise PersistenceFailure("Corrupt ledger blob: expected a JSON object")
    schema = data.setdefault("schemaVersion", SCHEMA_VERSION)
    if schema != SCHEMA_VERSION:
        raise PersistenceFailure(f"Unsupported ledger schemaVersion {schema!r}")
    try:
        return LedgerDocument.model_validate(data).to_ledger(clock=clock)
    except (PydanticValidationError, LedgerError) as e:
        raise PersistenceFailure(f"Invalid ledger blob: {e}") from e
