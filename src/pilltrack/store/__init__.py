"""Store package.

Public API:
- SQLiteStore: load/save one ledger JSON blob per user.
- LedgerDocument: the persisted layout (schemaVersion 1).
"""

from .schema import SCHEMA_VERSION, LedgerDocument  # re-export
from .sqlite_store import SQLiteStore, decode
