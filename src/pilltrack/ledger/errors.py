from __future__ import annotations


class LedgerError(Exception):
    """Base class for every error raised by the ledger and its store."""


class ValidationError(LedgerError, ValueError):
    """Malformed configuration or intake input. Nothing was mutated."""


class InsufficientInventory(LedgerError):
    """An intake asked for more pills than remain in the container.

    Kept separate from ValidationError so callers can report the exact deficit.
    """

    def __init__(self, requested: int, available: int):
        self.requested = int(requested)
        self.available = int(available)
        super().__init__(
            f"Cannot take {self.requested} pill(s): only {self.available} remaining "
            f"(short by {self.deficit})"
        )

    @property
    def deficit(self) -> int:
        return self.requested - self.available


class PersistenceFailure(LedgerError):
    """The persistent store could not load or save ledger state."""


class StaleStateError(PersistenceFailure):
    """A save was based on a version older than the one stored."""

    def __init__(self, user_id: str, expected: int, stored: int):
        self.user_id = user_id
        self.expected = expected
        self.stored = stored
        super().__init__(
            f"Stale ledger for {user_id!r}: expected stored version {expected}, found {stored}"
        )
