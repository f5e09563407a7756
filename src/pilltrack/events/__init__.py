"""Structured ledger events (pydantic schema + JSON log publisher)."""
