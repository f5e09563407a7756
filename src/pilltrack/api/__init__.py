"""JSON HTTP API over the ledger service."""

from .app import create_app  # re-export
