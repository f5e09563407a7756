"""
Exposes pilltrack's ledger metrics over HTTP while a CLI command runs.

`pilltrack` is short-lived, so the exporter is best effort: when the port is
taken (another invocation already serving it) the command still runs and the
counters in `metrics.ledger` are simply not scraped from this process.
"""

import logging
from typing import Optional

from prometheus_client import start_http_server

log = logging.getLogger("pilltrack.metrics")


def start_server_safe(port: int) -> Optional[int]:
    """Serve the default registry on `port`; None if the port cannot be bound."""
    try:
        start_http_server(port)
    except OSError as e:
        log.warning(f"metrics exporter not started on :{port}: {e}")
        return None
    log.info(f"metrics exporter serving ledger counters on :{port}")
    return port
