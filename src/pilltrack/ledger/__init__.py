"""Ledger package.

Public API:
- Ledger: medication config, remaining pills, intake history, forecast.
- Forecast, MonthlyRefill, FixedDateRefill: projection and refill rules.
- ValidationError, InsufficientInventory, PersistenceFailure: error kinds.
"""

from .errors import (  # re-export
    InsufficientInventory,
    LedgerError,
    PersistenceFailure,
    StaleStateError,
    ValidationError,
)
from .forecast import (
    FixedDateRefill,
    Forecast,
    MonthlyRefill,
    RefillPolicy,
    next_refill_date,
    refill_policy_from_config,
)
from .ledger import Ledger
from .model import ForecastPoint, ForecastSummary, IntakeEntry, IntakeStats, MedicationConfig, make_config
