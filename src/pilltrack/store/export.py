from __future__ import annotations

import os
from typing import Dict, Optional

import pandas as pd

from ..ledger import Forecast, Ledger


def history_frame(ledger: Ledger) -> pd.DataFrame:
    return pd.DataFrame(
        [{"date": pd.Timestamp(e.date), "count": e.count} for e in ledger.intake_history],
        columns=["date", "count"],
    )


def forecast_frame(forecast: Forecast) -> pd.DataFrame:
    return pd.DataFrame(
        [{"date": pd.Timestamp(p.date), "remaining": p.remaining} for p in forecast],
        columns=["date", "remaining"],
    )


def write_parquet(ledger: Ledger, forecast: Optional[Forecast] = None, base_dir: str = "data") -> Dict[str, str]:
    """Write intake history (and optionally a forecast) as parquet files.

    Returns a mapping of table name to written path.
    """
    os.makedirs(base_dir, exist_ok=True)
    paths = {"intake_history": os.path.join(base_dir, "intake_history.parquet")}
    history_frame(ledger).to_parquet(paths["intake_history"])
    if forecast is not None:
        paths["forecast"] = os.path.join(base_dir, "forecast.parquet")
        forecast_frame(forecast).to_parquet(paths["forecast"])
    return paths
