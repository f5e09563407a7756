"""
Chart utilities to render the pill-count forecast.

Draws the projected remaining pills as a filled area with an optional dashed
marker on the next refill date. Saves PNGs to a destination path (ensures
parent directories exist).
"""

from __future__ import annotations

import os
from datetime import date
from typing import Optional

import matplotlib

# Use a non-interactive backend for headless environments
matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402
import matplotlib.dates as mdates  # noqa: E402

from ..ledger import Forecast, ValidationError  # noqa: E402


def save_forecast_png(
    forecast: Forecast,
    name: str,
    out_path: str,
    refill_date: Optional[date] = None,
) -> str:
    """Render the forecast as an area chart and save to `out_path` (PNG).

    Returns the absolute path to the saved file.
    """
    points = forecast.points()
    if not points:
        raise ValidationError("No forecast points to chart; horizon_days must be >= 1 for a report")

    parent = os.path.dirname(out_path)
    if parent:
        os.makedirs(parent, exist_ok=True)

    days = [mdates.date2num(p.date) for p in points]
    remaining = [p.remaining for p in points]

    fig, ax = plt.subplots(figsize=(10, 4))
    ax.set_title(f"{name}: projected pills over {len(points)} days")
    ax.plot(days, remaining, color="tab:blue", linewidth=1.2)
    ax.fill_between(days, remaining, 0, color="tab:blue", alpha=0.3)

    if refill_date is not None and points[0].date <= refill_date <= points[-1].date:
        x = mdates.date2num(refill_date)
        ax.axvline(x, color="tab:orange", linestyle="--", linewidth=1.0, label="Refill date")
        ax.legend(loc="best")

    ax.set_ylim(0, max(forecast.total_pills, max(remaining)))
    ax.xaxis_date()
    ax.xaxis.set_major_formatter(mdates.DateFormatter("%b %d"))
    fig.autofmt_xdate(rotation=45)
    ax.set_ylabel("pills")
    ax.grid(True, linestyle=":", alpha=0.5)

    fig.tight_layout()
    fig.savefig(out_path, dpi=120)
    plt.close(fig)
    return os.path.abspath(out_path)
