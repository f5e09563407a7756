"""
Generate a static HTML medication report with a forecast chart.

Usage (venv):
  pilltrack report
  PYTHONPATH=src python -m pilltrack.reports.generate
"""

from __future__ import annotations

import os
from datetime import datetime
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from ..config.loader import Settings, load_settings
from ..service import LedgerService
from ..store import SQLiteStore
from .charts import save_forecast_png


def _template_env(template_dir: str) -> Environment:
    return Environment(
        loader=FileSystemLoader(template_dir),
        autoescape=select_autoescape(["html", "xml", "html.j2"]),
    )


def render_report(service: LedgerService, out_dir: str, horizon_days: Optional[int] = None) -> str:
    """Write `index.html` plus the chart PNG under `out_dir`; returns the HTML path."""
    ledger = service.ledger
    forecast = service.forecast(horizon_days)
    summary = service.summary()

    img_dir = os.path.join(out_dir, "images")
    os.makedirs(img_dir, exist_ok=True)
    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    out_png = os.path.join(img_dir, f"forecast_{ts}.png")
    abs_png = save_forecast_png(forecast, ledger.name, out_png, refill_date=summary.next_refill_date)

    template_dir = os.path.join(os.path.dirname(__file__), "templates")
    tpl = _template_env(template_dir).get_template("report.html.j2")
    html = tpl.render(
        generated_at=datetime.now().isoformat(timespec="seconds"),
        ledger=ledger,
        summary=summary,
        stats=ledger.intake_stats(),
        history=list(reversed(ledger.intake_history)),
        horizon_days=len(forecast),
        image=os.path.relpath(abs_png, start=out_dir),
    )
    out_html = os.path.join(out_dir, "index.html")
    with open(out_html, "w", encoding="utf-8") as f:
        f.write(html)
    return out_html


def main(settings: Optional[Settings] = None) -> None:
    settings = settings or load_settings()
    service = LedgerService(
        SQLiteStore(settings.storage.path),
        user_id=settings.storage.user_id,
        refill_policy=settings.forecast.refill_policy(),
        horizon_days=settings.forecast.horizon_days,
    )
    out_html = render_report(service, settings.report.out_dir)
    print(f"Report written to: {out_html}")


if __name__ == "__main__":
    main()
