from datetime import date

import pandas as pd
import pytest

from pilltrack.ledger import Ledger, MonthlyRefill, ValidationError, make_config
from pilltrack.reports.charts import save_forecast_png
from pilltrack.reports.generate import render_report
from pilltrack.service import LedgerService
from pilltrack.store import SQLiteStore
from pilltrack.store.export import write_parquet


def test_save_forecast_png(tmp_path, clock):
    led = Ledger.default(clock=clock)
    out = save_forecast_png(led.project_forecast(30), led.name, str(tmp_path / "img" / "f.png"), refill_date=date(2024, 3, 19))
    with open(out, "rb") as f:
        assert f.read(8) == b"\x89PNG\r\n\x1a\n"


def test_save_forecast_png_rejects_empty(tmp_path, clock):
    with pytest.raises(ValidationError):
        save_forecast_png(Ledger.default(clock=clock).project_forecast(0), "x", str(tmp_path / "f.png"))


def test_render_report(tmp_path, clock):
    svc = LedgerService(SQLiteStore(str(tmp_path / "r.sqlite")), clock=clock, refill_policy=MonthlyRefill(19), horizon_days=30)
    svc.update_settings("Omega <3>", 30, 3, date(2024, 3, 1))
    svc.record_intake(3)
    out = render_report(svc, str(tmp_path / "report"))
    html = open(out, encoding="utf-8").read()
    # Autoescaped medication name
    assert "Omega &lt;3&gt;" in html
    assert "27 / 30" in html
    assert "You&#39;ll run out on Mar 10" in html or "You'll run out on Mar 10" in html
    assert "images/forecast_" in html


def test_report_escapes_html_in_name(tmp_path, clock):
    svc = LedgerService(SQLiteStore(str(tmp_path / "r.sqlite")), clock=clock, horizon_days=7)
    svc.update_settings("<script>alert(1)</script>", 30, 1, date(2024, 3, 1))
    html = open(render_report(svc, str(tmp_path / "report")), encoding="utf-8").read()
    assert "<script>" not in html
    assert "&lt;script&gt;alert(1)&lt;/script&gt;" in html


def test_report_with_zero_horizon_is_a_validation_error(tmp_path, clock):
    svc = LedgerService(SQLiteStore(str(tmp_path / "r.sqlite")), clock=clock, horizon_days=0)
    with pytest.raises(ValidationError):
        render_report(svc, str(tmp_path / "report"))


def test_write_parquet(tmp_path, clock):
    led = Ledger(make_config("Iron", 20, 2, date(2024, 3, 1)), clock=clock)
    led.record_intake(2)
    paths = write_parquet(led, led.project_forecast(5), str(tmp_path / "exp"))
    hist = pd.read_parquet(paths["intake_history"])
    assert hist["count"].tolist() == [2]
    fc = pd.read_parquet(paths["forecast"])
    assert fc["remaining"].tolist() == [18, 16, 14, 12, 10]
