"""
Main entrypoint for pilltrack.

What it does:
- Loads runtime settings from `config/config.yaml` plus environment variables.
- Opens the user's ledger through `LedgerService` (SQLite store) and runs one
  command: show, intake, settings, reset, forecast, report, export or
  check-remote.
- Optionally exposes Prometheus metrics while the command runs.

Exit codes: 0 ok, 1 invalid input, 2 insufficient inventory, 3 storage or
remote failure.

Where it is used:
- Installed as the `pilltrack` console script; also `python -m pilltrack.main`.
"""

import argparse
import json
import logging
import sys
from datetime import date
from typing import List, Optional

import yaml

from .config.loader import Settings, load_settings
from .ledger import InsufficientInventory, PersistenceFailure, ValidationError
from .metrics.core import start_server_safe
from .remote import RemoteError, RemoteMirror
from .service import LedgerService
from .store import SQLiteStore

EXIT_INVALID = 1
EXIT_INSUFFICIENT = 2
EXIT_STORAGE = 3


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pilltrack", description="Track a medication's pill inventory")
    parser.add_argument("--config", "-c", default=None, help="Path to config YAML (default: config/config.yaml)")
    parser.add_argument("--user", "-u", default=None, help="User id (default from config)")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("show", help="Print current state and summary")

    p = sub.add_parser("intake", help="Record pills taken today")
    p.add_argument("count", type=int, nargs="?", default=1)

    p = sub.add_parser("settings", help="Update medication settings")
    p.add_argument("--name")
    p.add_argument("--total", type=int, help="Pills in a full container")
    p.add_argument("--dose", type=int, help="Pills per day")
    p.add_argument("--start", type=date.fromisoformat, help="Start date (YYYY-MM-DD)")

    sub.add_parser("reset", help="Refill: full container, clear history")

    p = sub.add_parser("forecast", help="Print the day-by-day forecast")
    p.add_argument("--days", type=int, default=None)

    sub.add_parser("report", help="Write the HTML report with forecast chart")

    p = sub.add_parser("export", help="Export history and forecast as parquet")
    p.add_argument("--out", default="data/export")

    p = sub.add_parser("check-remote", help="Test the remote mirror connection")
    p.add_argument("--export", action="store_true", help="Also export the ledger to the remote mirror")
    return parser


def _print_state(service: LedgerService) -> None:
    led = service.ledger
    s = service.summary()
    print(f"{led.name}: {led.pills_remaining} / {led.total_pills} pills ({s.percent_remaining:.0f}%)")
    print(f"Daily dose: {led.daily_dose}  |  Started: {led.start_date.isoformat()}")
    print(f"Days remaining: {s.days_remaining}  |  Runs out: {s.run_out_date.isoformat()}")
    if s.next_refill_date is not None:
        line = f"Next refill: {s.next_refill_date.isoformat()}"
        if s.runs_out_before_refill:
            line += "  (runs out before refill!)"
        print(line)
    stats = led.intake_stats()
    print(f"Intakes: {stats.total} pill(s) over {stats.days} day(s), avg {stats.average:.1f}/day")


def run(args: argparse.Namespace, settings: Settings) -> int:
    service = LedgerService(
        SQLiteStore(settings.storage.path),
        user_id=args.user or settings.storage.user_id,
        refill_policy=settings.forecast.refill_policy(),
        horizon_days=settings.forecast.horizon_days,
    )
    cmd = args.command
    if cmd == "show":
        _print_state(service)
    elif cmd == "intake":
        entry = service.record_intake(args.count)
        print(f"Recorded {args.count} pill(s); {entry.count} today, {service.ledger.pills_remaining} remaining")
    elif cmd == "settings":
        led = service.ledger
        service.update_settings(
            args.name if args.name is not None else led.name,
            args.total if args.total is not None else led.total_pills,
            args.dose if args.dose is not None else led.daily_dose,
            args.start if args.start is not None else led.start_date,
        )
        _print_state(service)
    elif cmd == "reset":
        service.reset_medicine()
        print(f"Refilled: {service.ledger.pills_remaining} pills, history cleared")
    elif cmd == "forecast":
        for p in service.forecast(args.days):
            print(f"{p.date.isoformat()}  {p.remaining}")
    elif cmd == "report":
        from .reports.generate import render_report
        print(f"Report written to: {render_report(service, settings.report.out_dir)}")
    elif cmd == "export":
        from .store.export import write_parquet
        for table, path in write_parquet(service.ledger, service.forecast(), args.out).items():
            print(f"{table}: {path}")
    elif cmd == "check-remote":
        mirror = RemoteMirror.from_settings(settings)
        result = mirror.test_connection()
        print(json.dumps(result, indent=2, default=str))
        if not result.get("success"):
            return EXIT_STORAGE
        if args.export:
            exported = mirror.export_ledger(service.ledger)
            print(f"Exported medication {exported['medication'].get('id')}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    args = build_parser().parse_args(argv)
    try:
        settings = load_settings(args.config)
    except (OSError, ValueError, yaml.YAMLError) as e:
        logging.error(f"Invalid configuration: {e}")
        return EXIT_INVALID
    if settings.metrics.enabled:
        start_server_safe(settings.metrics.port)
    try:
        return run(args, settings)
    except InsufficientInventory as e:
        logging.warning(str(e))
        return EXIT_INSUFFICIENT
    except ValidationError as e:
        logging.error(str(e))
        return EXIT_INVALID
    except PersistenceFailure as e:
        logging.error(f"Storage failure: {e}")
        return EXIT_STORAGE
    except RemoteError as e:
        logging.error(f"Remote mirror failure: {e}")
        return EXIT_STORAGE


if __name__ == "__main__":
    sys.exit(main())
