# booker_ledger/main.py
"""
Command-line entry point. Owns the Database lifecycle: open -> work -> shutdown.

    booker-ledger --db ./ledger.db init
    booker-ledger seed --year 2024 --month 3
    booker-ledger monthly --year 2024 --month 3
    booker-ledger performance --from 2024-03-01 --to 2024-03-31
    booker-ledger compare --year 2024 --month 3
    booker-ledger dashboard --year 2024 --month 3
    booker-ledger health
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import date
from typing import Optional, Sequence

from .constants import APP_NAME
from .database import DomainError, open_database
from .database.connection import Database
from .database.repositories import DailyEntriesRepo, ReportingRepo
from .database.seeders.sample_data import seed as seed_sample_data
from .database.versioning import get_current_version
from .modules.reports import DashboardReports, PerformanceReports, PeriodicReports
from .utils.helpers import fmt_money, month_bounds
from .utils.loggers import get_logger

_log = logging.getLogger(__name__)


def _cmd_init(db: Database, args) -> int:
    print(f"Database ready at {db.path} (schema {get_current_version(db.connection)})")
    return 0


def _cmd_health(db: Database, args) -> int:
    result = db.health_check()
    print(json.dumps(result, indent=2))
    return 0 if result["status"] != "error" else 1


def _cmd_seed(db: Database, args) -> int:
    if seed_sample_data(db, args.year, args.month, days=args.days):
        print("Sample data inserted.")
    else:
        print("Database already has data; nothing inserted.")
    return 0


def _cmd_monthly(db: Database, args) -> int:
    a = DailyEntriesRepo(db).monthly_analytics(args.year, args.month)
    print(f"{args.year:04d}-{args.month:02d}")
    print(f"  entries           {a.entries_count}")
    print(f"  total amount      {fmt_money(a.total_amount)}")
    print(f"  returns           {fmt_money(a.total_return_amount)}")
    print(f"  net amount        {fmt_money(a.net_amount)}")
    print(f"  avg per entry     {fmt_money(a.average_daily_amount)}")
    print(f"  return rate       {a.return_rate:.2f}%")
    print(f"  qty return rate   {a.quantity_return_rate:.2f}%")
    start, end = month_bounds(args.year, args.month)
    for m in PeriodicReports(ReportingRepo(db)).monthly_report(start, end):
        print(f"  target            {fmt_money(m.total_target)} ({m.achievement_percentage:.1f}%)")
        for name, net in m.top_performers:
            print(f"  top               {name}: {fmt_money(net)}")
    return 0


def _cmd_performance(db: Database, args) -> int:
    rows = PerformanceReports(ReportingRepo(db)).performance(
        args.date_from, args.date_to, include_inactive=args.include_inactive
    )
    if not rows:
        print("No order bookers.")
        return 0
    for r in rows:
        print(
            f"{r.rank:>3}. {r.name:<24} net {fmt_money(r.net_sales):>14}  "
            f"target {r.achievement_percentage:6.1f}%  {r.status:<13} "
            f"days {r.days_worked:>2}  consistency {r.consistency:5.1f}"
        )
    return 0


def _cmd_compare(db: Database, args) -> int:
    rep = PeriodicReports(ReportingRepo(db)).comparison_report(args.year, args.month)
    print(f"{rep.current.period} vs {rep.previous.period}: {rep.direction} "
          f"(net {rep.net_sales_growth:+.1f}%, confidence {rep.confidence:.0f}%)")
    for line in rep.insights:
        print(f"  - {line}")
    return 0


def _cmd_dashboard(db: Database, args) -> int:
    reports = DashboardReports(ReportingRepo(db))
    start, end = month_bounds(args.year, args.month)
    rev = reports.revenue_metrics(start, end)
    margin = reports.profit_margins(start, end)
    returns = reports.return_rates(start, end)
    print(f"{args.year:04d}-{args.month:02d} dashboard")
    print(f"  revenue           {fmt_money(rev.current_revenue)} ({rev.growth_percentage:+.1f}% on last month)")
    print(f"  target            {fmt_money(rev.target_revenue)} ({rev.achievement_percentage:.1f}%)")
    print(f"  margin            {margin.margin_percentage:.1f}% ({margin.status})")
    print(f"  return rate       {returns.overall_return_rate:.1f}% ({returns.status})")
    for alert in reports.alerts(start, end).alerts:
        print(f"  [{alert.severity}] {alert.description}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    today = date.today()
    parser = argparse.ArgumentParser(prog="booker-ledger", description=f"{APP_NAME} command line")
    parser.add_argument("--db", help="Path to the SQLite database (overrides BOOKER_LEDGER_DB_PATH)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="Create or upgrade the database").set_defaults(func=_cmd_init)
    sub.add_parser("health", help="Check the database responds").set_defaults(func=_cmd_health)

    p = sub.add_parser("seed", help="Insert sample data into an empty database")
    p.add_argument("--year", type=int, default=today.year)
    p.add_argument("--month", type=int, default=today.month)
    p.add_argument("--days", type=int, default=5)
    p.set_defaults(func=_cmd_seed)

    p = sub.add_parser("monthly", help="Monthly analytics")
    p.add_argument("--year", type=int, default=today.year)
    p.add_argument("--month", type=int, default=today.month)
    p.set_defaults(func=_cmd_monthly)

    p = sub.add_parser("performance", help="Order booker performance over a date range")
    p.add_argument("--from", dest="date_from", required=True, help="YYYY-MM-DD")
    p.add_argument("--to", dest="date_to", required=True, help="YYYY-MM-DD")
    p.add_argument("--include-inactive", action="store_true")
    p.set_defaults(func=_cmd_performance)

    p = sub.add_parser("compare", help="Compare a month with the previous one")
    p.add_argument("--year", type=int, default=today.year)
    p.add_argument("--month", type=int, default=today.month)
    p.set_defaults(func=_cmd_compare)

    p = sub.add_parser("dashboard", help="Order dashboard for a month")
    p.add_argument("--year", type=int, default=today.year)
    p.add_argument("--month", type=int, default=today.month)
    p.set_defaults(func=_cmd_dashboard)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    get_logger("booker_ledger", logging.DEBUG if args.verbose else logging.WARNING)

    db = open_database(args.db)
    try:
        return args.func(db, args)
    except (DomainError, ValueError) as e:
        _log.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 2
    finally:
        db.shutdown()


if __name__ == "__main__":
    sys.exit(main())
