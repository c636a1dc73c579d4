#!/usr/bin/env python3
"""
View ledger reports from a persisted snapshot.

Loads the snapshot from the configured database (or from a JSON export with
--json) and prints the consolidated report, stock positions, or one
customer's statement.

Usage:
    python3 scripts/view_reports.py
    python3 scripts/view_reports.py stock --hub hub-1
    python3 scripts/view_reports.py ledger <customer_id> --newest-first
    python3 scripts/view_reports.py --json backup.json --as-of 2025-03-31 report
"""

import argparse
import json
import logging
import sys
from decimal import Decimal
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

W = 80
AMT_W = 14


def _fmt(v) -> str:
    d = Decimal(str(v))
    return f"₹{d:,.2f}"


def _qty(v) -> str:
    return f"{Decimal(str(v)):,.1f}L"


def _hdr(title: str, subtitle: str = "") -> str:
    lines = ["", "=" * W, title.center(W)]
    if subtitle:
        lines.append(subtitle.center(W))
    lines.append("=" * W)
    return "\n".join(lines)


def _row(label: str, amount, width: int = W - AMT_W - 2) -> str:
    return f"  {label:<{width}}{_fmt(amount):>{AMT_W}}"


def print_report(report) -> None:
    totals = report.totals
    print(_hdr("CONSOLIDATED REPORT", f"As of {report.as_of_date}"))
    print(_row("Total sold value", totals.total_sold_value))
    print(_row("Total returned value", totals.total_returned_value))
    print(_row("Net business value", totals.net_business_value))
    print(_row("Stock asset value", totals.total_stock_value))
    print(_row("Total receivables", totals.total_receivables))
    print(f"  {'Stock on hand':<{W - AMT_W - 2}}{_qty(totals.total_stock_qty):>{AMT_W}}")
    print()

    matrix = report.pricing_matrix
    if matrix.dates:
        print("  PRICING HISTORY")
        header = "".join(f"{d.isoformat():>12}" for d in matrix.dates)
        print(f"  {'Product':<24}{header}")
        for row in matrix.rows:
            cells = "".join(
                f"{'-' if row.prices[d] is None else format(row.prices[d], ','):>12}"
                for d in matrix.dates
            )
            print(f"  {row.product_name.split(' - ')[-1][:22]:<24}{cells}")
        print()

    print("  TOP CLIENTS")
    print(f"  {'Client':<34}{'Volume':>14}{'Value':>14}{'Balance':>14}")
    for client in report.top_clients:
        print(
            f"  {client.display_name[:32]:<34}{_qty(client.total_volume):>14}"
            f"{_fmt(client.total_value):>14}{_fmt(client.balance):>14}"
        )
    print()


def print_stock(rows, hub_scope: str) -> None:
    print(_hdr("STOCK POSITION", f"Scope: {hub_scope}"))
    print(f"  {'Product':<34}{'Qty':>12}{'Value':>16}{'Age (d)':>10}")
    for metrics, name in rows:
        print(
            f"  {name.split(' - ')[-1][:32]:<34}{_qty(metrics.qty):>12}"
            f"{_fmt(metrics.value):>16}{metrics.age_days:>10}"
        )
    print()


def print_ledger(customer_name: str, entries) -> None:
    print(_hdr("CUSTOMER STATEMENT", customer_name))
    print(f"  {'Date':<12}{'Type':<9}{'Description':<29}{'Debit':>10}{'Credit':>10}{'Balance':>10}")
    for e in entries:
        debit = f"{e.debit:,.0f}" if e.debit else ""
        credit = f"{e.credit:,.0f}" if e.credit else ""
        print(
            f"  {e.date.isoformat():<12}{e.type.value:<9}{e.description[:27]:<29}"
            f"{debit:>10}{credit:>10}{e.running_balance:>10,.0f}"
        )
    print()


def _load_snapshot(args, config):
    from ledger_kernel.domain.snapshot import RecordStore

    if args.json:
        data = json.loads(Path(args.json).read_text(encoding="utf-8"))
        return RecordStore.from_dict(data), "json"

    from ledger_kernel.db.engine import create_tables, get_session_factory, init_engine_from_url
    from ledger_services.persistence import SnapshotRepository

    init_engine_from_url(args.database_url or config.database_url, echo=False)
    create_tables()
    repository = SnapshotRepository(
        get_session_factory(),
        cache_path=config.cache_path,
        seed=config.seed_store(),
    )
    result = repository.load()
    return result.snapshot, result.source


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Print ledger reports.")
    parser.add_argument("--json", help="Read the snapshot from a JSON export instead of the database")
    parser.add_argument("--database-url", help="Override the configured database URL")
    parser.add_argument("--as-of", help="Report date (YYYY-MM-DD); defaults to today")
    sub = parser.add_subparsers(dest="command")
    sub.add_parser("report", help="Consolidated report (default)")
    stock = sub.add_parser("stock", help="Stock per product")
    stock.add_argument("--hub", default="all", help="Hub id, or 'all'")
    ledger = sub.add_parser("ledger", help="One customer's statement")
    ledger.add_argument("customer_id")
    ledger.add_argument("--newest-first", action="store_true")
    args = parser.parse_args(argv)

    logging.disable(logging.CRITICAL)

    from ledger_config import get_active_config
    from ledger_engines import consolidated_report, customer_ledger, inventory_metrics
    from ledger_kernel.domain.clock import SystemClock
    from ledger_kernel.domain.values import parse_iso_date
    from ledger_kernel.exceptions import LedgerKernelError

    try:
        config = get_active_config()
        snapshot, source = _load_snapshot(args, config)
        as_of = parse_iso_date(args.as_of, "arguments", "as_of") if args.as_of else SystemClock().today()
    except (LedgerKernelError, OSError, ValueError) as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1

    print(f"  Snapshot source: {source}  |  revision {snapshot.revision}")

    if args.command == "stock":
        rows = [
            (inventory_metrics(snapshot, args.hub, p.id, as_of), p.name)
            for p in snapshot.products
        ]
        print_stock(rows, args.hub)
    elif args.command == "ledger":
        customer = snapshot.customer(args.customer_id)
        if customer is None:
            print(f"  Customer not found: {args.customer_id}", file=sys.stderr)
            return 1
        print_ledger(
            customer.display_name,
            customer_ledger(snapshot, customer.id, newest_first=args.newest_first),
        )
    else:
        print_report(consolidated_report(
            snapshot,
            as_of,
            top_client_count=config.reports.top_client_count,
            recent_consignment_count=config.reports.recent_consignment_count,
        ))
    return 0


if __name__ == "__main__":
    sys.exit(main())
