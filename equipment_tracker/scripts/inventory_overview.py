#!/usr/bin/env python3
"""Stock levels and recent loans straight from the tracker database."""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import Session

APP_DIR = Path(__file__).resolve().parents[1]
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from services.reconciliation_service import reconcile  # noqa: E402
from services.record_store import RecordStore  # noqa: E402


def _print_section(title: str) -> None:
    print(f"\n=== {title} ===")


def _print_inventory(inventory_list: list[dict]) -> None:
    _print_section("Inventory")
    if not inventory_list:
        print("(no devices)")
        return
    width = max(len(item["name"]) for item in inventory_list)
    print(f"{'Device'.ljust(width)}  {'Total':>5}  {'Rented':>6}  {'Avail':>5}")
    for item in inventory_list:
        print(f"{item['name'].ljust(width)}  {item['total']:>5}  {item['rented']:>6}  {item['available']:>5}")


def _print_transactions(transactions: list[dict]) -> None:
    _print_section("Recent transactions")
    if not transactions:
        print("(none)")
        return
    for tx in transactions:
        print(f"  - row {tx['row']}: {tx['timestamp']} {tx['device']} -> {tx['patientName']} [{tx['status']}]")


def main() -> int:
    parser = argparse.ArgumentParser(description="Equipment tracker stock overview")
    parser.add_argument("--db-url", default=os.environ.get("EQUIPMENT_TRACKER_DB_URL", ""))
    parser.add_argument("--samples", type=int, default=10)
    args = parser.parse_args()

    db_url = (args.db_url or "").strip()
    if not db_url:
        print("EQUIPMENT_TRACKER_DB_URL is not set. Provide --db-url or export env first.")
        return 2

    try:
        engine = create_engine(db_url, pool_pre_ping=True, future=True)
        with Session(engine) as db:
            store = RecordStore(db)
            store.ensure_tables()
            db.commit()
            state = reconcile(store.inventory_values(), store.transaction_values(), limit=args.samples)
    except Exception as exc:
        print(f"Could not read tracker DB: {exc}")
        return 3

    _print_inventory(state.inventory_list)
    _print_transactions(state.transactions)
    return 0


if __name__ == "__main__":
    sys.exit(main())
