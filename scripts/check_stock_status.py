#!/usr/bin/env python3
"""
Check stock status - how many medicines are available, low, out of stock or expired.

Usage:
    python scripts/check_stock_status.py
    python scripts/check_stock_status.py --low-stock 20
    python scripts/check_stock_status.py --expiring-within 30
"""

from __future__ import annotations

import argparse
import sys
from datetime import timedelta
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from domain.time import utc_now
from repositories.client import create_supabase_client_from_env
from repositories.medicine_repository import SupabaseMedicineRepository


def check_stock_status(low_stock: int, expiring_within: int, limit: int) -> None:
    """Print catalog stock levels and batches that need attention."""

    repo = SupabaseMedicineRepository(create_supabase_client_from_env())
    medicines = repo.list_medicines(limit=limit)

    today = utc_now().date()
    horizon = today + timedelta(days=expiring_within)

    in_stock = [m for m in medicines if m.in_stock]
    out_of_stock = [m for m in medicines if not m.in_stock]
    low = [m for m in in_stock if m.stock_quantity <= low_stock]
    expired = [m for m in medicines if m.is_expired(today)]
    expiring = [m for m in medicines if not m.is_expired(today) and m.expiry_date and m.expiry_date <= horizon]

    print("=" * 50)
    print("STOCK STATUS")
    print("=" * 50)
    print(f"Catalog entries:           {len(medicines)}")
    print(f"In stock:                  {len(in_stock)}")
    print(f"Out of stock:              {len(out_of_stock)}")
    print(f"Low stock (<= {low_stock}):{'':>8}{len(low)}")
    print(f"Expired batches:           {len(expired)}")
    print(f"Expiring in {expiring_within} days:{'':>6}{len(expiring)}")
    print("=" * 50)

    if low:
        print("\nLow stock:")
        print("-" * 50)
        for m in sorted(low, key=lambda m: m.stock_quantity):
            print(f"{m.medicine_id:<12} {m.name:<30} {m.stock_quantity:>5}")

    if expired or expiring:
        print("\nExpired / expiring batches:")
        print("-" * 50)
        for m in sorted(expired + expiring, key=lambda m: m.expiry_date):
            flag = "EXPIRED" if m.is_expired(today) else "expiring"
            print(f"{m.medicine_id:<12} {m.name:<30} {m.batch_number or '-':<10} {m.expiry_date} {flag}")

    print("-" * 50)


def main() -> int:
    parser = argparse.ArgumentParser(description="Report medicine stock levels and expiring batches")
    parser.add_argument("--low-stock", type=int, default=10, help="Threshold for the low stock list (default: 10)")
    parser.add_argument("--expiring-within", type=int, default=30, help="Days ahead to flag expiring batches (default: 30)")
    parser.add_argument("--limit", type=int, default=5000, help="Maximum catalog rows to read (default: 5000)")
    args = parser.parse_args()

    check_stock_status(args.low_stock, args.expiring_within, args.limit)
    return 0


if __name__ == "__main__":
    sys.exit(main())
