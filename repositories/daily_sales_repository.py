"""
Daily sales summary repository (persistence).

Counters are changed only through the `record_daily_sale` PostgreSQL
function, which upserts the day's row and increments both counters in one
statement, so concurrent terminals never lose an update.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional

from supabase import Client  # type: ignore[import-not-found]

from domain.sales_summary import DailySalesSummary
from domain.time import parse_date
from repositories.supabase_support import execute_query, response_rows

_DAILY_SALES_TABLE: str = "daily_sales"


class SupabaseDailySalesRepository:
    def __init__(self, client: Client):
        self._client = client

    def record_daily_sale(self, day: date, amount: Decimal, count_delta: int) -> None:
        execute_query(
            self._client.rpc(
                "record_daily_sale",
                {
                    "p_day": day.isoformat(),
                    "p_amount": str(amount),
                    "p_count": count_delta,
                },
            ),
            "record daily sale",
        )

    def get_daily_sales(self, day: date) -> Optional[DailySalesSummary]:
        response = execute_query(
            self._client.table(_DAILY_SALES_TABLE)
            .select("*")
            .eq("day", day.isoformat())
            .limit(1),
            "fetch daily sales",
        )
        rows = response_rows(response)
        if not rows:
            return None

        row = rows[0]
        return DailySalesSummary(
            day=parse_date(row["day"]),
            total_sales=Decimal(str(row.get("total_sales") or "0")),
            transaction_count=int(row.get("transaction_count") or 0),
        )


__all__ = ["SupabaseDailySalesRepository"]
