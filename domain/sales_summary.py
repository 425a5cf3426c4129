"""
Domain: Daily sales summary.

One summary per calendar day (UTC). The counters are maintained with atomic
increments at commit time; refunds reduce `total_sales` but do not reduce
`transaction_count`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from .money import ZERO, to_money


@dataclass(frozen=True, slots=True)
class DailySalesSummary:
    day: date
    total_sales: Decimal = ZERO
    transaction_count: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "total_sales", to_money(self.total_sales))

    @staticmethod
    def empty(day: date) -> "DailySalesSummary":
        return DailySalesSummary(day=day)


__all__ = ["DailySalesSummary"]
