"""
Domain: Medicine catalog entries.

A Medicine is created and maintained by inventory management (outside this
system). The POS only reads catalog entries and changes `stock_quantity`
through atomic decrements at sale commit (and increments on refunds).

Invariants:
- unit_price is a 2-place Decimal and never negative.
- stock_quantity is a non-negative integer.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from .money import to_money


@dataclass(frozen=True, slots=True)
class Medicine:
    """
    Catalog entry for a sellable medicine.

    Batch and expiry describe the stock currently on the shelf; the POS does
    not track stock per batch.
    """

    medicine_id: str
    name: str
    unit_price: Decimal
    stock_quantity: int
    prescription_required: bool = False
    batch_number: Optional[str] = None
    expiry_date: Optional[date] = None

    # Search metadata
    generic_name: Optional[str] = None
    category: Optional[str] = None
    manufacturer: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.medicine_id:
            raise ValueError("medicine_id must not be empty")
        if isinstance(self.stock_quantity, bool) or not isinstance(self.stock_quantity, int):
            raise ValueError("stock_quantity must be an integer")
        if self.stock_quantity < 0:
            raise ValueError("stock_quantity must be >= 0")
        price = to_money(self.unit_price)
        if price < 0:
            raise ValueError("unit_price must be >= 0")
        object.__setattr__(self, "unit_price", price)

    @property
    def in_stock(self) -> bool:
        return self.stock_quantity > 0

    def is_expired(self, as_of: date) -> bool:
        """A medicine without an expiry date never counts as expired."""

        return self.expiry_date is not None and self.expiry_date < as_of


__all__ = ["Medicine"]
