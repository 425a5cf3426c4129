"""
Domain: Open sale cart.

A cart line freezes the medicine's unit price at the moment it is added, so a
later catalog price change never alters an open cart. Quantities are bounded
by the stock seen when the line was added or changed; the authoritative stock
check happens again at commit time (Stock Ledger Gate).

The cart is the only mutable object in the domain. Totals are never stored on
it: they are recomputed by the Pricing Engine after every mutation.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Dict, List, Optional

from .errors import InsufficientStockError, ValidationError
from .medicine import Medicine
from .money import ZERO, to_money, to_rate
from .transaction import PaymentMethod


@dataclass(frozen=True, slots=True)
class CartLine:
    """One medicine entry in an open sale."""

    medicine_id: str
    quantity: int
    unit_price: Decimal
    medicine_name: str = ""
    prescription_required: bool = False

    def __post_init__(self) -> None:
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise ValueError("quantity must be an integer")
        if self.quantity <= 0:
            raise ValueError("quantity must be > 0")
        price = to_money(self.unit_price)
        if price < 0:
            raise ValueError("unit_price must be >= 0")
        object.__setattr__(self, "unit_price", price)

    @property
    def line_total(self) -> Decimal:
        return to_money(self.unit_price * self.quantity)

    @staticmethod
    def from_medicine(medicine: Medicine, quantity: int) -> "CartLine":
        return CartLine(
            medicine_id=medicine.medicine_id,
            quantity=quantity,
            unit_price=medicine.unit_price,
            medicine_name=medicine.name,
            prescription_required=medicine.prescription_required,
        )


@dataclass
class Cart:
    """
    Open cart state for one terminal.

    Lines keep insertion order; adding a medicine that is already in the cart
    increases that line's quantity instead of adding a second line.
    """

    lines: List[CartLine] = field(default_factory=list)
    discount_rate: Decimal = Decimal("0")
    payment_method: PaymentMethod = PaymentMethod.CASH
    tendered_amount: Decimal = ZERO

    def _index(self) -> Dict[str, int]:
        return {line.medicine_id: i for i, line in enumerate(self.lines)}

    def get_line(self, medicine_id: str) -> Optional[CartLine]:
        idx = self._index().get(medicine_id)
        return self.lines[idx] if idx is not None else None

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @property
    def prescription_required(self) -> bool:
        return any(line.prescription_required for line in self.lines)

    def add(self, medicine: Medicine, quantity: int = 1) -> CartLine:
        """
        Add units of a medicine, merging with an existing line.

        The frozen price of an existing line is kept.

        Raises:
            ValueError: If quantity is not positive.
            InsufficientStockError: If the resulting quantity exceeds on-hand stock.
        """

        if quantity <= 0:
            raise ValueError("quantity must be > 0")

        idx = self._index().get(medicine.medicine_id)
        current = self.lines[idx].quantity if idx is not None else 0
        wanted = current + quantity
        if wanted > medicine.stock_quantity:
            raise InsufficientStockError(
                medicine_id=medicine.medicine_id,
                requested=wanted,
                available=medicine.stock_quantity,
                medicine_name=medicine.name,
            )

        if idx is None:
            line = CartLine.from_medicine(medicine, quantity)
            self.lines.append(line)
        else:
            line = replace(self.lines[idx], quantity=wanted)
            self.lines[idx] = line
        return line

    def set_quantity(self, medicine_id: str, quantity: int, available: Optional[int] = None) -> None:
        """
        Change a line's quantity; zero or less removes the line.

        Raises:
            ValidationError: If the medicine is not in the cart.
            InsufficientStockError: If `available` is given and exceeded.
        """

        idx = self._index().get(medicine_id)
        if idx is None:
            raise ValidationError(f"Medicine {medicine_id} is not in the cart", field="medicine_id")

        if quantity <= 0:
            del self.lines[idx]
            return

        if available is not None and quantity > available:
            raise InsufficientStockError(
                medicine_id=medicine_id,
                requested=quantity,
                available=available,
                medicine_name=self.lines[idx].medicine_name or None,
            )
        self.lines[idx] = replace(self.lines[idx], quantity=quantity)

    def remove(self, medicine_id: str) -> None:
        self.lines = [line for line in self.lines if line.medicine_id != medicine_id]

    def set_discount(self, rate) -> None:
        # Out-of-range rates are kept as entered; the Pricing Engine clamps them.
        self.discount_rate = to_rate(rate)

    def set_tender(self, payment_method: PaymentMethod, amount=ZERO) -> None:
        self.payment_method = payment_method
        self.tendered_amount = to_money(amount)

    def clear(self) -> None:
        self.lines = []
        self.discount_rate = Decimal("0")
        self.payment_method = PaymentMethod.CASH
        self.tendered_amount = ZERO


__all__ = ["CartLine", "Cart"]
