"""
Pricing service for calculating cart totals.

One pricing formula for every POS screen:

    subtotal        = sum(unit_price * quantity)
    discount_amount = subtotal * clamp(discount_rate, 0, 100) / 100
    tax             = (subtotal - discount_amount) * tax_rate / 100
    net_total       = subtotal - discount_amount + tax
    balance         = max(0, tendered - net_total)   (cash only, else 0)

Each component is rounded half-up to cents before it feeds the next one, so
the printed components always add up to the printed net total. Pricing is pure
and idempotent; callers re-run it after every cart mutation.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from domain.cart import Cart, CartLine
from domain.money import ZERO, clamp_rate, percentage_of, to_money, to_rate
from domain.transaction import PaymentMethod


@dataclass(frozen=True, slots=True)
class CartTotals:
    """
    Computed totals for a cart.

    discount_rate is the *effective* (clamped) rate that was applied.
    """
    subtotal: Decimal
    discount_rate: Decimal
    discount_amount: Decimal
    tax_rate: Decimal
    tax: Decimal
    net_total: Decimal
    tendered_amount: Decimal
    balance: Decimal
    item_count: int

    def covers(self, payment_method: PaymentMethod) -> bool:
        """True when the tender pays for the sale (non-cash always does)."""
        if payment_method is not PaymentMethod.CASH:
            return True
        return self.tendered_amount >= self.net_total


def calculate_totals(
    lines: Sequence[CartLine],
    discount_rate=Decimal("0"),
    tax_rate=Decimal("0"),
    payment_method: PaymentMethod = PaymentMethod.CASH,
    tendered_amount=ZERO,
) -> CartTotals:
    """
    Calculate totals for the given cart lines.

    Args:
        lines: Cart lines with frozen unit prices
        discount_rate: Percentage discount; values outside [0, 100] are clamped
        tax_rate: Percentage tax on the discounted subtotal (default 0)
        payment_method: Only CASH produces a balance (change)
        tendered_amount: Cash handed over by the customer

    Returns:
        CartTotals

    Example:
        lines = [CartLine(medicine_id="m1", quantity=2, unit_price=Decimal("18.00"))]
        totals = calculate_totals(lines, discount_rate=10)
        # subtotal 36.00, discount 3.60, net 32.40
    """
    effective_rate = clamp_rate(to_rate(discount_rate))
    tax_rate = to_rate(tax_rate)
    if tax_rate < 0:
        raise ValueError("tax_rate must be >= 0")
    tendered = to_money(tendered_amount)

    subtotal = to_money(sum((line.line_total for line in lines), ZERO))
    discount_amount = percentage_of(subtotal, effective_rate)
    tax = percentage_of(subtotal - discount_amount, tax_rate)
    net_total = to_money(subtotal - discount_amount + tax)

    if payment_method is PaymentMethod.CASH:
        balance = max(ZERO, to_money(tendered - net_total))
    else:
        balance = ZERO

    return CartTotals(
        subtotal=subtotal,
        discount_rate=effective_rate,
        discount_amount=discount_amount,
        tax_rate=tax_rate,
        tax=tax,
        net_total=net_total,
        tendered_amount=tendered,
        balance=balance,
        item_count=sum(line.quantity for line in lines),
    )


class PricingEngine:
    """Pricing with the store's configured tax rate."""

    def __init__(self, tax_rate=Decimal("0")):
        self.tax_rate = to_rate(tax_rate)

    def price_lines(
        self,
        lines: Sequence[CartLine],
        discount_rate=Decimal("0"),
        payment_method: PaymentMethod = PaymentMethod.CASH,
        tendered_amount=ZERO,
    ) -> CartTotals:
        return calculate_totals(lines, discount_rate, self.tax_rate, payment_method, tendered_amount)

    def price_cart(self, cart: Cart) -> CartTotals:
        """Totals for the cart's current state."""
        return self.price_lines(cart.lines, cart.discount_rate, cart.payment_method, cart.tendered_amount)


__all__ = [
    "CartTotals",
    "PricingEngine",
    "calculate_totals",
]
