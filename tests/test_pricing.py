"""
Tests for `services/pricing_service.py`.

Covers contract rules:
- net_total = subtotal - discount_amount + tax
- Discount rates outside [0, 100] are clamped, never rejected
- Each component is rounded half-up to cents
- Only cash sales produce change
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from domain.cart import Cart, CartLine
from domain.transaction import PaymentMethod
from services.pricing_service import PricingEngine, calculate_totals


def _line(price: str, qty: int, medicine_id: str = "m1") -> CartLine:
    return CartLine(medicine_id=medicine_id, quantity=qty, unit_price=Decimal(price))


def test_discounted_cart_totals() -> None:
    """2 x 18.00 with 10% discount and no tax nets 32.40."""

    totals = calculate_totals([_line("18.00", 2)], discount_rate=10)

    assert totals.subtotal == Decimal("36.00")
    assert totals.discount_amount == Decimal("3.60")
    assert totals.tax == Decimal("0.00")
    assert totals.net_total == Decimal("32.40")
    assert totals.item_count == 2


def test_cash_change_and_shortfall() -> None:
    """Tendering 50.00 against 32.40 gives 17.60 change; 30.00 does not cover it."""

    lines = [_line("18.00", 2)]

    paid = calculate_totals(lines, discount_rate=10, tendered_amount="50.00")
    assert paid.balance == Decimal("17.60")
    assert paid.covers(PaymentMethod.CASH)

    short = calculate_totals(lines, discount_rate=10, tendered_amount="30.00")
    assert short.balance == Decimal("0.00")
    assert not short.covers(PaymentMethod.CASH)


def test_non_cash_has_no_balance() -> None:
    totals = calculate_totals(
        [_line("18.00", 2)],
        payment_method=PaymentMethod.CARD,
        tendered_amount="100.00",
    )

    assert totals.balance == Decimal("0.00")
    assert totals.covers(PaymentMethod.CARD)


@pytest.mark.parametrize(
    "rate, expected_rate, expected_net",
    [
        (-5, Decimal("0"), Decimal("36.00")),
        (150, Decimal("100"), Decimal("0.00")),
        ("12.5", Decimal("12.5"), Decimal("31.50")),
    ],
)
def test_discount_rate_is_clamped(rate, expected_rate, expected_net) -> None:
    totals = calculate_totals([_line("18.00", 2)], discount_rate=rate)

    assert totals.discount_rate == expected_rate
    assert totals.net_total == expected_net


def test_tax_applies_to_discounted_subtotal() -> None:
    totals = calculate_totals([_line("50.00", 2)], discount_rate=10, tax_rate=5)

    assert totals.subtotal == Decimal("100.00")
    assert totals.discount_amount == Decimal("10.00")
    assert totals.tax == Decimal("4.50")
    assert totals.net_total == Decimal("94.50")


def test_components_round_half_up_before_combining() -> None:
    """10.05 at 50% is 5.025, rounded to 5.03 before the net is taken."""

    totals = calculate_totals([_line("10.05", 1)], discount_rate=50)

    assert totals.discount_amount == Decimal("5.03")
    assert totals.net_total == Decimal("5.02")
    assert totals.net_total == totals.subtotal - totals.discount_amount + totals.tax


def test_net_total_identity_holds_across_carts() -> None:
    carts = [
        [_line("0.99", 3)],
        [_line("45.50", 1, "a"), _line("8.75", 7, "b")],
        [_line("1234.56", 2, "a"), _line("0.01", 99, "b")],
    ]
    for lines in carts:
        for rate in ("0", "7.5", "33.33", "100"):
            totals = calculate_totals(lines, discount_rate=rate, tax_rate="8")
            assert totals.net_total == totals.subtotal - totals.discount_amount + totals.tax


def test_negative_tax_rate_is_rejected() -> None:
    with pytest.raises(ValueError):
        calculate_totals([_line("1.00", 1)], tax_rate=-1)


def test_empty_cart_prices_to_zero() -> None:
    totals = calculate_totals([])

    assert totals.subtotal == Decimal("0.00")
    assert totals.net_total == Decimal("0.00")
    assert totals.item_count == 0


def test_engine_prices_cart_with_configured_tax() -> None:
    cart = Cart(lines=[_line("20.00", 1)])
    cart.set_discount(25)
    cart.set_tender(PaymentMethod.CASH, "20")

    totals = PricingEngine(tax_rate=10).price_cart(cart)

    assert totals.discount_amount == Decimal("5.00")
    assert totals.tax == Decimal("1.50")
    assert totals.net_total == Decimal("16.50")
    assert totals.balance == Decimal("3.50")


def test_pricing_is_idempotent() -> None:
    lines = [_line("18.00", 2)]

    assert calculate_totals(lines, 10) == calculate_totals(lines, 10)
