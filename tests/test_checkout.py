"""
Tests for `services/checkout_service.py`.

Covers contract rules:
- A rejected checkout writes nothing (stock, customers, ledger, daily totals).
- A committed sale decrements stock, stores one immutable transaction and
  updates the customer and daily aggregates.
- State only moves IDLE -> VALIDATING -> COMMITTING -> PERSISTED | REJECTED.
- A store failure after stock was decremented releases the decrements,
  removes a customer created for the sale and raises CommitFailedError.
- A prescription credential must belong to an active member of staff.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from domain.cart import CartLine
from domain.customer import IdentityField
from domain.errors import (
    CommitFailedError,
    ComplianceError,
    ComplianceReason,
    IdentityConflictError,
    InsufficientPaymentError,
    InsufficientStockError,
    PersistenceError,
    ValidationError,
)
from domain.staff import Staff
from domain.transaction import PaymentMethod
from services.checkout_service import (
    CheckoutRequest,
    CheckoutService,
    CheckoutState,
    CheckoutStateMachine,
    CustomerInput,
    IllegalTransitionError,
)


def _line(medicine_id: str, qty: int, price: str, prescription: bool = False) -> CartLine:
    return CartLine(
        medicine_id=medicine_id,
        quantity=qty,
        unit_price=Decimal(price),
        prescription_required=prescription,
    )


def _request(lines=None, **overrides) -> CheckoutRequest:
    fields = dict(
        lines=tuple(lines if lines is not None else [_line("MED001", 2, "18.00")]),
        staff_id="EMP001",
        payment_method=PaymentMethod.CASH,
        tendered_amount=Decimal("50.00"),
        discount_rate=Decimal("10"),
    )
    fields.update(overrides)
    return CheckoutRequest(**fields)


REJECTED_HISTORY = (CheckoutState.IDLE, CheckoutState.VALIDATING, CheckoutState.REJECTED)


class FailingLedger:
    """Transaction ledger whose inserts always fail."""

    def save_transaction(self, transaction):
        raise PersistenceError("Failed to record transaction: connection reset")


class FailingAggregates:
    """Customer pool / daily ledger wrapper whose aggregate updates fail."""

    def __init__(self, store):
        self._store = store

    def __getattr__(self, name):
        return getattr(self._store, name)

    def record_purchase(self, *args, **kwargs):
        raise PersistenceError("Failed to record customer purchase: timeout")

    def record_daily_sale(self, *args, **kwargs):
        raise PersistenceError("Failed to record daily sale: timeout")


class UndeletablePool:
    """Customer pool wrapper whose deletes fail."""

    def __init__(self, store):
        self._store = store

    def __getattr__(self, name):
        return getattr(self._store, name)

    def delete_customer(self, customer_id, kind):
        raise PersistenceError("Failed to delete customer: permission denied")


def test_cash_sale_commits(checkout_service, store) -> None:
    result = checkout_service.checkout(_request())

    assert result.success
    assert result.state is CheckoutState.PERSISTED
    assert result.history == (
        CheckoutState.IDLE,
        CheckoutState.VALIDATING,
        CheckoutState.COMMITTING,
        CheckoutState.PERSISTED,
    )

    tx = result.receipt.transaction
    assert tx.net_total == Decimal("32.40")
    assert tx.balance == Decimal("17.60")
    assert tx.receipt_number == "RCP-20250301-200000"
    assert tx.lines[0].medicine_name == "Paracetamol 500mg"
    assert tx.customer_id is None
    assert store.get_transaction(tx.transaction_id) == tx
    assert store.get_medicine("MED001").stock_quantity == 98

    summary = store.get_daily_sales(date(2025, 3, 1))
    assert summary.total_sales == Decimal("32.40")
    assert summary.transaction_count == 1


def test_existing_customer_aggregates_updated(checkout_service, store) -> None:
    result = checkout_service.checkout(_request(customer=CustomerInput(term="199012345678")))

    assert result.success
    receipt = result.receipt
    assert receipt.customer.customer_id == "C001"
    assert not receipt.customer_created
    assert receipt.customer.total_purchases == Decimal("132.40")
    assert receipt.transaction.customer_id == "C001"

    stored = store.get_customer("C001")
    assert stored.total_purchases == Decimal("132.40")
    assert stored.last_visit == receipt.transaction.committed_at


def test_new_customer_created_on_commit(checkout_service, store) -> None:
    customer = CustomerInput(term="200011112222", name="Sunil Dias", phone="0701112223")

    result = checkout_service.checkout(_request(customer=customer))

    assert result.receipt.customer_created
    stored = store.get_customer(result.receipt.customer.customer_id)
    assert stored.national_id == "200011112222"
    assert stored.total_purchases == Decimal("32.40")


def test_prescription_sale_records_credential(checkout_service, store) -> None:
    request = _request(
        lines=[_line("MED002", 1, "45.50", prescription=True)],
        discount_rate=Decimal("0"),
        credential=" 123456 ",
    )

    result = checkout_service.checkout(request)

    assert result.success
    assert result.receipt.transaction.credential == "123456"
    assert store.get_medicine("MED002").stock_quantity == 4


@pytest.mark.parametrize(
    "overrides, field",
    [
        ({"lines": []}, "lines"),
        ({"staff_id": "  "}, "staff_id"),
        ({"staff_id": "EMP999"}, "staff_id"),
        ({"staff_id": "EMP002"}, "staff_id"),
        ({"lines": [_line("MED999", 1, "1.00")]}, "medicine_id"),
    ],
)
def test_invalid_requests_rejected(checkout_service, store, overrides, field) -> None:
    result = checkout_service.checkout(_request(**overrides))

    assert not result.success
    assert isinstance(result.error, ValidationError)
    assert result.error.field == field
    assert result.history == REJECTED_HISTORY
    assert store.list_recent_transactions() == []


def test_missing_credential_rejected(checkout_service, store) -> None:
    result = checkout_service.checkout(_request(lines=[_line("MED002", 1, "45.50")]))

    # The catalog flags MED002 even though the line snapshot does not.
    assert isinstance(result.error, ComplianceError)
    assert result.error.reason is ComplianceReason.MISSING
    assert store.get_medicine("MED002").stock_quantity == 5


def test_short_credential_rejected_before_stock(checkout_service, store) -> None:
    """Five-digit credential on a prescription sale: nothing is touched."""

    request = _request(lines=[_line("MED002", 1, "45.50", prescription=True)], credential="12345")

    result = checkout_service.checkout(request)

    assert result.error.reason is ComplianceReason.MALFORMED
    assert result.history == REJECTED_HISTORY
    assert store.get_medicine("MED002").stock_quantity == 5


def test_insufficient_stock_rejected(checkout_service, store) -> None:
    request = _request(lines=[_line("MED002", 6, "45.50", prescription=True)], credential="123456", tendered_amount=Decimal("500"))

    result = checkout_service.checkout(request)

    assert isinstance(result.error, InsufficientStockError)
    assert result.error.requested == 6
    assert result.error.available == 5
    assert store.get_medicine("MED002").stock_quantity == 5


def test_insufficient_cash_rejected(checkout_service, store) -> None:
    result = checkout_service.checkout(_request(tendered_amount=Decimal("30.00")))

    assert isinstance(result.error, InsufficientPaymentError)
    assert result.error.required == Decimal("32.40")
    assert result.totals.net_total == Decimal("32.40")
    assert store.get_medicine("MED001").stock_quantity == 100


def test_card_sale_needs_no_tender(checkout_service) -> None:
    result = checkout_service.checkout(
        _request(payment_method=PaymentMethod.CARD, tendered_amount=Decimal("0"))
    )

    assert result.success
    assert result.receipt.transaction.balance == Decimal("0.00")


def test_identity_conflict_rejected(checkout_service, store) -> None:
    customer = CustomerInput(term="200011112222", name="Someone Else", phone="0771234567")
    before = len(store.all_customers())

    result = checkout_service.checkout(_request(customer=customer))

    assert isinstance(result.error, IdentityConflictError)
    assert result.history == REJECTED_HISTORY
    assert len(store.all_customers()) == before
    assert store.get_medicine("MED001").stock_quantity == 100


def test_failed_save_releases_stock(store, clock) -> None:
    service = CheckoutService(store, store, FailingLedger(), daily_sales=store, staff=store, clock=clock)

    with pytest.raises(CommitFailedError) as exc_info:
        service.checkout(_request())

    assert exc_info.value.applied == [("MED001", 2)]
    assert not exc_info.value.reconciliation_required
    assert store.get_medicine("MED001").stock_quantity == 100
    assert store.get_daily_sales(date(2025, 3, 1)) is None


def test_failed_save_removes_customer_created_for_sale(store, clock) -> None:
    service = CheckoutService(store, store, FailingLedger(), daily_sales=store, staff=store, clock=clock)
    before = len(store.all_customers())

    with pytest.raises(CommitFailedError) as exc_info:
        service.checkout(_request(customer=CustomerInput(term="200099988877", name="New Person")))

    error = exc_info.value
    assert error.created_customer_id is not None
    assert error.customer_removed
    assert error.orphaned_customer_id is None
    assert not error.reconciliation_required
    assert len(store.all_customers()) == before
    assert store.find_by_exact_field(IdentityField.NATIONAL_ID, "200099988877") is None
    assert store.get_medicine("MED001").stock_quantity == 100


def test_failed_save_leaves_matched_customer_untouched(store, clock) -> None:
    service = CheckoutService(store, store, FailingLedger(), daily_sales=store, staff=store, clock=clock)
    before = store.get_customer("C001")

    with pytest.raises(CommitFailedError) as exc_info:
        service.checkout(_request(customer=CustomerInput(term="199012345678", name="Nimal K. Perera", phone="0701112223")))

    assert exc_info.value.created_customer_id is None
    assert store.get_customer("C001") == before


def test_customer_that_cannot_be_removed_needs_reconciliation(store, clock) -> None:
    pool = UndeletablePool(store)
    service = CheckoutService(store, pool, FailingLedger(), daily_sales=store, staff=store, clock=clock)

    with pytest.raises(CommitFailedError) as exc_info:
        service.checkout(_request(customer=CustomerInput(term="200099988877", name="New Person")))

    error = exc_info.value
    assert error.orphaned_customer_id == error.created_customer_id
    assert error.reconciliation_required
    assert error.unreleased == []
    assert store.get_customer(error.orphaned_customer_id).total_purchases == Decimal("0.00")


def test_matched_customer_details_refreshed_after_sale(checkout_service, store) -> None:
    customer = CustomerInput(term="199012345678", name="Nimal K. Perera", phone="0701112223")

    result = checkout_service.checkout(_request(customer=customer))

    assert result.receipt.customer.name == "Nimal K. Perera"
    stored = store.get_customer("C001")
    assert stored.name == "Nimal K. Perera"
    assert stored.phone == "0701112223"
    assert stored.total_purchases == Decimal("132.40")


def test_unregistered_credential_rejected(checkout_service, store) -> None:
    request = _request(lines=[_line("MED002", 1, "45.50", prescription=True)], credential="999999", tendered_amount=Decimal("100"))

    result = checkout_service.checkout(request)

    assert isinstance(result.error, ComplianceError)
    assert result.error.reason is ComplianceReason.UNREGISTERED
    assert result.history == REJECTED_HISTORY
    assert store.get_medicine("MED002").stock_quantity == 5


def test_credential_of_inactive_pharmacist_rejected(checkout_service, store) -> None:
    store.add_staff(Staff(staff_id="EMP003", name="Former Pharmacist", status="terminated", registration_number="654321"))
    request = _request(lines=[_line("MED002", 1, "45.50", prescription=True)], credential="654321", tendered_amount=Decimal("100"))

    result = checkout_service.checkout(request)

    assert result.error.reason is ComplianceReason.UNREGISTERED
    assert "EMP003" in str(result.error)
    assert store.list_recent_transactions() == []


def test_credential_holder_not_checked_without_staff_verification(store, clock) -> None:
    service = CheckoutService(store, store, store, staff=store, require_staff_verification=False, clock=clock)
    request = _request(lines=[_line("MED002", 1, "45.50", prescription=True)], credential="999999", tendered_amount=Decimal("100"))

    assert service.checkout(request).success


def test_aggregate_failures_become_warnings(store, clock) -> None:
    flaky = FailingAggregates(store)
    service = CheckoutService(store, flaky, store, daily_sales=flaky, staff=store, clock=clock)

    result = service.checkout(_request(customer=CustomerInput(term="199012345678")))

    assert result.success
    assert set(result.receipt.warnings) == {
        "customer purchase total not updated",
        "daily sales summary not updated",
    }
    assert store.get_transaction(result.receipt.transaction.transaction_id) is not None
    assert store.get_customer("C001").total_purchases == Decimal("100.00")


def test_staff_verification_can_be_disabled(store, clock) -> None:
    service = CheckoutService(store, store, store, staff=store, require_staff_verification=False, clock=clock)

    assert service.checkout(_request(staff_id="EMP999")).success


def test_state_machine_rejects_illegal_transitions() -> None:
    machine = CheckoutStateMachine()

    with pytest.raises(IllegalTransitionError):
        machine.transition(CheckoutState.PERSISTED)

    machine.transition(CheckoutState.VALIDATING)
    machine.transition(CheckoutState.REJECTED, reason="VALIDATION_ERROR")
    assert machine.is_terminal
    assert machine.reason == "VALIDATION_ERROR"

    with pytest.raises(IllegalTransitionError):
        machine.transition(CheckoutState.VALIDATING)
