"""
Refund service for reversing committed sales.

A refund never edits the original sale. It is a new REFUND transaction that
references the original and carries positive amounts describing the money
returned. Then:
- refunded units go back on the shelf (atomic increments)
- the customer's purchase total is reduced by the refunded amount
- the daily summary total is reduced (the transaction count is not)

Amounts are pro-rata: the refunded lines are priced at the original unit
prices with the original discount and tax rates applied. The refunded
quantity per medicine, summed over all earlier refunds, can never exceed what
was sold.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from domain.errors import PersistenceError, RefundError, ValidationError
from domain.money import ZERO, percentage_of, to_money
from domain.time import utc_now
from domain.transaction import (
    Transaction,
    TransactionLine,
    TransactionType,
    generate_receipt_number,
)
from repositories.ports import CustomerPool, DailySalesLedger, MedicineCatalog, TransactionLedger

logger = logging.getLogger(__name__)

REFUND_RECEIPT_PREFIX = "RFD"


@dataclass(frozen=True, slots=True)
class RefundItem:
    medicine_id: str
    quantity: int


@dataclass(frozen=True, slots=True)
class RefundResult:
    """
    Result of a refund attempt.

    warnings: Follow-up updates that failed after the refund was recorded
    """
    success: bool
    refund: Optional[Transaction] = None
    error: Optional[Union[RefundError, ValidationError]] = None
    warnings: Tuple[str, ...] = ()


def _refunded_quantities(refunds: Sequence[Transaction]) -> Dict[str, int]:
    totals: Dict[str, int] = {}
    for refund in refunds:
        for medicine_id, quantity in refund.quantity_by_medicine().items():
            totals[medicine_id] = totals.get(medicine_id, 0) + quantity
    return totals


class RefundService:
    def __init__(
        self,
        catalog: MedicineCatalog,
        customers: CustomerPool,
        transactions: TransactionLedger,
        daily_sales: Optional[DailySalesLedger] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._catalog = catalog
        self._customers = customers
        self._transactions = transactions
        self._daily_sales = daily_sales
        self._clock = clock

    def _requested(
        self,
        original: Transaction,
        remaining: Dict[str, int],
        items: Optional[Sequence[RefundItem]],
    ) -> Union[Dict[str, int], RefundError]:
        if items is None:
            requested = {mid: qty for mid, qty in remaining.items() if qty > 0}
            if not requested:
                return RefundError("Transaction has already been fully refunded", original.transaction_id)
            return requested

        if not items:
            return RefundError("No items to refund", original.transaction_id)

        requested: Dict[str, int] = {}
        for item in items:
            if item.quantity <= 0:
                return RefundError(f"Refund quantity for {item.medicine_id} must be > 0", original.transaction_id)
            if item.medicine_id not in remaining:
                return RefundError(f"Medicine {item.medicine_id} was not part of this sale", original.transaction_id)
            requested[item.medicine_id] = requested.get(item.medicine_id, 0) + item.quantity

        for medicine_id, quantity in requested.items():
            if quantity > remaining[medicine_id]:
                return RefundError(
                    f"Cannot refund {quantity} of {medicine_id}: only {remaining[medicine_id]} refundable",
                    original.transaction_id,
                )
        return requested

    def refund(
        self,
        original_transaction_id: str,
        staff_id: str,
        items: Optional[Sequence[RefundItem]] = None,
        reason: Optional[str] = None,
    ) -> RefundResult:
        """
        Refund all or part of a committed sale.

        Args:
            original_transaction_id: Sale being reversed
            staff_id: Staff member processing the refund
            items: Medicines and quantities to refund (None refunds everything
                not yet refunded)
            reason: Free-text note stored on the refund

        Returns:
            RefundResult with the persisted REFUND transaction, or the error

        Raises:
            PersistenceError: If the refund transaction could not be saved
                (nothing else was changed)

        Example:
            result = service.refund(sale_id, "EMP001", [RefundItem("MED001", 1)])
        """
        staff_id = (staff_id or "").strip()
        if not staff_id:
            return RefundResult(success=False, error=ValidationError("Staff id is required", field="staff_id"))

        original = self._transactions.get_transaction(original_transaction_id)
        if original is None:
            return RefundResult(
                success=False,
                error=RefundError(f"Transaction {original_transaction_id} not found", original_transaction_id),
            )
        if original.is_refund:
            return RefundResult(
                success=False,
                error=RefundError("A refund cannot be refunded", original_transaction_id),
            )

        earlier = self._transactions.list_refunds_for(original.transaction_id)
        sold = original.quantity_by_medicine()
        already = _refunded_quantities(earlier)
        remaining = {mid: qty - already.get(mid, 0) for mid, qty in sold.items()}

        requested = self._requested(original, remaining, items)
        if isinstance(requested, RefundError):
            logger.info("Refund rejected", extra={"transaction_id": original.transaction_id, "reason": str(requested)})
            return RefundResult(success=False, error=requested)

        refund = self._build_refund(original, earlier, requested, staff_id, reason)
        self._transactions.save_transaction(refund)

        warnings = self._apply_side_effects(original, refund)
        logger.info(
            "Refund committed",
            extra={
                "transaction_id": refund.transaction_id,
                "original_transaction_id": original.transaction_id,
                "net_total": str(refund.net_total),
                "staff_id": staff_id,
            },
        )
        return RefundResult(success=True, refund=refund, warnings=tuple(warnings))

    def _build_refund(
        self,
        original: Transaction,
        earlier: Sequence[Transaction],
        requested: Dict[str, int],
        staff_id: str,
        reason: Optional[str],
    ) -> Transaction:
        unit_prices: Dict[str, Tuple[str, Decimal]] = {}
        for line in original.lines:
            unit_prices.setdefault(line.medicine_id, (line.medicine_name, line.unit_price))

        lines: List[TransactionLine] = []
        for medicine_id, quantity in requested.items():
            name, unit_price = unit_prices[medicine_id]
            lines.append(
                TransactionLine(
                    medicine_id=medicine_id,
                    medicine_name=name,
                    quantity=quantity,
                    unit_price=unit_price,
                    line_total=to_money(unit_price * quantity),
                )
            )

        subtotal = to_money(sum((line.line_total for line in lines), ZERO))
        discount_amount = percentage_of(subtotal, original.discount_rate)
        tax = percentage_of(subtotal - discount_amount, original.tax_rate)
        net_total = to_money(subtotal - discount_amount + tax)

        # Per-refund rounding must never return more than was paid.
        already_returned = sum((r.net_total for r in earlier), ZERO)
        net_total = min(net_total, to_money(original.net_total - already_returned))

        committed_at = self._clock()
        return Transaction(
            transaction_id=str(uuid.uuid4()),
            receipt_number=generate_receipt_number(committed_at, prefix=REFUND_RECEIPT_PREFIX),
            transaction_type=TransactionType.REFUND,
            lines=tuple(lines),
            subtotal=subtotal,
            discount_rate=original.discount_rate,
            discount_amount=discount_amount,
            tax_rate=original.tax_rate,
            tax_amount=tax,
            net_total=net_total,
            tendered_amount=ZERO,
            balance=ZERO,
            payment_method=original.payment_method,
            staff_id=staff_id,
            committed_at=committed_at,
            customer_id=original.customer_id,
            original_transaction_id=original.transaction_id,
            note=reason,
        )

    def _apply_side_effects(self, original: Transaction, refund: Transaction) -> List[str]:
        warnings: List[str] = []

        for medicine_id, quantity in refund.quantity_by_medicine().items():
            try:
                self._catalog.atomic_increment(medicine_id, quantity)
            except PersistenceError as e:
                warnings.append(f"stock not restored for {medicine_id}")
                logger.critical(
                    "Failed to restore refunded stock; manual reconciliation required",
                    extra={
                        "transaction_id": refund.transaction_id,
                        "medicine_id": medicine_id,
                        "quantity": quantity,
                        "error": str(e),
                    },
                )

        if original.customer_id:
            try:
                customer = self._customers.get_customer(original.customer_id)
                if customer is not None:
                    self._customers.record_purchase(customer.customer_id, customer.kind, refund.signed_total, None)
            except PersistenceError as e:
                warnings.append("customer purchase total not updated")
                logger.error(
                    "Failed to reduce customer purchase total",
                    extra={"customer_id": original.customer_id, "transaction_id": refund.transaction_id, "error": str(e)},
                )

        if self._daily_sales is not None:
            try:
                self._daily_sales.record_daily_sale(refund.committed_at.date(), refund.signed_total, 0)
            except PersistenceError as e:
                warnings.append("daily sales summary not updated")
                logger.error(
                    "Failed to reduce daily sales summary",
                    extra={"transaction_id": refund.transaction_id, "error": str(e)},
                )

        return warnings


__all__ = ["REFUND_RECEIPT_PREFIX", "RefundItem", "RefundResult", "RefundService"]
