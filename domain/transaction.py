"""
Domain: Committed sale and refund transactions.

A Transaction is an immutable snapshot of what was sold, at what prices and
totals, by whom and to whom. Corrections are never edits: a refund is a new
Transaction of type REFUND that references the original sale.

Line items are embedded copies (name, price and quantity at commit time), not
live references to the catalog.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple

from .time import require_utc_timestamp

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    DIGITAL = "digital"


class TransactionType(str, Enum):
    SALE = "sale"
    REFUND = "refund"


@dataclass(frozen=True, slots=True)
class TransactionLine:
    """Committed line item snapshot."""

    medicine_id: str
    medicine_name: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    Immutable record of a committed sale or refund.

    Amounts on a REFUND are positive and describe the money returned.
    """

    transaction_id: str
    receipt_number: str
    transaction_type: TransactionType
    lines: Tuple[TransactionLine, ...]
    subtotal: Decimal
    discount_rate: Decimal
    discount_amount: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    net_total: Decimal
    tendered_amount: Decimal
    balance: Decimal
    payment_method: PaymentMethod
    staff_id: str
    committed_at: datetime
    credential: Optional[str] = None
    customer_id: Optional[str] = None
    original_transaction_id: Optional[str] = None
    note: Optional[str] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("committed_at", self.committed_at)
        if not isinstance(self.lines, tuple):
            object.__setattr__(self, "lines", tuple(self.lines))
        if self.transaction_type is TransactionType.REFUND and not self.original_transaction_id:
            raise ValueError("refund transactions must reference original_transaction_id")

    @property
    def is_refund(self) -> bool:
        return self.transaction_type is TransactionType.REFUND

    @property
    def signed_total(self) -> Decimal:
        """Net total as it affects revenue: negative for refunds."""

        return -self.net_total if self.is_refund else self.net_total

    def quantity_by_medicine(self) -> dict[str, int]:
        totals: dict[str, int] = {}
        for line in self.lines:
            totals[line.medicine_id] = totals.get(line.medicine_id, 0) + line.quantity
        return totals


def generate_receipt_number(committed_at: datetime, prefix: str = "RCP") -> str:
    """
    Build a human-readable receipt number from the commit timestamp.

    Format: PREFIX-YYYYMMDD-NNNNNN where NNNNNN is the last six digits of the
    epoch milliseconds.

    Example:
        generate_receipt_number(datetime(2025, 3, 1, 10, 0, tzinfo=timezone.utc))
        # 'RCP-20250301-200000'
    """

    require_utc_timestamp("committed_at", committed_at)
    millis = (committed_at - _EPOCH) // timedelta(milliseconds=1)
    return f"{prefix}-{committed_at:%Y%m%d}-{millis % 1_000_000:06d}"


__all__ = [
    "PaymentMethod",
    "TransactionType",
    "TransactionLine",
    "Transaction",
    "generate_receipt_number",
]
