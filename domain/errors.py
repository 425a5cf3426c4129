"""
Domain: Error taxonomy for the sale-commit pipeline.

Recoverable errors (validation, compliance, stock, payment, identity conflict,
refund) carry structured fields so callers can correct their input. Gates and
services *return* these values; they are exception classes only so that the
API layer and tests can treat them uniformly and so they render a readable
message.

`PersistenceError` is the store failure class and is raised. Its subclass
`CommitFailedError` marks a failure after stock was already touched: the most
severe outcome, which must be reconciled by an operator and is never retried
automatically.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import List, Optional, Tuple


class PosError(Exception):
    """Base class for every error produced by the POS core."""

    code: str = "POS_ERROR"


class ValidationError(PosError):
    """Input rejected before anything was touched (empty cart, missing staff id, ...)."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None):
        self.message = message
        self.field = field
        super().__init__(message)


class ComplianceReason(str, Enum):
    MISSING = "missing"
    MALFORMED = "malformed"
    UNREGISTERED = "unregistered"


class ComplianceError(ValidationError):
    """Prescription sale without a well-formed credential held by active staff."""

    code = "COMPLIANCE_ERROR"

    def __init__(self, reason: ComplianceReason, detail: str):
        self.reason = reason
        self.detail = detail
        super().__init__(
            f"Pharmacist registration number {reason.value}: {detail}",
            field="credential",
        )


class InsufficientStockError(PosError):
    """A cart line asks for more units than are on hand."""

    code = "INSUFFICIENT_STOCK"

    def __init__(self, medicine_id: str, requested: int, available: int, medicine_name: Optional[str] = None):
        self.medicine_id = medicine_id
        self.requested = requested
        self.available = available
        self.medicine_name = medicine_name
        label = medicine_name or medicine_id
        super().__init__(
            f"Insufficient stock for {label}. "
            f"Requested: {requested}, Available: {available}"
        )


class InsufficientPaymentError(PosError):
    """Cash tendered does not cover the net total."""

    code = "INSUFFICIENT_PAYMENT"

    def __init__(self, required: Decimal, tendered: Decimal):
        self.required = required
        self.tendered = tendered
        super().__init__(f"Insufficient cash. Required: {required}, Tendered: {tendered}")


class IdentityConflictError(PosError):
    """A national ID or phone is already bound to a different customer record."""

    code = "IDENTITY_CONFLICT"

    def __init__(self, field: str, value: str, existing_customer_id: str):
        self.field = field
        self.value = value
        self.existing_customer_id = existing_customer_id
        super().__init__(f"{field} {value!r} already belongs to customer {existing_customer_id}")


class RefundError(PosError):
    """Refund request that cannot be honoured (unknown sale, over-refund, ...)."""

    code = "REFUND_ERROR"

    def __init__(self, message: str, transaction_id: Optional[str] = None):
        self.message = message
        self.transaction_id = transaction_id
        super().__init__(message)


class PersistenceError(PosError, RuntimeError):
    """The backing store failed or returned an unusable response."""

    code = "PERSISTENCE_ERROR"


class CommitFailedError(PersistenceError):
    """
    The commit step failed after stock decrements were applied.

    applied: (medicine_id, quantity) decrements that reached the store.
    unreleased: subset whose compensating increment also failed; these need
        manual reconciliation.
    created_customer_id: Customer record created for this sale, if any.
    customer_removed: Whether that record was deleted again. A record that
        could not be removed is left without a sale and needs reconciliation.
    """

    code = "COMMIT_FAILED"

    def __init__(
        self,
        message: str,
        applied: List[Tuple[str, int]],
        unreleased: List[Tuple[str, int]],
        created_customer_id: Optional[str] = None,
        customer_removed: bool = False,
    ):
        self.applied = applied
        self.unreleased = unreleased
        self.created_customer_id = created_customer_id
        self.customer_removed = customer_removed
        super().__init__(message)

    @property
    def orphaned_customer_id(self) -> Optional[str]:
        if self.created_customer_id and not self.customer_removed:
            return self.created_customer_id
        return None

    @property
    def reconciliation_required(self) -> bool:
        return bool(self.unreleased) or self.orphaned_customer_id is not None


__all__ = [
    "PosError",
    "ValidationError",
    "ComplianceReason",
    "ComplianceError",
    "InsufficientStockError",
    "InsufficientPaymentError",
    "IdentityConflictError",
    "RefundError",
    "PersistenceError",
    "CommitFailedError",
]
