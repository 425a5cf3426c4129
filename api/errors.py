"""
Mapping from POS errors to HTTP errors.

Recoverable errors become 4xx responses whose detail carries the error code
and its structured fields, so a client can point the cashier at the problem.
Store failures become 500.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import HTTPException

from domain.errors import (
    CommitFailedError,
    ComplianceError,
    IdentityConflictError,
    InsufficientPaymentError,
    InsufficientStockError,
    PersistenceError,
    PosError,
    RefundError,
    ValidationError,
)


def error_detail(error: PosError) -> Dict[str, Any]:
    detail: Dict[str, Any] = {"code": error.code, "message": str(error)}

    if isinstance(error, ComplianceError):
        detail.update(field=error.field, reason=error.reason.value)
    elif isinstance(error, ValidationError):
        detail.update(field=error.field)
    elif isinstance(error, InsufficientStockError):
        detail.update(medicine_id=error.medicine_id, requested=error.requested, available=error.available)
    elif isinstance(error, InsufficientPaymentError):
        detail.update(required=str(error.required), tendered=str(error.tendered))
    elif isinstance(error, IdentityConflictError):
        detail.update(field=error.field, existing_customer_id=error.existing_customer_id)
    elif isinstance(error, CommitFailedError):
        detail.update(
            reconciliation_required=error.reconciliation_required,
            unreleased=[{"medicine_id": mid, "quantity": qty} for mid, qty in error.unreleased],
            orphaned_customer_id=error.orphaned_customer_id,
        )
    return detail


def status_for(error: PosError) -> int:
    if isinstance(error, ComplianceError):
        return 422
    if isinstance(error, (InsufficientStockError, IdentityConflictError)):
        return 409
    if isinstance(error, (ValidationError, InsufficientPaymentError, RefundError)):
        return 400
    if isinstance(error, PersistenceError):
        return 500
    return 400


def to_http_exception(error: PosError) -> HTTPException:
    return HTTPException(status_code=status_for(error), detail=error_detail(error))


__all__ = ["error_detail", "status_for", "to_http_exception"]
