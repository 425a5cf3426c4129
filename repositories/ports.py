"""
Repository ports.

The services depend on these protocols only. Two implementations exist:
- Supabase repositories (`repositories/*_repository.py`) for production.
- `repositories/memory_store.InMemoryStore` for tests and local demos.

Conventions shared by every implementation:
- Monetary values are 2-place Decimals; identifiers are opaque strings;
  timestamps are UTC-aware datetimes.
- Store failures raise `domain.errors.PersistenceError`.
- "Not found" is `None` (or an empty list), never an exception.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional, Protocol

from domain.customer import Customer, CustomerDraft, CustomerKind, CustomerPatch, IdentityField
from domain.medicine import Medicine
from domain.sales_summary import DailySalesSummary
from domain.staff import Staff
from domain.transaction import Transaction


@dataclass(frozen=True, slots=True)
class MedicineFilters:
    """Filter criteria for catalog listings."""
    medicine_ids: Optional[List[str]] = None
    name_contains: Optional[str] = None
    text_contains: Optional[str] = None  # name, generic name, manufacturer or category
    in_stock_only: bool = False
    prescription_required: Optional[bool] = None
    order_by_stock: bool = False  # largest stock first, then name


class MedicineCatalog(Protocol):
    def get_medicine(self, medicine_id: str) -> Optional[Medicine]: ...

    def list_medicines(self, filters: Optional[MedicineFilters] = None, limit: int = 500) -> List[Medicine]: ...

    def atomic_decrement(self, medicine_id: str, amount: int) -> Optional[int]:
        """
        Decrement stock by `amount` only if at least `amount` is on hand.

        Returns the new quantity, or None when the decrement was rejected
        (insufficient stock or unknown medicine). Never drives stock negative.
        """
        ...

    def atomic_increment(self, medicine_id: str, amount: int) -> int: ...


class CustomerPool(Protocol):
    def get_customer(self, customer_id: str) -> Optional[Customer]: ...

    def find_by_exact_field(self, field: IdentityField, value: str) -> Optional[Customer]: ...

    def find_by_partial_field(self, field: IdentityField, value: str, limit: int = 20) -> List[Customer]: ...

    def find_by_name(self, fragment: str, limit: int = 20) -> List[Customer]: ...

    def create_customer(self, draft: CustomerDraft, created_at: datetime) -> Customer: ...

    def update_customer(self, customer_id: str, kind: CustomerKind, patch: CustomerPatch) -> None: ...

    def delete_customer(self, customer_id: str, kind: CustomerKind) -> None:
        """Remove a record; used only to undo a creation whose sale was never stored."""
        ...

    def record_purchase(
        self, customer_id: str, kind: CustomerKind, amount: Decimal, visited_at: Optional[datetime]
    ) -> None:
        """
        Atomically add `amount` (may be negative) to the purchase total.

        `visited_at` stamps the last visit; None leaves it unchanged (refunds).
        """
        ...


class TransactionLedger(Protocol):
    def save_transaction(self, transaction: Transaction) -> str: ...

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]: ...

    def list_transactions_for_customer(self, customer_id: str, limit: int = 50) -> List[Transaction]: ...

    def list_refunds_for(self, original_transaction_id: str) -> List[Transaction]: ...

    def list_recent_transactions(self, limit: int = 50) -> List[Transaction]: ...


class DailySalesLedger(Protocol):
    def record_daily_sale(self, day: date, amount: Decimal, count_delta: int) -> None: ...

    def get_daily_sales(self, day: date) -> Optional[DailySalesSummary]: ...


class StaffDirectory(Protocol):
    def verify_staff(self, staff_id: str) -> Optional[Staff]: ...

    def find_by_registration(self, registration_number: str) -> Optional[Staff]: ...


__all__ = [
    "MedicineFilters",
    "MedicineCatalog",
    "CustomerPool",
    "TransactionLedger",
    "DailySalesLedger",
    "StaffDirectory",
]
