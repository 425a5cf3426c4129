"""
In-process store implementing every repository port.

Used by the test suite and by `POS_STORE=memory` for local demos. All
mutations run under one lock, which gives the same per-call atomicity the
PostgreSQL functions give the Supabase repositories: a conditional decrement
either applies completely or not at all, and concurrent terminals (threads)
cannot oversell.

Records are stored as the frozen domain objects themselves; updates replace
them with `dataclasses.replace`.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional
from uuid import uuid4

from domain.customer import Customer, CustomerDraft, CustomerKind, CustomerPatch, IdentityField
from domain.errors import PersistenceError
from domain.medicine import Medicine
from domain.money import to_money
from domain.sales_summary import DailySalesSummary
from domain.staff import Staff, pick_registration_holder
from domain.transaction import Transaction, TransactionType
from repositories.ports import MedicineFilters


class InMemoryStore:
    """Catalog, customer pool, transaction ledger, daily sales and staff in one object."""

    def __init__(
        self,
        medicines: Iterable[Medicine] = (),
        customers: Iterable[Customer] = (),
        staff: Iterable[Staff] = (),
    ):
        self._lock = threading.Lock()
        self._medicines: Dict[str, Medicine] = {m.medicine_id: m for m in medicines}
        self._customers: Dict[str, Customer] = {c.customer_id: c for c in customers}
        self._staff: Dict[str, Staff] = {s.staff_id: s for s in staff}
        self._transactions: Dict[str, Transaction] = {}
        self._daily: Dict[date, DailySalesSummary] = {}

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def add_medicine(self, medicine: Medicine) -> None:
        with self._lock:
            self._medicines[medicine.medicine_id] = medicine

    def get_medicine(self, medicine_id: str) -> Optional[Medicine]:
        with self._lock:
            return self._medicines.get(medicine_id)

    def list_medicines(self, filters: Optional[MedicineFilters] = None, limit: int = 500) -> List[Medicine]:
        filters = filters or MedicineFilters()
        with self._lock:
            items = list(self._medicines.values())

        if filters.medicine_ids:
            wanted = set(filters.medicine_ids)
            items = [m for m in items if m.medicine_id in wanted]
        if filters.name_contains:
            needle = filters.name_contains.lower()
            items = [m for m in items if needle in m.name.lower()]
        if filters.text_contains:
            needle = filters.text_contains.lower()
            items = [
                m for m in items
                if any(needle in (value or "").lower() for value in (m.name, m.generic_name, m.manufacturer, m.category))
            ]
        if filters.in_stock_only:
            items = [m for m in items if m.in_stock]
        if filters.prescription_required is not None:
            items = [m for m in items if m.prescription_required == filters.prescription_required]

        if filters.order_by_stock:
            items.sort(key=lambda m: (-m.stock_quantity, m.name))
        else:
            items.sort(key=lambda m: m.name)
        return items[:limit]

    def atomic_decrement(self, medicine_id: str, amount: int) -> Optional[int]:
        if amount <= 0:
            raise ValueError("amount must be > 0")
        with self._lock:
            medicine = self._medicines.get(medicine_id)
            if medicine is None or medicine.stock_quantity < amount:
                return None
            updated = replace(medicine, stock_quantity=medicine.stock_quantity - amount)
            self._medicines[medicine_id] = updated
            return updated.stock_quantity

    def atomic_increment(self, medicine_id: str, amount: int) -> int:
        if amount <= 0:
            raise ValueError("amount must be > 0")
        with self._lock:
            medicine = self._medicines.get(medicine_id)
            if medicine is None:
                raise PersistenceError(f"Failed to increment medicine stock: unknown medicine {medicine_id}")
            updated = replace(medicine, stock_quantity=medicine.stock_quantity + amount)
            self._medicines[medicine_id] = updated
            return updated.stock_quantity

    # ------------------------------------------------------------------
    # Customer pool
    # ------------------------------------------------------------------

    def get_customer(self, customer_id: str) -> Optional[Customer]:
        with self._lock:
            return self._customers.get(customer_id)

    def all_customers(self) -> List[Customer]:
        with self._lock:
            return list(self._customers.values())

    def find_by_exact_field(self, field: IdentityField, value: str) -> Optional[Customer]:
        with self._lock:
            for customer in self._customers.values():
                if customer.identifier(field) == value:
                    return customer
        return None

    def find_by_partial_field(self, field: IdentityField, value: str, limit: int = 20) -> List[Customer]:
        needle = value.lower()
        with self._lock:
            found = [
                c for c in self._customers.values()
                if needle in (c.identifier(field) or "").lower()
                and c.identifier(field)
            ]
        return found[:limit]

    def find_by_name(self, fragment: str, limit: int = 20) -> List[Customer]:
        needle = fragment.lower()
        with self._lock:
            found = [c for c in self._customers.values() if needle in c.name.lower()]
        return found[:limit]

    def create_customer(self, draft: CustomerDraft, created_at: datetime) -> Customer:
        customer = Customer(
            customer_id=str(uuid4()),
            name=draft.name,
            kind=draft.kind,
            national_id=draft.national_id,
            phone=draft.phone,
            last_visit=created_at,
            walk_in=draft.walk_in,
            created_at=created_at,
        )
        with self._lock:
            self._customers[customer.customer_id] = customer
        return customer

    def update_customer(self, customer_id: str, kind: CustomerKind, patch: CustomerPatch) -> None:
        if patch.is_empty:
            return
        with self._lock:
            current = self._customers.get(customer_id)
            if current is None:
                raise PersistenceError(f"Failed to update customer: unknown customer {customer_id}")
            self._customers[customer_id] = replace(
                current,
                name=patch.name if patch.name is not None else current.name,
                national_id=patch.national_id if patch.national_id is not None else current.national_id,
                phone=patch.phone if patch.phone is not None else current.phone,
            )

    def delete_customer(self, customer_id: str, kind: CustomerKind) -> None:
        with self._lock:
            if self._customers.pop(customer_id, None) is None:
                raise PersistenceError(f"Failed to delete customer: unknown customer {customer_id}")

    def record_purchase(
        self, customer_id: str, kind: CustomerKind, amount: Decimal, visited_at: Optional[datetime]
    ) -> None:
        with self._lock:
            current = self._customers.get(customer_id)
            if current is None:
                raise PersistenceError(f"Failed to record customer purchase: unknown customer {customer_id}")
            self._customers[customer_id] = replace(
                current,
                total_purchases=to_money(current.total_purchases + amount),
                last_visit=visited_at if visited_at is not None else current.last_visit,
            )

    # ------------------------------------------------------------------
    # Transaction ledger
    # ------------------------------------------------------------------

    def save_transaction(self, transaction: Transaction) -> str:
        with self._lock:
            if transaction.transaction_id in self._transactions:
                raise PersistenceError(f"Failed to record transaction: duplicate id {transaction.transaction_id}")
            self._transactions[transaction.transaction_id] = transaction
        return transaction.transaction_id

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        with self._lock:
            return self._transactions.get(transaction_id)

    def list_transactions_for_customer(self, customer_id: str, limit: int = 50) -> List[Transaction]:
        with self._lock:
            found = [t for t in self._transactions.values() if t.customer_id == customer_id]
        found.sort(key=lambda t: t.committed_at, reverse=True)
        return found[:limit]

    def list_refunds_for(self, original_transaction_id: str) -> List[Transaction]:
        with self._lock:
            return [
                t for t in self._transactions.values()
                if t.transaction_type is TransactionType.REFUND
                and t.original_transaction_id == original_transaction_id
            ]

    def list_recent_transactions(self, limit: int = 50) -> List[Transaction]:
        with self._lock:
            found = list(self._transactions.values())
        found.sort(key=lambda t: t.committed_at, reverse=True)
        return found[:limit]

    # ------------------------------------------------------------------
    # Daily sales
    # ------------------------------------------------------------------

    def record_daily_sale(self, day: date, amount: Decimal, count_delta: int) -> None:
        with self._lock:
            current = self._daily.get(day) or DailySalesSummary.empty(day)
            self._daily[day] = DailySalesSummary(
                day=day,
                total_sales=current.total_sales + amount,
                transaction_count=current.transaction_count + count_delta,
            )

    def get_daily_sales(self, day: date) -> Optional[DailySalesSummary]:
        with self._lock:
            return self._daily.get(day)

    # ------------------------------------------------------------------
    # Staff
    # ------------------------------------------------------------------

    def add_staff(self, staff: Staff) -> None:
        with self._lock:
            self._staff[staff.staff_id] = staff

    def verify_staff(self, staff_id: str) -> Optional[Staff]:
        with self._lock:
            return self._staff.get(staff_id)

    def find_by_registration(self, registration_number: str) -> Optional[Staff]:
        with self._lock:
            holders = [s for s in self._staff.values() if s.registration_number == registration_number]
        return pick_registration_holder(holders)


__all__ = ["InMemoryStore"]
