"""
Medicine repository (persistence).

Catalog reads plus the two stock mutations the POS is allowed to perform.
Stock changes go through PostgreSQL functions (see `sql/schema.sql`) so that
the check and the update happen in one statement:

- decrement_medicine_stock(p_medicine_id, p_amount) updates
  `stock_quantity = stock_quantity - p_amount WHERE stock_quantity >= p_amount`
  and returns the new quantity, or NULL when no row qualified.
- increment_medicine_stock(p_medicine_id, p_amount) returns the new quantity.

This module contains no business rules about carts or sales.
"""

from __future__ import annotations

import re
from decimal import Decimal
from typing import Any, List, Mapping, Optional

from supabase import Client  # type: ignore[import-not-found]

from domain.errors import PersistenceError
from domain.medicine import Medicine
from domain.time import parse_date
from repositories.ports import MedicineFilters
from repositories.supabase_support import escape_like, execute_query, response_rows

# Supabase table name for the medicine catalog.
# Keep this aligned with your database schema.
_MEDICINES_TABLE: str = "medicines"

_SEARCH_COLUMNS = ("name", "generic_name", "manufacturer", "category")


def _row_to_medicine(row: Mapping[str, Any]) -> Medicine:
    """Convert a Supabase row into a Medicine."""

    expiry = row.get("expiry_date")
    return Medicine(
        medicine_id=str(row["medicine_id"]),
        name=str(row["name"]),
        unit_price=Decimal(str(row["selling_price"])),
        stock_quantity=int(row.get("stock_quantity") or 0),
        prescription_required=bool(row.get("prescription_required", False)),
        batch_number=row.get("batch_number"),
        expiry_date=parse_date(expiry) if expiry else None,
        generic_name=row.get("generic_name"),
        category=row.get("category"),
        manufacturer=row.get("manufacturer"),
    )


class SupabaseMedicineRepository:
    """Medicine catalog backed by the `medicines` table."""

    def __init__(self, client: Client):
        self._client = client

    def get_medicine(self, medicine_id: str) -> Optional[Medicine]:
        """
        Fetch one medicine by id.

        Returns:
            Medicine or None if not found
        """

        response = execute_query(
            self._client.table(_MEDICINES_TABLE)
            .select("*")
            .eq("medicine_id", medicine_id)
            .limit(1),
            "fetch medicine",
        )
        rows = response_rows(response)
        if not rows:
            return None
        return _row_to_medicine(rows[0])

    def list_medicines(self, filters: Optional[MedicineFilters] = None, limit: int = 500) -> List[Medicine]:
        """
        List catalog entries matching optional filters, ordered by name
        (largest stock first when `order_by_stock` is set).

        Args:
            filters: Optional MedicineFilters
            limit: Maximum number of rows (default 500)
        """

        filters = filters or MedicineFilters()
        query = self._client.table(_MEDICINES_TABLE).select("*")

        if filters.medicine_ids:
            query = query.in_("medicine_id", list(filters.medicine_ids))
        if filters.name_contains:
            query = query.ilike("name", f"%{escape_like(filters.name_contains)}%")
        if filters.text_contains:
            # PostgREST or-filter syntax reserves commas and parentheses.
            needle = escape_like(re.sub(r"[,()*]", " ", filters.text_contains).strip())
            if needle:
                query = query.or_(",".join(f"{column}.ilike.*{needle}*" for column in _SEARCH_COLUMNS))
        if filters.in_stock_only:
            query = query.gt("stock_quantity", 0)
        if filters.prescription_required is not None:
            query = query.eq("prescription_required", filters.prescription_required)

        if filters.order_by_stock:
            query = query.order("stock_quantity", desc=True)
        response = execute_query(query.order("name").limit(limit), "list medicines")
        return [_row_to_medicine(row) for row in response_rows(response)]

    def atomic_decrement(self, medicine_id: str, amount: int) -> Optional[int]:
        """
        Conditionally decrement stock in a single database statement.

        Returns:
            New on-hand quantity, or None when the store rejected the decrement
            (unknown medicine or fewer than `amount` units on hand)
        """

        if amount <= 0:
            raise ValueError("amount must be > 0")

        response = execute_query(
            self._client.rpc(
                "decrement_medicine_stock",
                {"p_medicine_id": medicine_id, "p_amount": amount},
            ),
            "decrement medicine stock",
        )
        data = getattr(response, "data", None)
        if data is None or data == []:
            return None
        if isinstance(data, list):
            data = data[0]
        if isinstance(data, Mapping):
            data = data.get("decrement_medicine_stock")
            if data is None:
                return None
        return int(data)

    def atomic_increment(self, medicine_id: str, amount: int) -> int:
        """
        Add units back to stock (refunds, released reservations).

        Raises:
            PersistenceError: If the medicine does not exist or the call failed
        """

        if amount <= 0:
            raise ValueError("amount must be > 0")

        response = execute_query(
            self._client.rpc(
                "increment_medicine_stock",
                {"p_medicine_id": medicine_id, "p_amount": amount},
            ),
            "increment medicine stock",
        )
        data = getattr(response, "data", None)
        if isinstance(data, list):
            data = data[0] if data else None
        if isinstance(data, Mapping):
            data = data.get("increment_medicine_stock")
        if data is None:
            raise PersistenceError(f"Failed to increment medicine stock: unknown medicine {medicine_id}")
        return int(data)


__all__ = ["SupabaseMedicineRepository"]
