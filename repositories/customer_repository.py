"""
Customer pool repository (persistence).

The counter's `customers` table and the clinical `patients` table are read as
one pool. The two tables grew separately and name their columns differently,
so each has a column map; the rest of the system only sees `Customer`.

This module enforces no uniqueness rules. It only reads, inserts and patches
rows; the Identity Resolver owns the one-record-per-identifier invariant.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional
from uuid import uuid4

from supabase import Client  # type: ignore[import-not-found]

from domain.customer import Customer, CustomerDraft, CustomerKind, CustomerPatch, IdentityField
from domain.time import parse_utc_datetime, to_iso_utc
from repositories.supabase_support import escape_like, execute_query, response_rows

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class _TableSchema:
    table: str
    id_column: str
    national_id_column: str
    phone_column: str

    def column_for(self, field: IdentityField) -> str:
        return self.national_id_column if field is IdentityField.NATIONAL_ID else self.phone_column


# Keep these aligned with your database schema.
_SCHEMAS: Dict[CustomerKind, _TableSchema] = {
    CustomerKind.CUSTOMER: _TableSchema("customers", "customer_id", "nic", "phone"),
    CustomerKind.PATIENT: _TableSchema("patients", "patient_id", "nic", "phone_number"),
}


def _row_to_customer(row: Mapping[str, Any], kind: CustomerKind) -> Customer:
    """Convert a Supabase row from either table into a Customer."""

    schema = _SCHEMAS[kind]
    last_visit = row.get("last_visit_utc")
    created = row.get("created_at_utc")
    return Customer(
        customer_id=str(row[schema.id_column]),
        name=str(row.get("name") or ""),
        kind=kind,
        national_id=row.get(schema.national_id_column),
        phone=row.get(schema.phone_column),
        total_purchases=Decimal(str(row.get("total_purchases") or "0")),
        last_visit=parse_utc_datetime(last_visit) if last_visit else None,
        walk_in=bool(row.get("walk_in", False)),
        created_at=parse_utc_datetime(created) if created else None,
    )


class SupabaseCustomerRepository:
    """Customer pool spanning the `customers` and `patients` tables."""

    def __init__(self, client: Client):
        self._client = client

    def _select(self, kind: CustomerKind):
        return self._client.table(_SCHEMAS[kind].table).select("*")

    def get_customer(self, customer_id: str) -> Optional[Customer]:
        for kind, schema in _SCHEMAS.items():
            response = execute_query(
                self._select(kind).eq(schema.id_column, customer_id).limit(1),
                "fetch customer",
            )
            rows = response_rows(response)
            if rows:
                return _row_to_customer(rows[0], kind)
        return None

    def find_by_exact_field(self, field: IdentityField, value: str) -> Optional[Customer]:
        """
        Find the record holding `value` in the given identity field.

        Both tables are searched; if legacy data has the value in more than one
        row, the first is returned and the duplicate is logged.
        """

        matches: List[Customer] = []
        for kind, schema in _SCHEMAS.items():
            response = execute_query(
                self._select(kind).eq(schema.column_for(field), value).limit(2),
                "find customer",
            )
            matches.extend(_row_to_customer(row, kind) for row in response_rows(response))

        if len(matches) > 1:
            logger.warning(
                "Duplicate customer identifier in store",
                extra={
                    "identity_field": field.value,
                    "customer_ids": [m.customer_id for m in matches],
                },
            )
        return matches[0] if matches else None

    def find_by_partial_field(self, field: IdentityField, value: str, limit: int = 20) -> List[Customer]:
        pattern = f"%{escape_like(value)}%"
        results: List[Customer] = []
        for kind, schema in _SCHEMAS.items():
            response = execute_query(
                self._select(kind).ilike(schema.column_for(field), pattern).limit(limit),
                "search customers",
            )
            results.extend(_row_to_customer(row, kind) for row in response_rows(response))
        return results

    def find_by_name(self, fragment: str, limit: int = 20) -> List[Customer]:
        pattern = f"%{escape_like(fragment)}%"
        results: List[Customer] = []
        for kind in _SCHEMAS:
            response = execute_query(
                self._select(kind).ilike("name", pattern).limit(limit),
                "search customers by name",
            )
            results.extend(_row_to_customer(row, kind) for row in response_rows(response))
        return results

    def create_customer(self, draft: CustomerDraft, created_at: datetime) -> Customer:
        """
        Insert a new record into the table for `draft.kind`.

        Returns:
            The created Customer with purchase total 0 and last visit = created_at
        """

        schema = _SCHEMAS[draft.kind]
        customer_id = str(uuid4())
        stamp = to_iso_utc(created_at, name="created_at")

        payload: dict[str, Any] = {
            schema.id_column: customer_id,
            "name": draft.name,
            schema.national_id_column: draft.national_id,
            schema.phone_column: draft.phone,
            "total_purchases": "0.00",
            "walk_in": draft.walk_in,
            "last_visit_utc": stamp,
            "created_at_utc": stamp,
            "updated_at_utc": stamp,
        }
        execute_query(self._client.table(schema.table).insert(payload), "create customer")

        return Customer(
            customer_id=customer_id,
            name=draft.name,
            kind=draft.kind,
            national_id=draft.national_id,
            phone=draft.phone,
            last_visit=created_at,
            walk_in=draft.walk_in,
            created_at=created_at,
        )

    def update_customer(self, customer_id: str, kind: CustomerKind, patch: CustomerPatch) -> None:
        if patch.is_empty:
            return

        schema = _SCHEMAS[kind]
        payload: dict[str, Any] = {}
        if patch.name is not None:
            payload["name"] = patch.name
        if patch.national_id is not None:
            payload[schema.national_id_column] = patch.national_id
        if patch.phone is not None:
            payload[schema.phone_column] = patch.phone

        execute_query(
            self._client.table(schema.table).update(payload).eq(schema.id_column, customer_id),
            "update customer",
        )

    def delete_customer(self, customer_id: str, kind: CustomerKind) -> None:
        schema = _SCHEMAS[kind]
        execute_query(
            self._client.table(schema.table).delete().eq(schema.id_column, customer_id),
            "delete customer",
        )

    def record_purchase(
        self, customer_id: str, kind: CustomerKind, amount: Decimal, visited_at: Optional[datetime]
    ) -> None:
        """
        Atomically add to total_purchases via the record_customer_purchase function.

        A NULL visit time keeps last_visit_utc as it is.
        """

        execute_query(
            self._client.rpc(
                "record_customer_purchase",
                {
                    "p_table": _SCHEMAS[kind].table,
                    "p_customer_id": customer_id,
                    "p_amount": str(amount),
                    "p_visited_at": to_iso_utc(visited_at, name="visited_at") if visited_at is not None else None,
                },
            ),
            "record customer purchase",
        )


__all__ = ["SupabaseCustomerRepository"]
