"""
Transaction repository (persistence).

This module provides *only* persistence operations for the Transaction domain
entity. Rows are insert-only: there is deliberately no update function, since
corrections are recorded as new refund transactions.

Line items are stored as a JSON array in the `items` column.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, List, Mapping, Optional

from supabase import Client  # type: ignore[import-not-found]

from domain.transaction import PaymentMethod, Transaction, TransactionLine, TransactionType
from domain.time import parse_utc_datetime, to_iso_utc
from repositories.supabase_support import execute_query, response_rows

# Supabase table name for committed transactions.
# Keep this aligned with your database schema.
_TRANSACTIONS_TABLE: str = "transactions"


def _line_to_json(line: TransactionLine) -> dict[str, Any]:
    return {
        "medicine_id": line.medicine_id,
        "medicine_name": line.medicine_name,
        "quantity": line.quantity,
        "unit_price": str(line.unit_price),
        "line_total": str(line.line_total),
    }


def _json_to_line(item: Mapping[str, Any]) -> TransactionLine:
    return TransactionLine(
        medicine_id=str(item["medicine_id"]),
        medicine_name=str(item.get("medicine_name") or ""),
        quantity=int(item["quantity"]),
        unit_price=Decimal(str(item["unit_price"])),
        line_total=Decimal(str(item["line_total"])),
    )


def _transaction_to_row(tx: Transaction) -> dict[str, Any]:
    return {
        "transaction_id": tx.transaction_id,
        "receipt_number": tx.receipt_number,
        "type": tx.transaction_type.value,
        "items": [_line_to_json(line) for line in tx.lines],
        "subtotal": str(tx.subtotal),
        "discount_rate": str(tx.discount_rate),
        "discount_amount": str(tx.discount_amount),
        "tax_rate": str(tx.tax_rate),
        "tax_amount": str(tx.tax_amount),
        "net_total": str(tx.net_total),
        "tendered_amount": str(tx.tendered_amount),
        "balance": str(tx.balance),
        "payment_method": tx.payment_method.value,
        "staff_id": tx.staff_id,
        "credential": tx.credential,
        "customer_id": tx.customer_id,
        "original_transaction_id": tx.original_transaction_id,
        "note": tx.note,
        "committed_at_utc": to_iso_utc(tx.committed_at, name="committed_at"),
    }


def _row_to_transaction(row: Mapping[str, Any]) -> Transaction:
    """Convert a Supabase row into a Transaction."""

    return Transaction(
        transaction_id=str(row["transaction_id"]),
        receipt_number=str(row["receipt_number"]),
        transaction_type=TransactionType(str(row.get("type", "sale"))),
        lines=tuple(_json_to_line(item) for item in (row.get("items") or [])),
        subtotal=Decimal(str(row["subtotal"])),
        discount_rate=Decimal(str(row.get("discount_rate") or "0")),
        discount_amount=Decimal(str(row.get("discount_amount") or "0")),
        tax_rate=Decimal(str(row.get("tax_rate") or "0")),
        tax_amount=Decimal(str(row.get("tax_amount") or "0")),
        net_total=Decimal(str(row["net_total"])),
        tendered_amount=Decimal(str(row.get("tendered_amount") or "0")),
        balance=Decimal(str(row.get("balance") or "0")),
        payment_method=PaymentMethod(str(row["payment_method"])),
        staff_id=str(row["staff_id"]),
        committed_at=parse_utc_datetime(row["committed_at_utc"]),
        credential=row.get("credential"),
        customer_id=row.get("customer_id"),
        original_transaction_id=row.get("original_transaction_id"),
        note=row.get("note"),
    )


class SupabaseTransactionRepository:
    """Insert-only ledger of sales and refunds."""

    def __init__(self, client: Client):
        self._client = client

    def save_transaction(self, transaction: Transaction) -> str:
        """
        Insert a committed transaction.

        Returns:
            The persisted transaction id
        """

        execute_query(
            self._client.table(_TRANSACTIONS_TABLE).insert(_transaction_to_row(transaction)),
            "record transaction",
        )
        return transaction.transaction_id

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        response = execute_query(
            self._client.table(_TRANSACTIONS_TABLE)
            .select("*")
            .eq("transaction_id", transaction_id)
            .limit(1),
            "get transaction",
        )
        rows = response_rows(response)
        if not rows:
            return None
        return _row_to_transaction(rows[0])

    def list_transactions_for_customer(self, customer_id: str, limit: int = 50) -> List[Transaction]:
        """Customer purchase history, newest first."""

        response = execute_query(
            self._client.table(_TRANSACTIONS_TABLE)
            .select("*")
            .eq("customer_id", customer_id)
            .order("committed_at_utc", desc=True)
            .limit(limit),
            "list transactions",
        )
        return [_row_to_transaction(row) for row in response_rows(response)]

    def list_refunds_for(self, original_transaction_id: str) -> List[Transaction]:
        response = execute_query(
            self._client.table(_TRANSACTIONS_TABLE)
            .select("*")
            .eq("original_transaction_id", original_transaction_id)
            .eq("type", TransactionType.REFUND.value),
            "list refunds",
        )
        return [_row_to_transaction(row) for row in response_rows(response)]

    def list_recent_transactions(self, limit: int = 50) -> List[Transaction]:
        response = execute_query(
            self._client.table(_TRANSACTIONS_TABLE)
            .select("*")
            .order("committed_at_utc", desc=True)
            .limit(limit),
            "list recent transactions",
        )
        return [_row_to_transaction(row) for row in response_rows(response)]


__all__ = ["SupabaseTransactionRepository"]
