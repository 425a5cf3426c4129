"""
Sales reporting: daily summary and customer purchase history.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import List, Optional

from domain.customer import Customer
from domain.sales_summary import DailySalesSummary
from domain.transaction import Transaction
from repositories.ports import CustomerPool, DailySalesLedger, TransactionLedger


@dataclass(frozen=True, slots=True)
class CustomerHistory:
    customer: Customer
    transactions: List[Transaction]


class ReportingService:
    def __init__(self, daily_sales: DailySalesLedger, transactions: TransactionLedger, customers: CustomerPool):
        self._daily_sales = daily_sales
        self._transactions = transactions
        self._customers = customers

    def daily_summary(self, day: date) -> DailySalesSummary:
        """Totals for one day; a day without sales reports zeroes."""
        return self._daily_sales.get_daily_sales(day) or DailySalesSummary.empty(day)

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        return self._transactions.get_transaction(transaction_id)

    def customer_history(self, customer_id: str, limit: int = 50) -> Optional[CustomerHistory]:
        """
        Purchase history for a customer or patient, newest first.

        Returns:
            CustomerHistory, or None if the customer does not exist
        """
        customer = self._customers.get_customer(customer_id)
        if customer is None:
            return None
        transactions = sorted(
            self._transactions.list_transactions_for_customer(customer_id, limit=limit),
            key=lambda t: t.committed_at,
            reverse=True,
        )
        return CustomerHistory(customer=customer, transactions=transactions)


__all__ = ["CustomerHistory", "ReportingService"]
