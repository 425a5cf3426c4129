"""
Stock ledger gate.

Enforces "never sell more than is on hand" for a cart:

1. check(): read current on-hand quantities and fail fast on the first line
   that asks for more than is available. Nothing is written.
2. commit(): apply one conditional atomic decrement per medicine at the
   storage layer. The store refuses any decrement that would drive stock
   below zero, so two terminals racing for the last units cannot both win.
3. release(): explicit compensating increments for a reservation that will
   not be completed.

Key behaviours:
- Quantities for the same medicine across several lines are summed before
  checking or decrementing.
- A decrement refused mid-commit (another terminal won the race) releases the
  decrements already applied and returns InsufficientStockError.
- A store failure mid-commit cannot be resolved automatically. Applied
  decrements are released best-effort and CommitFailedError is raised; any
  line whose release failed, or whose decrement outcome is unknown, is logged
  at CRITICAL for manual reconciliation. Nothing is retried.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple, Union

from domain.cart import CartLine
from domain.errors import CommitFailedError, InsufficientStockError, PersistenceError
from repositories.ports import MedicineCatalog

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class StockReservation:
    """Decrements applied for one sale: (medicine_id, quantity) in commit order."""
    applied: Tuple[Tuple[str, int], ...]


def requested_quantities(lines: Iterable[CartLine]) -> Dict[str, int]:
    """Total requested units per medicine, in first-seen order."""

    totals: Dict[str, int] = {}
    for line in lines:
        totals[line.medicine_id] = totals.get(line.medicine_id, 0) + line.quantity
    return totals


def _line_names(lines: Iterable[CartLine]) -> Dict[str, str]:
    return {line.medicine_id: line.medicine_name for line in lines if line.medicine_name}


class StockLedgerGate:
    def __init__(self, catalog: MedicineCatalog):
        self._catalog = catalog

    def _available(self, medicine_id: str) -> int:
        medicine = self._catalog.get_medicine(medicine_id)
        return medicine.stock_quantity if medicine is not None else 0

    def check(self, lines: Iterable[CartLine]) -> Optional[InsufficientStockError]:
        """
        Pre-check availability without writing anything.

        Returns:
            None if every line can be served, otherwise the first shortfall
        """

        lines = list(lines)
        names = _line_names(lines)
        for medicine_id, requested in requested_quantities(lines).items():
            available = self._available(medicine_id)
            if requested > available:
                return InsufficientStockError(
                    medicine_id=medicine_id,
                    requested=requested,
                    available=available,
                    medicine_name=names.get(medicine_id),
                )
        return None

    def commit(self, lines: Iterable[CartLine]) -> Union[StockReservation, InsufficientStockError]:
        """
        Apply the atomic decrements for a sale.

        Returns:
            StockReservation on success, or InsufficientStockError when the
            store refused a decrement (all earlier decrements are released)

        Raises:
            CommitFailedError: If the store failed part-way through
        """

        lines = list(lines)
        names = _line_names(lines)
        applied: List[Tuple[str, int]] = []

        for medicine_id, quantity in requested_quantities(lines).items():
            try:
                new_quantity = self._catalog.atomic_decrement(medicine_id, quantity)
            except PersistenceError as e:
                unreleased = self.release(StockReservation(tuple(applied)))
                # The failed call may or may not have reached the database.
                uncertain = (medicine_id, quantity)
                logger.critical(
                    "Stock commit failed part-way; manual reconciliation required",
                    extra={
                        "failed_medicine_id": medicine_id,
                        "failed_quantity": quantity,
                        "applied": applied,
                        "unreleased": unreleased,
                        "error": str(e),
                    },
                )
                raise CommitFailedError(
                    f"Stock update failed for {medicine_id}: {e}",
                    applied=list(applied),
                    unreleased=unreleased + [uncertain],
                ) from e

            if new_quantity is None:
                self.release(StockReservation(tuple(applied)))
                return InsufficientStockError(
                    medicine_id=medicine_id,
                    requested=quantity,
                    available=self._available(medicine_id),
                    medicine_name=names.get(medicine_id),
                )

            applied.append((medicine_id, quantity))
            logger.debug(
                "Stock decremented",
                extra={"medicine_id": medicine_id, "quantity": quantity, "remaining": new_quantity},
            )

        return StockReservation(tuple(applied))

    def release(self, reservation: StockReservation) -> List[Tuple[str, int]]:
        """
        Put reserved units back on the shelf.

        Returns:
            (medicine_id, quantity) pairs whose increment failed; each one is
            logged at CRITICAL because stock is now understated
        """

        unreleased: List[Tuple[str, int]] = []
        for medicine_id, quantity in reservation.applied:
            try:
                self._catalog.atomic_increment(medicine_id, quantity)
            except PersistenceError as e:
                unreleased.append((medicine_id, quantity))
                logger.critical(
                    "Failed to release reserved stock; manual reconciliation required",
                    extra={"medicine_id": medicine_id, "quantity": quantity, "error": str(e)},
                )
            else:
                logger.warning(
                    "Released reserved stock",
                    extra={"medicine_id": medicine_id, "quantity": quantity},
                )
        return unreleased


__all__ = ["StockLedgerGate", "StockReservation", "requested_quantities"]
