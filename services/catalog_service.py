"""
Catalog service for the POS medicine picker.

Search ranking:
- In-stock medicines first, highest stock first
- Then out-of-stock medicines, alphabetically
- Expired batches are returned but flagged

Also turns (medicine_id, quantity) requests from the REST layer into cart
lines priced from the current catalog.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from domain.cart import Cart, CartLine
from domain.errors import InsufficientStockError, ValidationError
from domain.medicine import Medicine
from domain.time import utc_now
from repositories.ports import MedicineCatalog, MedicineFilters


@dataclass(frozen=True, slots=True)
class MedicineSearchHit:
    medicine: Medicine
    expired: bool


def _search_key(medicine: Medicine):
    if medicine.in_stock:
        return (0, -medicine.stock_quantity, medicine.name.casefold())
    return (1, 0, medicine.name.casefold())


class CatalogService:
    def __init__(self, catalog: MedicineCatalog, clock: Callable[[], datetime] = utc_now):
        self._catalog = catalog
        self._clock = clock

    def get_medicine(self, medicine_id: str) -> Optional[Medicine]:
        return self._catalog.get_medicine(medicine_id)

    def search_medicines(self, term: str = "", limit: int = 50, in_stock_only: bool = False) -> List[MedicineSearchHit]:
        """
        Search the catalog by name, generic name, manufacturer or category.

        Args:
            term: Case-insensitive fragment; blank lists the whole catalog
            limit: Maximum number of hits
            in_stock_only: Hide medicines with no stock

        Returns:
            Hits ordered for the picker (available first)

        Example:
            hits = service.search_medicines("para")
            # [MedicineSearchHit(medicine=Paracetamol 500mg, expired=False), ...]
        """
        text = (term or "").strip()
        filters = MedicineFilters(text_contains=text or None, in_stock_only=in_stock_only, order_by_stock=True)
        medicines = self._catalog.list_medicines(filters, limit=limit)
        medicines.sort(key=_search_key)

        today: date = self._clock().date()
        return [
            MedicineSearchHit(medicine=medicine, expired=medicine.is_expired(today))
            for medicine in medicines[:limit]
        ]

    def build_lines(self, items: Sequence[Tuple[str, int]]) -> Union[List[CartLine], ValidationError, InsufficientStockError]:
        """
        Build cart lines for (medicine_id, quantity) pairs at current prices.

        Repeated medicine ids are merged into one line, exactly as adding them
        to a cart one by one would.

        Returns:
            The lines, or the first ValidationError / InsufficientStockError
        """
        if not items:
            return ValidationError("At least one item is required", field="items")

        cart = Cart()
        medicines: Dict[str, Medicine] = {}
        for medicine_id, quantity in items:
            if quantity <= 0:
                return ValidationError(f"Quantity for {medicine_id} must be > 0", field="quantity")
            medicine = medicines.get(medicine_id) or self._catalog.get_medicine(medicine_id)
            if medicine is None:
                return ValidationError(f"Unknown medicine {medicine_id}", field="medicine_id")
            medicines[medicine_id] = medicine
            try:
                cart.add(medicine, quantity)
            except InsufficientStockError as e:
                return e
        return list(cart.lines)


__all__ = ["CatalogService", "MedicineSearchHit"]
