"""
Medicines API Endpoints.

Catalog search for the POS medicine picker.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import PosServices, get_services
from api.models import MedicineResponse, MedicineSearchResponse
from domain.errors import PersistenceError

router = APIRouter()


@router.get(
    "/medicines/search",
    response_model=MedicineSearchResponse,
    summary="Search Medicines",
    description="Search by name, generic name, manufacturer or category. Available medicines first."
)
def search_medicines(
    term: Optional[str] = Query(None, description="Case-insensitive fragment"),
    limit: int = Query(50, ge=1, le=500),
    in_stock_only: bool = Query(False),
    services: PosServices = Depends(get_services),
):
    """
    Search the medicine catalog.

    **Ordering:**
    - In-stock medicines first, highest stock first
    - Out-of-stock medicines after, alphabetically

    Expired batches are included with `expired: true`.
    """
    try:
        hits = services.catalog.search_medicines(term or "", limit=limit, in_stock_only=in_stock_only)
        items = [MedicineResponse.from_domain(hit.medicine, expired=hit.expired) for hit in hits]
        return MedicineSearchResponse(items=items, total_count=len(items))

    except PersistenceError as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to search medicines: {str(e)}"
        )
