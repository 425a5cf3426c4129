"""
Customers API Endpoints.

Identity search and purchase history for customers and patients.
"""

from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import PosServices, get_services
from api.models import (
    CustomerCandidateResponse,
    CustomerHistoryResponse,
    CustomerResponse,
    CustomerSearchResponse,
    TransactionResponse,
)
from domain.errors import PersistenceError

router = APIRouter()


@router.get(
    "/customers/search",
    response_model=CustomerSearchResponse,
    summary="Search Customers",
    description="Rank customers and patients by national ID, phone, then name."
)
def search_customers(
    term: str = Query(..., min_length=1, description="National ID, phone or name fragment"),
    services: PosServices = Depends(get_services),
):
    """
    Search the customer and patient pool.

    Exact national ID beats exact phone, which beats partial matches (from 6
    characters), which beat name matches. When the term has 10 or more
    characters and the best hit is exact, `outcome` is `auto_matched` and the
    hit is repeated in `auto_matched`.
    """
    try:
        result = services.identity.search(term)
        auto = result.auto_matched
        return CustomerSearchResponse(
            term=result.term,
            outcome=result.outcome.value,
            auto_matched=CustomerResponse.from_domain(auto) if auto else None,
            candidates=[
                CustomerCandidateResponse(
                    customer=CustomerResponse.from_domain(candidate.customer),
                    priority=int(candidate.priority),
                    match_type=candidate.priority.name.lower(),
                )
                for candidate in result.candidates
            ],
        )

    except PersistenceError as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to search customers: {str(e)}"
        )


@router.get(
    "/customers/{customer_id}/history",
    response_model=CustomerHistoryResponse,
    summary="Customer Purchase History",
    description="Sales and refunds for a customer, newest first."
)
def customer_history(
    customer_id: str,
    limit: int = Query(50, ge=1, le=500),
    services: PosServices = Depends(get_services),
):
    try:
        history = services.reporting.customer_history(customer_id, limit=limit)
        if history is None:
            raise HTTPException(
                status_code=404,
                detail=f"Customer not found: {customer_id}"
            )

        return CustomerHistoryResponse(
            customer=CustomerResponse.from_domain(history.customer),
            transactions=[TransactionResponse.from_domain(tx) for tx in history.transactions],
        )

    except HTTPException:
        raise
    except PersistenceError as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to load customer history: {str(e)}"
        )
