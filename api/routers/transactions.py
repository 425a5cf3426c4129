"""
Transactions API Endpoints.

Lookup of committed transactions and refunds against them.
"""

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import PosServices, get_services
from api.errors import to_http_exception
from api.models import RefundRequest, RefundResponse, TransactionResponse
from domain.errors import PersistenceError
from services.refund_service import RefundItem

router = APIRouter()


@router.get(
    "/transactions/{transaction_id}",
    response_model=TransactionResponse,
    summary="Get Transaction",
)
def get_transaction(transaction_id: str, services: PosServices = Depends(get_services)):
    try:
        transaction = services.reporting.get_transaction(transaction_id)
        if transaction is None:
            raise HTTPException(
                status_code=404,
                detail=f"Transaction not found: {transaction_id}"
            )
        return TransactionResponse.from_domain(transaction)

    except HTTPException:
        raise
    except PersistenceError as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to load transaction: {str(e)}"
        )


@router.post(
    "/transactions/{transaction_id}/refund",
    response_model=RefundResponse,
    summary="Refund Sale",
    description="Record a reversing refund transaction and put the units back in stock."
)
def refund_transaction(
    transaction_id: str,
    request: RefundRequest,
    services: PosServices = Depends(get_services),
):
    """
    Refund all or part of a sale.

    The original sale is never modified. Omitting `items` refunds everything
    that has not been refunded yet. Refunding more than was sold is rejected.

    **Example request:**
    ```json
    {
      "staff_id": "EMP001",
      "items": [{"medicine_id": "MED001", "quantity": 1}],
      "reason": "Wrong strength dispensed"
    }
    ```
    """
    try:
        if services.reporting.get_transaction(transaction_id) is None:
            raise HTTPException(
                status_code=404,
                detail=f"Transaction not found: {transaction_id}"
            )

        items = None
        if request.items is not None:
            items = [RefundItem(medicine_id=item.medicine_id, quantity=item.quantity) for item in request.items]

        result = services.refunds.refund(transaction_id, request.staff_id, items=items, reason=request.reason)
        if not result.success:
            raise to_http_exception(result.error)

        return RefundResponse(
            refund=TransactionResponse.from_domain(result.refund),
            warnings=list(result.warnings),
        )

    except HTTPException:
        raise
    except PersistenceError as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to refund transaction: {str(e)}"
        )
