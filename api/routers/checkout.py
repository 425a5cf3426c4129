"""
Checkout API Endpoints.

Commits a sale through the checkout service.
"""

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import PosServices, get_services
from api.errors import to_http_exception
from api.models import CheckoutRequest as APICheckoutRequest
from api.models import CheckoutResponse, CustomerResponse, TransactionResponse
from domain.errors import CommitFailedError, PersistenceError, PosError
from services.checkout_service import CheckoutRequest, CustomerInput

router = APIRouter()


@router.post(
    "/checkout",
    response_model=CheckoutResponse,
    summary="Commit Sale",
    description="Validate and commit a sale: compliance, stock, payment, customer, then persistence."
)
def commit_sale(request: APICheckoutRequest, services: PosServices = Depends(get_services)):
    """
    Commit a sale.

    **Process:**
    1. Rejects an empty cart, a blank or unknown staff id
    2. Requires a 6-digit pharmacist registration number when any medicine is prescription-only
    3. Checks stock for every line
    4. For cash, checks the tendered amount covers the net total
    5. Matches the customer by national ID or phone (or registers them)
    6. Decrements stock atomically, records the transaction and updates the customer's total

    **Errors:**
    - 400: validation or insufficient payment
    - 409: insufficient stock, or the ID/phone belongs to another customer
    - 422: missing or malformed pharmacist registration number
    - 500: store failure; `reconciliation_required` is set when stock could not be restored
    """
    try:
        lines = services.catalog.build_lines([(item.medicine_id, item.quantity) for item in request.items])
        if isinstance(lines, PosError):
            raise to_http_exception(lines)

        customer = None
        if request.customer is not None:
            customer = CustomerInput(
                term=request.customer.term,
                name=request.customer.name,
                phone=request.customer.phone,
            )

        result = services.checkout.checkout(
            CheckoutRequest(
                lines=tuple(lines),
                staff_id=request.staff_id,
                payment_method=request.payment_method,
                tendered_amount=request.tendered_amount,
                discount_rate=request.discount_rate,
                credential=request.credential,
                customer=customer,
                note=request.note,
            )
        )
        if not result.success:
            raise to_http_exception(result.error)

        receipt = result.receipt
        return CheckoutResponse(
            transaction=TransactionResponse.from_domain(receipt.transaction),
            customer=CustomerResponse.from_domain(receipt.customer) if receipt.customer else None,
            customer_created=receipt.customer_created,
            currency=receipt.currency,
            warnings=list(receipt.warnings),
        )

    except HTTPException:
        raise
    except CommitFailedError as e:
        raise to_http_exception(e)
    except PersistenceError as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to commit sale: {str(e)}"
        )
