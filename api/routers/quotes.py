"""
Quotes API Endpoints.

Prices a cart without committing anything.
"""

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import PosServices, get_services
from api.errors import to_http_exception
from api.models import QuoteLineItem, QuoteRequest, QuoteResponse
from domain.errors import PersistenceError, PosError

router = APIRouter()


@router.post(
    "/quotes",
    response_model=QuoteResponse,
    summary="Price Cart",
    description="Calculate subtotal, discount, tax, net total and change for a cart."
)
def calculate_quote(request: QuoteRequest, services: PosServices = Depends(get_services)):
    """
    Price a cart at current catalog prices.

    **How it works:**
    1. Looks up every medicine and checks the requested quantity is on hand
    2. Applies the discount (clamped to 0-100%) and the store's tax rate
    3. Reports whether a pharmacist registration number will be required

    **Example request:**
    ```json
    {
      "items": [{"medicine_id": "MED001", "quantity": 2}],
      "discount_rate": "10",
      "payment_method": "cash",
      "tendered_amount": "50.00"
    }
    ```
    """
    try:
        lines = services.catalog.build_lines([(item.medicine_id, item.quantity) for item in request.items])
        if isinstance(lines, PosError):
            raise to_http_exception(lines)

        totals = services.pricing.price_lines(
            lines,
            discount_rate=request.discount_rate,
            payment_method=request.payment_method,
            tendered_amount=request.tendered_amount,
        )
        requirement = services.compliance.evaluate(lines)

        return QuoteResponse(
            items=[
                QuoteLineItem(
                    medicine_id=line.medicine_id,
                    medicine_name=line.medicine_name,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    line_total=line.line_total,
                    prescription_required=line.prescription_required,
                )
                for line in lines
            ],
            subtotal=totals.subtotal,
            discount_rate=totals.discount_rate,
            discount_amount=totals.discount_amount,
            tax_rate=totals.tax_rate,
            tax=totals.tax,
            net_total=totals.net_total,
            tendered_amount=totals.tendered_amount,
            balance=totals.balance,
            item_count=totals.item_count,
            currency=services.settings.currency,
            prescription_required=requirement.prescription_required,
        )

    except HTTPException:
        raise
    except PersistenceError as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to calculate quote: {str(e)}"
        )
