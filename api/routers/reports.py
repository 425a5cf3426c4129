"""
Reports API Endpoints.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import PosServices, get_services
from api.models import DailySummaryResponse
from domain.errors import PersistenceError
from domain.time import utc_now

router = APIRouter()


@router.get(
    "/reports/daily",
    response_model=DailySummaryResponse,
    summary="Daily Sales Summary",
    description="Net sales and transaction count for one day (UTC). Defaults to today."
)
def daily_summary(
    day: Optional[date] = Query(None, description="YYYY-MM-DD"),
    services: PosServices = Depends(get_services),
):
    try:
        summary = services.reporting.daily_summary(day or utc_now().date())
        return DailySummaryResponse(
            day=summary.day,
            total_sales=summary.total_sales,
            transaction_count=summary.transaction_count,
            currency=services.settings.currency,
        )

    except PersistenceError as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to load daily summary: {str(e)}"
        )
