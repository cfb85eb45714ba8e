from decimal import Decimal

from fastapi import APIRouter, Depends, Query

from heart_avtal.core.deps import get_heart_avtal_service, to_http
from heart_avtal.core.errors import HeartAvtalError
from heart_avtal.schemas.heart_contracts import FeePreviewResponse
from heart_avtal.services.heart_avtal_service import HeartAvtalService

router = APIRouter(prefix="/heart")


@router.get("/fees", response_model=FeePreviewResponse)
def preview_fees(
    amount: Decimal = Query(..., ge=0),
    svc: HeartAvtalService = Depends(get_heart_avtal_service),
):
    """Fee breakdown for an amount, using the configured rates. Nothing is stored."""
    try:
        breakdown = svc.calculate_contract_fees(amount)
    except HeartAvtalError as e:
        raise to_http(e)
    return breakdown.to_dict()
