from fastapi import APIRouter

from heart_avtal.api.v1.health import router as health_router
from heart_avtal.api.v1.heart_contracts import router as heart_contracts_router
from heart_avtal.api.v1.heart_fees import router as heart_fees_router


v1_router = APIRouter()

# ------------------------------------------------------------------
# SYSTEM / CORE
# ------------------------------------------------------------------
v1_router.include_router(health_router, tags=["health"])

# ------------------------------------------------------------------
# HEART AVTAL
# ------------------------------------------------------------------
v1_router.include_router(heart_fees_router, tags=["heart-avtal"])
v1_router.include_router(heart_contracts_router, tags=["heart-avtal"])
