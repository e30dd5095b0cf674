from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from compass_billing.utils.rate_limit import rate_limit_health_info

router = APIRouter(prefix="/health", tags=["Health"])

# Sonde de vivacité: aucune dépendance à Stripe
@router.get("")
def health_root():
    return {"status": "OK", "message": "Stripe server is running"}

@router.get("/rate-limit")
def health_rate_limit(request: Request):
    return JSONResponse(rate_limit_health_info(request))
