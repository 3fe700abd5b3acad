from fastapi import APIRouter, Request, Query
from utils.deps import db_dependency
from schemas.order_schemas import ShippingQuote
from services.shipping_service import ShippingService
from middleware.rate_limiter import limiter

router = APIRouter(
    prefix="/shipping",
    tags=["shipping"]
)


@router.get("/quote", response_model=ShippingQuote)
@limiter.limit("60/minute")
async def shipping_quote(request: Request, db: db_dependency,
                         country: str = Query(..., min_length=1),
                         state: str = Query(..., min_length=1),
                         city: str = Query(..., min_length=1)):
    """Preview of the shipping cost Create Order will charge for a region."""
    return ShippingService.quote(db, country, state, city)
