from typing import Optional
from fastapi import APIRouter, Request, Query, Response
from starlette import status
from utils.deps import db_dependency, blob_store_dependency, optional_identity_dependency
from schemas.order_schemas import (CreateOrderRequest, CreateOrderResponse, UploadProofRequest, UploadProofResponse,
                                   CancelOrderRequest, CancelOrderResponse, TrackOrderRequest, TrackOrderResponse)
from services.order_service import OrderService
from core.exceptions import ValidationError
from middleware.rate_limiter import limiter



router = APIRouter(
    prefix="/orders",
    tags=["orders"]
)


@router.post("", response_model=CreateOrderResponse, status_code=status.HTTP_200_OK)
@limiter.limit("10/minute")
async def create_order(request: Request, body: CreateOrderRequest, db: db_dependency,
                       identity: optional_identity_dependency):
    """
    Place an order for the cart. Guests and signed-in customers use the same
    contract; a valid bearer token only links the order to the customer.
    """
    return OrderService.create_order(db, body, identity)


@router.post("/proof", response_model=UploadProofResponse)
@limiter.limit("20/minute")
async def upload_payment_proof(request: Request, body: UploadProofRequest, db: db_dependency,
                               blob_store: blob_store_dependency):
    url = OrderService.submit_payment_proof(db, blob_store, body)
    return UploadProofResponse(payment_proof_url=url)


@router.post("/cancel", response_model=CancelOrderResponse)
@limiter.limit("10/minute")
async def cancel_order(request: Request, body: CancelOrderRequest, db: db_dependency,
                       blob_store: blob_store_dependency, identity: optional_identity_dependency):
    OrderService.cancel_order(db, blob_store, body.order_id, identity)
    return CancelOrderResponse()


@router.get("/track", response_model=TrackOrderResponse)
@limiter.limit("30/minute")
async def track_order(request: Request, db: db_dependency, tracking_code: Optional[str] = Query(None)):
    if not tracking_code or not tracking_code.strip():
        raise ValidationError("tracking_code is required")
    return OrderService.track_order(db, tracking_code)


@router.post("/track", response_model=TrackOrderResponse)
@limiter.limit("30/minute")
async def track_order_post(request: Request, body: TrackOrderRequest, db: db_dependency):
    return OrderService.track_order(db, body.tracking_code)


PREFLIGHT_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, X-Client-Info, Apikey",
}


@router.options("", include_in_schema=False)
@router.options("/proof", include_in_schema=False)
@router.options("/cancel", include_in_schema=False)
@router.options("/track", include_in_schema=False)
async def preflight():
    """
    Bare OPTIONS requests on the order endpoints. Browser preflights carrying Origin and
    Access-Control-Request-Method are answered earlier by CORSMiddleware.
    """
    return Response(status_code=status.HTTP_200_OK, headers=PREFLIGHT_HEADERS)
