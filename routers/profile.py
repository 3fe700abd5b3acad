from fastapi import APIRouter, HTTPException, Request, status
from utils.deps import db_dependency, identity_dependency
from schemas.profile_schemas import ProfileRequest, ProfileResponse, OrderHistoryEntry
from services.profile_service import ProfileService
from middleware.rate_limiter import limiter

router = APIRouter(
    prefix="/profile",
    tags=["profile"]
)


@router.get("/me", response_model=ProfileResponse)
@limiter.limit("30/minute")
async def get_profile(request: Request, identity: identity_dependency, db: db_dependency):
    """Saved checkout details of the signed-in customer."""
    profile = ProfileService.get_profile(db, identity)

    if not profile:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")

    return profile


@router.put("/me", response_model=ProfileResponse)
@limiter.limit("10/minute")
async def save_profile(request: Request, body: ProfileRequest, identity: identity_dependency, db: db_dependency):
    return ProfileService.upsert_profile(db, identity, body)


@router.get("/me/orders", response_model=list[OrderHistoryEntry])
@limiter.limit("30/minute")
async def list_my_orders(request: Request, identity: identity_dependency, db: db_dependency):
    return ProfileService.list_orders(db, identity)
