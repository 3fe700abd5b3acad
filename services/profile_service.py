from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload
from core.exceptions import InfrastructureError
from models.customer_profiles import CustomerProfile
from models.orders import Order
from schemas.order_schemas import Identity
from schemas.profile_schemas import ProfileRequest, ProfileResponse
from utils.logger import get_logger

logger = get_logger(__name__)


class ProfileService:

    @staticmethod
    def get_profile(db: Session, identity: Identity) -> ProfileResponse | None:
        profile = db.get(CustomerProfile, identity.id)
        if profile is None:
            return None

        response = ProfileResponse.model_validate(profile)
        response.email = identity.email
        return response

    @staticmethod
    def upsert_profile(db: Session, identity: Identity, body: ProfileRequest) -> ProfileResponse:
        """
        Creates or updates the caller's saved checkout details. Only fields
        present in the request are written.
        """
        profile = db.get(CustomerProfile, identity.id)
        created = profile is None
        if created:
            profile = CustomerProfile(id=identity.id)
            db.add(profile)

        for field, value in body.model_dump(exclude_unset=True).items():
            setattr(profile, field, value)

        try:
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.error("Error saving profile", extra={"user_id": identity.id}, exc_info=True)
            raise InfrastructureError("Error saving profile")

        db.refresh(profile)
        logger.info("Profile saved", extra={"user_id": identity.id, "profile_created": created})

        response = ProfileResponse.model_validate(profile)
        response.email = identity.email
        return response

    @staticmethod
    def list_orders(db: Session, identity: Identity) -> list[Order]:
        """The caller's orders, newest first, with their item snapshots."""
        return (
            db.query(Order)
            .options(selectinload(Order.items))
            .filter(Order.user_id == identity.id)
            .order_by(Order.created_at.desc(), Order.id)
            .all()
        )
