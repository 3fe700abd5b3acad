from decimal import Decimal
from sqlalchemy.orm import Session
from models.shipping_rules import ShippingRule
from schemas.order_schemas import ShippingQuote
from utils.logger import get_logger

logger = get_logger(__name__)

SHIPPING_TO_BE_CONFIRMED = "Shipping: to be confirmed"


class ShippingService:

    @staticmethod
    def quote(db: Session, country: str, state: str, city: str) -> ShippingQuote:
        """
        Shipping cost for an exact (country, state, city) match among active
        rules. A region without a rule is not an error: the cost is 0 and the
        quote is flagged as unconfirmed so staff settle it with the customer.
        """
        rule = db.query(ShippingRule).filter(
            ShippingRule.country == country,
            ShippingRule.state == state,
            ShippingRule.city == city,
            ShippingRule.is_active == True
        ).one_or_none()

        if rule is None:
            logger.info(
                "No shipping rule for region",
                extra={"country": country, "state": state, "city": city}
            )
            return ShippingQuote(is_free=False, cost=Decimal("0.00"),
                                 message=SHIPPING_TO_BE_CONFIRMED, confirmed=False)

        if rule.is_free:
            return ShippingQuote(is_free=True, cost=Decimal("0.00"),
                                 message="Shipping: free", confirmed=True)

        cost = Decimal(rule.base_cost).quantize(Decimal("0.01"))
        return ShippingQuote(is_free=False, cost=cost,
                             message=f"Shipping cost: ${cost:.2f}", confirmed=True)
