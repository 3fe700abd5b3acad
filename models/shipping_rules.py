from core.database import Base
from sqlalchemy import (Column, Integer, String, Boolean, Numeric, UniqueConstraint)
from .mixins import CreatedAtMixin

class ShippingRule(Base, CreatedAtMixin):
    __tablename__ = "shipping_rules"
    __table_args__ = (
        UniqueConstraint("country", "state", "city", name="uq_shipping_rules_region"),
    )

    #pk
    id = Column(Integer, primary_key=True, index=True)

    country = Column(String, nullable=False)
    state = Column(String, nullable=False)
    city = Column(String, nullable=False)
    is_free = Column(Boolean, nullable=False, default=False)
    base_cost = Column(Numeric(10, 2), nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
