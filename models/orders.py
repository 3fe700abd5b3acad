import uuid
from core.database import Base
from sqlalchemy.orm import relationship
from sqlalchemy import (Column, String, Numeric, Enum, Text)
from .mixins import CreatedAtMixin, UpdatedAtMixin

ORDER_STATUSES = ("pending", "confirmed", "completed", "cancelled")

class Order(Base, CreatedAtMixin, UpdatedAtMixin):
    __tablename__ = "orders"

    #pk
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    #relationships
    items = relationship("OrderItem", back_populates="order", order_by="OrderItem.id")

    tracking_code = Column(String(32), unique=True, nullable=False, index=True)

    # Issued by the external identity provider, null for guest orders
    user_id = Column(String(64), index=True)

    customer_name = Column(String, nullable=False)
    customer_email = Column(String, nullable=False)
    customer_phone = Column(String)
    cedula = Column(String, nullable=False)
    shipping_notes = Column(Text)

    payment_method = Column(String, nullable=False, default="transfer")
    payment_proof_url = Column(String)

    subtotal = Column(Numeric(10, 2), nullable=False)
    shipping_cost = Column(Numeric(10, 2), nullable=False, default=0)
    total_amount = Column(Numeric(10, 2), nullable=False)
    status = Column(Enum(*ORDER_STATUSES, name="order_status"), nullable=False, default="pending")
