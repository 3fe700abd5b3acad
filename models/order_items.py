from core.database import Base
from sqlalchemy import (Column, Integer, String, ForeignKey, Numeric, CheckConstraint)
from sqlalchemy.orm import relationship

class OrderItem(Base):
    """
    Line of an order. The product_* columns are a snapshot taken when the
    order was placed and are never re-read from the catalog.
    """
    __tablename__ = "order_items"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
    )

    #pk
    id = Column(Integer, primary_key=True, index=True)

    #fk
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)

    #relationships
    order = relationship("Order", back_populates="items")

    # Plain column: the catalog row may later disappear
    product_id = Column(String(36), nullable=False)
    product_name = Column(String, nullable=False)
    product_sku = Column(String)
    product_price = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, nullable=False)
    subtotal = Column(Numeric(10, 2), nullable=False)
