from core.database import Base
from sqlalchemy import (Column, Integer, String, ForeignKey, Enum)
from sqlalchemy.orm import relationship
from .mixins import CreatedAtMixin

class InventoryChange(Base, CreatedAtMixin):
    """
    Audit trail of stock movements made by the order workflow.

    ``order_id`` is deliberately not a foreign key: cancelled orders are
    deleted but their reservation history stays.
    """
    __tablename__ = "inventory_changes"

    #pk
    id = Column(Integer, primary_key=True, index=True)

    #fk
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False)

    #relationships
    product = relationship("Product", back_populates="inventory_changes")

    order_id = Column(String(36), index=True)
    change_amount = Column(Integer, nullable=False)
    reason = Column(Enum("increment", "decrement", name="reason"), nullable=False)
