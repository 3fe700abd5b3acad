from core.database import Base
from sqlalchemy import (Column, Integer, String, ForeignKey, CheckConstraint)
from sqlalchemy.orm import relationship
from .mixins import UpdatedAtMixin

class Inventory(Base, UpdatedAtMixin):
    __tablename__ = "inventory"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_inventory_quantity_non_negative"),
    )

    #pk
    id = Column(Integer, primary_key=True, index=True)

    #fk
    product_id = Column(String(36), ForeignKey("products.id"), unique=True, nullable=False)

    #relationships
    product = relationship("Product", back_populates="inventory")

    quantity = Column(Integer, nullable=False, default=0)
