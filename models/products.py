import uuid
from core.database import Base
from sqlalchemy import (Column, String, Boolean, Numeric)
from sqlalchemy.orm import relationship
from .mixins import CreatedAtMixin, UpdatedAtMixin

class Product(Base, CreatedAtMixin, UpdatedAtMixin):
    """Catalog product. The order workflow only reads it."""
    __tablename__ = "products"

    #pk
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    #relationships
    inventory = relationship("Inventory", back_populates="product", uselist=False)
    inventory_changes = relationship("InventoryChange", back_populates="product")

    name = Column(String, nullable=False)
    sku = Column(String, unique=True)
    description = Column(String)
    price = Column(Numeric(10, 2), nullable=False)
    image_url = Column(String)
    is_active = Column(Boolean, nullable=False, default=True)
