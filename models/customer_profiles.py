from core.database import Base
from sqlalchemy import (Column, String)
from .mixins import CreatedAtMixin, UpdatedAtMixin

class CustomerProfile(Base, CreatedAtMixin, UpdatedAtMixin):
    """Saved checkout details of a signed-in customer, keyed by identity id."""
    __tablename__ = "customer_profiles"

    #pk
    id = Column(String(64), primary_key=True)

    first_name = Column(String)
    last_name = Column(String)
    cedula = Column(String)
    phone = Column(String)
    country = Column(String)
    state = Column(String)
    city = Column(String)
    address_line1 = Column(String)
