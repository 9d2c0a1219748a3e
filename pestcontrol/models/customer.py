"""Customer model definitions."""

from sqlalchemy import Column, Float, Integer, JSON, String
from pestcontrol.database import Base


class Customer(Base):
    """Represents a customer and the address services are delivered to."""
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False)
    phone = Column(String, nullable=False)
    address = Column(String, nullable=False)
    notes = Column(String)
    status = Column(String, default="active", nullable=False)
    service_plan = Column(String)
    tags = Column(JSON, default=list)
    # Cached coordinates of the address, used as the default appointment location.
    latitude = Column(Float)
    longitude = Column(Float)
