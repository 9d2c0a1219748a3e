"""Appointment model definitions."""

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String
from pestcontrol.database import Base


class Appointment(Base):
    """Represents a scheduled service visit.

    Appointments are never deleted; cancelling one only changes its status.
    The visit length is fixed and therefore not stored.
    """
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    start_time = Column(DateTime, nullable=False)
    status = Column(String, default="pending", nullable=False)
    service_type = Column(String, nullable=False)
    notes = Column(String)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
