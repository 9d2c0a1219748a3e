"""Chat message model definitions."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from pestcontrol.database import Base


class Message(Base):
    """Represents one chat line between staff and a customer."""
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    content = Column(String, nullable=False)
    from_customer = Column(Boolean, default=False, nullable=False)
    timestamp = Column(DateTime, nullable=False, index=True)
