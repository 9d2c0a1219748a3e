"""Review model definitions."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from pestcontrol.database import Base


class Review(Base):
    """Represents a customer review awaiting or past moderation."""
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    text = Column(String)
    status = Column(String, default="pending", nullable=False)
    date = Column(DateTime, nullable=False)
