"""User model definitions."""

from sqlalchemy import Column, Integer, String
from pestcontrol.database import Base


class User(Base):
    """Represents a staff member who can sign in."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    name = Column(String, nullable=False)
    role = Column(String, default="admin", nullable=False)  # admin/technician
