"""Patient model definitions."""

from sqlalchemy import Column, DateTime, String
from slotbook.database import Base, new_id, utcnow


class Patient(Base):
    """Represents a patient who books appointments."""
    __tablename__ = "patients"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True)
    phone = Column(String)
    created_at = Column(DateTime, nullable=False, default=utcnow)
