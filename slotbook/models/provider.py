"""Provider model definitions."""

from sqlalchemy import Boolean, Column, DateTime, Numeric, String
from slotbook.database import Base, new_id, utcnow


class Provider(Base):
    """A provider patients can book, with the fee charged per appointment."""
    __tablename__ = "providers"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True)
    speciality = Column(String)
    fee = Column(Numeric(10, 2), nullable=False, default=0)
    available = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
