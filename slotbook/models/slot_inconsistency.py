"""Slot inconsistency model definitions."""

from sqlalchemy import Boolean, Column, Date, DateTime, Integer, String
from slotbook.database import Base, utcnow


class SlotInconsistency(Base):
    """A slot left held after a booking failed and its compensating release failed too."""
    __tablename__ = "slot_inconsistencies"

    id = Column(Integer, primary_key=True)
    provider_id = Column(String(36), nullable=False, index=True)
    slot_date = Column(Date, nullable=False)
    slot_time = Column(String(16), nullable=False)
    reason = Column(String)
    resolved = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    resolved_at = Column(DateTime)
