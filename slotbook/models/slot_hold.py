"""Slot hold model definitions."""

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, UniqueConstraint
from slotbook.database import Base, utcnow


class SlotHold(Base):
    """One held (provider, date, time) slot. The unique constraint is the reservation guard."""
    __tablename__ = "slot_holds"
    __table_args__ = (
        UniqueConstraint("provider_id", "slot_date", "slot_time", name="uq_slot_holds_slot"),
    )

    id = Column(Integer, primary_key=True)
    provider_id = Column(String(36), ForeignKey("providers.id"), nullable=False, index=True)
    slot_date = Column(Date, nullable=False)
    slot_time = Column(String(16), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
