"""Appointment model definitions."""

from sqlalchemy import JSON, Boolean, Column, Date, DateTime, ForeignKey, Numeric, String
from slotbook.database import Base, new_id, utcnow


class Appointment(Base):
    """Represents a booked appointment and its lifecycle flags."""
    __tablename__ = "appointments"

    id = Column(String(36), primary_key=True, default=new_id)
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False, index=True)
    provider_id = Column(String(36), ForeignKey("providers.id"), nullable=False, index=True)
    slot_date = Column(Date, nullable=False)
    slot_time = Column(String(16), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    cancelled = Column(Boolean, nullable=False, default=False)
    paid = Column(Boolean, nullable=False, default=False)
    completed = Column(Boolean, nullable=False, default=False)
    payment_reference = Column(String)
    # point-in-time copies for display, never re-validated
    provider_snapshot = Column(JSON)
    patient_snapshot = Column(JSON)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
