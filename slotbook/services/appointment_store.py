"""Durable appointment records.

Lifecycle flags are only ever changed with conditional UPDATE statements that
address one appointment id, so concurrent requests cannot resurrect a
cancelled appointment or unset ``paid``.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy.orm import Session

from slotbook.database import utcnow
from slotbook.models.appointment import Appointment


def create(
    db: Session,
    patient_id: str,
    provider_id: str,
    slot_date: date,
    slot_time: str,
    amount: Decimal,
    provider_snapshot: dict | None = None,
    patient_snapshot: dict | None = None,
    commit: bool = True,
) -> Appointment:
    appointment = Appointment(
        patient_id=patient_id,
        provider_id=provider_id,
        slot_date=slot_date,
        slot_time=slot_time,
        amount=amount,
        cancelled=False,
        paid=False,
        completed=False,
        provider_snapshot=provider_snapshot,
        patient_snapshot=patient_snapshot,
    )
    db.add(appointment)
    if not commit:
        db.flush()
        return appointment

    db.commit()
    db.refresh(appointment)
    return appointment


def get(db: Session, appointment_id: str) -> Appointment | None:
    return db.query(Appointment).filter(Appointment.id == appointment_id).first()


def list_for_patient(db: Session, patient_id: str) -> list[Appointment]:
    return db.query(Appointment).filter(
        Appointment.patient_id == patient_id,
    ).order_by(Appointment.created_at.desc(), Appointment.id.desc()).all()


def list_for_provider(db: Session, provider_id: str) -> list[Appointment]:
    return db.query(Appointment).filter(
        Appointment.provider_id == provider_id,
    ).order_by(Appointment.created_at.desc(), Appointment.id.desc()).all()


def list_all(db: Session, limit: int | None = None) -> list[Appointment]:
    query = db.query(Appointment).order_by(Appointment.created_at.desc(), Appointment.id.desc())
    if limit is not None:
        query = query.limit(limit)
    return query.all()


def find_live_for_slot(db: Session, provider_id: str, slot_date: date, slot_time: str) -> Appointment | None:
    return db.query(Appointment).filter(
        Appointment.provider_id == provider_id,
        Appointment.slot_date == slot_date,
        Appointment.slot_time == slot_time,
        Appointment.cancelled.is_(False),
    ).first()


def mark_cancelled(db: Session, appointment_id: str) -> bool:
    """Flag the appointment cancelled. Does not commit; returns False if it already was."""
    updated = db.query(Appointment).filter(
        Appointment.id == appointment_id,
        Appointment.cancelled.is_(False),
        Appointment.completed.is_(False),
    ).update({Appointment.cancelled: True, Appointment.updated_at: utcnow()}, synchronize_session=False)
    return bool(updated)


def mark_paid(db: Session, appointment_id: str, reference: str | None = None) -> bool:
    """Flag the appointment paid, recording the order that paid it."""
    values = {Appointment.paid: True, Appointment.updated_at: utcnow()}
    if reference:
        values[Appointment.payment_reference] = reference
    updated = db.query(Appointment).filter(
        Appointment.id == appointment_id,
        Appointment.cancelled.is_(False),
        Appointment.paid.is_(False),
    ).update(values, synchronize_session=False)
    db.commit()
    return bool(updated)


def mark_completed(db: Session, appointment_id: str) -> bool:
    updated = db.query(Appointment).filter(
        Appointment.id == appointment_id,
        Appointment.cancelled.is_(False),
        Appointment.completed.is_(False),
    ).update({Appointment.completed: True, Appointment.updated_at: utcnow()}, synchronize_session=False)
    db.commit()
    return bool(updated)


def set_payment_reference(db: Session, appointment_id: str, reference: str) -> None:
    db.query(Appointment).filter(
        Appointment.id == appointment_id,
    ).update({Appointment.payment_reference: reference, Appointment.updated_at: utcnow()}, synchronize_session=False)
    db.commit()
