"""Reservation engine: hold a slot and create the appointment for it.

Booking touches two records, the slot hold and the appointment. The slot is
held and committed first. The appointment is then written in a transaction
that also confirms the hold still exists. If anything fails after the hold is
taken, the hold is released again. When that release fails too, a ``SlotInconsistency``
row is written so the reconciliation sweep can free the slot later.
"""

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from slotbook.models.appointment import Appointment
from slotbook.models.slot_inconsistency import SlotInconsistency
from slotbook.services import appointment_store, directory, slot_ledger
from slotbook.services.errors import (
    BookingError,
    InvalidRequest,
    PatientNotFound,
    ProviderNotFound,
    SlotUnavailable,
    UpstreamFailure,
)

logger = logging.getLogger(__name__)

MAX_ID_LENGTH = 36


def _require_id(value: str | None, label: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidRequest(f'{label} id is required.')

    normalized = value.strip()
    if len(normalized) > MAX_ID_LENGTH:
        raise InvalidRequest(f'{label} id is malformed.')
    return normalized


def book_slot(
    db: Session,
    patient_id: str,
    provider_id: str,
    slot_date: date | str,
    slot_time: str,
) -> Appointment:
    patient_id = _require_id(patient_id, 'Patient')
    provider_id = _require_id(provider_id, 'Provider')
    slot_date = slot_ledger.normalize_slot_date(slot_date)
    slot_time = slot_ledger.normalize_slot_time(slot_time)

    try:
        provider = directory.get_provider(db, provider_id)
        if provider is None:
            raise ProviderNotFound()
        if not provider.available:
            raise SlotUnavailable('Provider is not taking bookings.')

        if not slot_ledger.reserve(db, provider_id, slot_date, slot_time):
            raise SlotUnavailable()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Storage failure while reserving %s %s %s', provider_id, slot_date, slot_time)
        raise UpstreamFailure() from exc

    try:
        patient = directory.get_patient(db, patient_id)
        if patient is None:
            raise PatientNotFound()

        appointment = appointment_store.create(
            db,
            patient_id=patient.id,
            provider_id=provider.id,
            slot_date=slot_date,
            slot_time=slot_time,
            amount=Decimal(provider.fee),
            provider_snapshot=directory.provider_snapshot(provider),
            patient_snapshot=directory.patient_snapshot(patient),
            commit=False,
        )

        # The appointment row is written before the hold is checked, so a sweep can not free the slot in between.
        hold_kept = slot_ledger.is_held(db, provider_id, slot_date, slot_time, lock=True)
        if hold_kept:
            db.commit()
            db.refresh(appointment)
        else:
            db.rollback()
    except BookingError as exc:
        _compensate(db, provider_id, slot_date, slot_time, exc.message)
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Storage failure while creating appointment for %s %s %s', provider_id, slot_date, slot_time)
        _compensate(db, provider_id, slot_date, slot_time, 'Appointment could not be stored.')
        raise UpstreamFailure() from exc

    if not hold_kept:
        logger.warning('Hold for %s %s %s was released before the booking was stored', provider_id, slot_date, slot_time)
        raise SlotUnavailable()

    logger.info(
        'Booked appointment %s for patient %s with provider %s at %s %s',
        appointment.id, patient_id, provider_id, slot_date, slot_time,
    )
    return appointment


def _compensate(db: Session, provider_id: str, slot_date: date, slot_time: str, reason: str) -> None:
    try:
        slot_ledger.release(db, provider_id, slot_date, slot_time)
        logger.info('Released slot %s %s %s after failed booking: %s', provider_id, slot_date, slot_time, reason)
        return
    except SQLAlchemyError:
        db.rollback()
        logger.exception('Compensating release failed for %s %s %s', provider_id, slot_date, slot_time)

    record_session = Session(bind=db.get_bind())
    try:
        record_session.add(SlotInconsistency(
            provider_id=provider_id,
            slot_date=slot_date,
            slot_time=slot_time,
            reason=f'Orphaned reservation after failed booking: {reason}',
        ))
        record_session.commit()
    except SQLAlchemyError:
        record_session.rollback()
        logger.critical(
            'Orphaned slot %s %s %s could not be recorded; the reconciliation sweep will still find it',
            provider_id, slot_date, slot_time,
        )
    finally:
        record_session.close()
