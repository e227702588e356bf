"""Cancellation engine: mark an appointment cancelled and free its slot."""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from slotbook.models.appointment import Appointment
from slotbook.services import appointment_store, slot_ledger
from slotbook.services._access import ensure_party
from slotbook.services.errors import AppointmentCompleted, AppointmentNotFound, UpstreamFailure

logger = logging.getLogger(__name__)


def cancel_appointment(db: Session, appointment_id: str, actor_id: str | None, is_admin: bool = False) -> Appointment:
    """Cancel the appointment on behalf of its patient, its provider or an admin.

    Cancelling twice is not an error. The flag update and the slot release
    commit together; a slot that was already free is ignored.
    """
    try:
        appointment = appointment_store.get(db, appointment_id)
        if appointment is None:
            raise AppointmentNotFound()

        ensure_party(appointment, actor_id, is_admin)

        if appointment.cancelled:
            return appointment
        if appointment.completed:
            raise AppointmentCompleted('Completed appointments cannot be cancelled.')

        if not appointment_store.mark_cancelled(db, appointment.id):
            # Lost a race with another cancel or a completion; report what won.
            db.rollback()
            db.refresh(appointment)
            if appointment.completed and not appointment.cancelled:
                raise AppointmentCompleted('Completed appointments cannot be cancelled.')
            return appointment

        slot_ledger.release(db, appointment.provider_id, appointment.slot_date, appointment.slot_time, commit=False)
        db.commit()
        db.refresh(appointment)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Storage failure while cancelling appointment %s', appointment_id)
        raise UpstreamFailure() from exc

    logger.info('Appointment %s cancelled by %s', appointment.id, 'admin' if is_admin else actor_id)
    return appointment
