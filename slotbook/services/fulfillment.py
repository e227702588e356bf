"""Explicit completion of an appointment by its provider or an admin.

Completion is never inferred from the appointment time having passed.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from slotbook.models.appointment import Appointment
from slotbook.services import appointment_store
from slotbook.services._access import ensure_party
from slotbook.services.errors import AppointmentCancelled, AppointmentNotFound, UpstreamFailure

logger = logging.getLogger(__name__)


def complete_appointment(db: Session, appointment_id: str, actor_id: str | None, is_admin: bool = False) -> Appointment:
    try:
        appointment = appointment_store.get(db, appointment_id)
        if appointment is None:
            raise AppointmentNotFound()

        ensure_party(appointment, actor_id, is_admin, allow_patient=False)

        if appointment.cancelled:
            raise AppointmentCancelled('Cancelled appointments cannot be completed.')
        if appointment.completed:
            return appointment

        if not appointment_store.mark_completed(db, appointment.id):
            db.refresh(appointment)
            if appointment.cancelled:
                raise AppointmentCancelled('Cancelled appointments cannot be completed.')
        db.refresh(appointment)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Storage failure while completing appointment %s', appointment_id)
        raise UpstreamFailure() from exc

    logger.info('Appointment %s completed', appointment.id)
    return appointment
