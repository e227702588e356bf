"""Sweep that repairs slot holds left without a live appointment.

Holds become orphaned when a booking's compensating release fails, or when a
process dies between reserving a slot and storing the appointment. Holds
younger than the grace period are skipped because their booking may still be
in flight; the grace period can not be set below
``config.MIN_ORPHAN_GRACE_SECONDS``.
"""

import logging
from datetime import timedelta

from sqlalchemy import and_, exists
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from slotbook.core import config
from slotbook.database import utcnow
from slotbook.models.appointment import Appointment
from slotbook.models.slot_hold import SlotHold
from slotbook.models.slot_inconsistency import SlotInconsistency
from slotbook.services import appointment_store, slot_ledger
from slotbook.services.errors import InvalidRequest, UpstreamFailure

logger = logging.getLogger(__name__)


def _grace_seconds(grace_seconds: int | None) -> int:
    grace_seconds = config.ORPHAN_GRACE_SECONDS if grace_seconds is None else grace_seconds
    if grace_seconds < config.MIN_ORPHAN_GRACE_SECONDS:
        raise InvalidRequest(f'Grace period must be at least {config.MIN_ORPHAN_GRACE_SECONDS} seconds.')
    return grace_seconds


def _live_appointment():
    return exists().where(and_(
        Appointment.provider_id == SlotHold.provider_id,
        Appointment.slot_date == SlotHold.slot_date,
        Appointment.slot_time == SlotHold.slot_time,
        Appointment.cancelled.is_(False),
    ))


def find_orphaned_holds(db: Session, grace_seconds: int | None = None) -> list[SlotHold]:
    cutoff = utcnow() - timedelta(seconds=_grace_seconds(grace_seconds))

    return db.query(SlotHold).filter(
        SlotHold.created_at <= cutoff,
        ~_live_appointment(),
    ).order_by(SlotHold.created_at.asc()).all()


def sweep_orphaned_slots(db: Session, grace_seconds: int | None = None) -> dict:
    released: list[dict] = []

    try:
        for hold in find_orphaned_holds(db, grace_seconds):
            slot = {'provider_id': hold.provider_id, 'slot_date': hold.slot_date, 'slot_time': hold.slot_time}
            # Re-checked in the DELETE so a booking that stored its appointment since the scan keeps its hold.
            removed = db.query(SlotHold).filter(
                SlotHold.id == hold.id,
                ~_live_appointment(),
            ).delete(synchronize_session=False)
            if removed:
                released.append(slot)

        resolved = 0
        for record in db.query(SlotInconsistency).filter(SlotInconsistency.resolved.is_(False)).all():
            key = (record.provider_id, record.slot_date, record.slot_time)
            if slot_ledger.is_held(db, *key) and appointment_store.find_live_for_slot(db, *key) is None:
                continue
            record.resolved = True
            record.resolved_at = utcnow()
            resolved += 1

        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Storage failure during orphaned slot sweep')
        raise UpstreamFailure() from exc

    if released or resolved:
        logger.info('Slot sweep released %d orphaned holds and resolved %d records', len(released), resolved)
    return {'released': released, 'resolved_records': resolved}
