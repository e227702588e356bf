"""Per-provider record of held (date, time) slots.

A slot is held when a row exists in ``slot_holds``. Reserving is one INSERT
guarded by the table's unique constraint, so concurrent attempts from any
number of processes resolve in the database: the first commit wins and every
other attempt sees an ``IntegrityError``.
"""

import logging
import re
from collections import defaultdict
from datetime import date, datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from slotbook.models.slot_hold import SlotHold
from slotbook.services.errors import InvalidRequest

logger = logging.getLogger(__name__)

SLOT_TIME_PATTERN = re.compile(r'^(?P<hour>\d{1,2}):(?P<minute>\d{2})\s*(?P<meridiem>am|pm)$')


def normalize_slot_date(value: date | str | None) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise InvalidRequest('Slot date is required.')

    try:
        return date.fromisoformat(value.strip())
    except ValueError as exc:
        raise InvalidRequest('Slot date must be a calendar date (YYYY-MM-DD).') from exc


def normalize_slot_time(value: str | None) -> str:
    """Return the canonical label for a time such as ``"10:30 AM"`` (``"10:30am"``)."""
    if not isinstance(value, str) or not value.strip():
        raise InvalidRequest('Slot time is required.')

    match = SLOT_TIME_PATTERN.match(value.strip().lower())
    if not match:
        raise InvalidRequest('Slot time must look like "10:30 am".')

    hour = int(match.group('hour'))
    minute = int(match.group('minute'))
    if not 1 <= hour <= 12 or minute > 59:
        raise InvalidRequest('Slot time must look like "10:30 am".')

    return f"{hour}:{minute:02d}{match.group('meridiem')}"


def slot_minutes(slot_time: str) -> int:
    """Minutes after midnight for a canonical label, for chronological sorting."""
    match = SLOT_TIME_PATTERN.match(slot_time)
    hour = int(match.group('hour')) % 12
    if match.group('meridiem') == 'pm':
        hour += 12
    return hour * 60 + int(match.group('minute'))


def _slot_query(db: Session, provider_id: str, slot_date: date, slot_time: str):
    return db.query(SlotHold).filter(
        SlotHold.provider_id == provider_id,
        SlotHold.slot_date == slot_date,
        SlotHold.slot_time == slot_time,
    )


def is_held(db: Session, provider_id: str, slot_date: date, slot_time: str, lock: bool = False) -> bool:
    query = _slot_query(db, provider_id, slot_date, slot_time)
    if lock:
        query = query.with_for_update()
    return query.first() is not None


def reserve(db: Session, provider_id: str, slot_date: date, slot_time: str) -> bool:
    """Hold the slot. Returns False when it is already held."""
    db.add(SlotHold(provider_id=provider_id, slot_date=slot_date, slot_time=slot_time))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info('Slot %s %s %s already held', provider_id, slot_date, slot_time)
        return False

    return True


def release(db: Session, provider_id: str, slot_date: date, slot_time: str, commit: bool = True) -> bool:
    """Free the slot. Releasing a free slot is a no-op that returns False."""
    removed = _slot_query(db, provider_id, slot_date, slot_time).delete(synchronize_session=False)
    if commit:
        db.commit()

    if not removed:
        logger.info('Slot %s %s %s was not held', provider_id, slot_date, slot_time)
    return bool(removed)


def slot_map(db: Session, provider_id: str) -> dict[date, list[str]]:
    holds = db.query(SlotHold.slot_date, SlotHold.slot_time).filter(
        SlotHold.provider_id == provider_id,
    ).order_by(SlotHold.slot_date.asc()).all()

    slots: dict[date, list[str]] = defaultdict(list)
    for slot_date, slot_time in holds:
        slots[slot_date].append(slot_time)

    return {slot_date: sorted(times, key=slot_minutes) for slot_date, times in slots.items()}
