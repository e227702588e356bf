"""Payment reconciliation between appointments and the payment authority.

An order is created for the appointment's amount with the appointment id as
its reconciliation key. Confirmation, whether polled with the order reference
or pushed through the webhook, sets ``paid`` with a conditional update that
never touches a cancelled appointment, so it can be repeated safely. An
unpaid order is reused rather than opened again, and a paid order that is not
the one recorded on an already paid appointment is logged for refund.
"""

import hashlib
import hmac
import json
import logging
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from slotbook.core import config
from slotbook.services import appointment_store
from slotbook.services._access import ensure_party
from slotbook.services.errors import (
    AlreadyPaid,
    AppointmentCancelled,
    AppointmentNotFound,
    Forbidden,
    InvalidRequest,
    UpstreamFailure,
)
from slotbook.services.payment_authority import PAID_STATUS, reconciliation_key

logger = logging.getLogger(__name__)

ORDER_PAID_EVENT = 'order.paid'


def to_minor_units(amount: Decimal | int | str) -> int:
    """Convert a major-unit amount (rupees) to minor units (paise)."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def create_payment_intent(
    db: Session,
    authority,
    appointment_id: str,
    actor_id: str | None = None,
    is_admin: bool = False,
) -> dict:
    try:
        appointment = appointment_store.get(db, appointment_id)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Storage failure while loading appointment %s', appointment_id)
        raise UpstreamFailure() from exc

    if appointment is None:
        raise AppointmentNotFound()
    if actor_id is not None:
        ensure_party(appointment, actor_id, is_admin)
    if appointment.cancelled:
        raise AppointmentCancelled()
    if appointment.paid:
        raise AlreadyPaid()

    if appointment.payment_reference:
        existing = _reusable_order(db, authority, appointment)
        if existing is not None:
            logger.info('Reusing payment order %s for appointment %s', existing.get('id'), appointment.id)
            return existing

    order = authority.create_order(
        to_minor_units(appointment.amount),
        config.CURRENCY,
        appointment.id,
    )

    try:
        appointment_store.set_payment_reference(db, appointment.id, order['id'])
    except SQLAlchemyError:
        # Confirmation reads the reconciliation key from the order, not from this column.
        db.rollback()
        logger.exception('Could not store payment reference %s for appointment %s', order.get('id'), appointment.id)

    logger.info('Created payment order %s for appointment %s', order.get('id'), appointment.id)
    return order


def confirm_payment(db: Session, authority, payment_reference: str) -> bool:
    """Mark the order's appointment paid if the authority reports the order paid."""
    if not isinstance(payment_reference, str) or not payment_reference.strip():
        raise InvalidRequest('Payment reference is required.')

    order = authority.fetch_order(payment_reference.strip())
    if order is None:
        return False

    if order.get('status') != PAID_STATUS:
        logger.info('Payment order %s not paid (status %s)', payment_reference, order.get('status'))
        return False

    return _apply_paid_order(db, order)


def handle_webhook(db: Session, body: bytes, signature: str | None, secret: str | None = None) -> bool:
    """Apply a Razorpay webhook delivery. Returns True when an appointment is paid by it."""
    secret = secret if secret is not None else config.RAZORPAY_WEBHOOK_SECRET
    if not secret or not verify_webhook_signature(body, signature, secret):
        logger.warning('Rejected payment webhook with an invalid signature')
        raise Forbidden('Invalid webhook signature.')

    try:
        event = json.loads(body)
    except ValueError as exc:
        raise InvalidRequest('Webhook body is not valid JSON.') from exc
    if not isinstance(event, dict):
        raise InvalidRequest('Webhook body must be a JSON object.')

    if event.get('event') != ORDER_PAID_EVENT:
        logger.info('Ignoring payment webhook event %s', event.get('event'))
        return False

    order = event
    for key in ('payload', 'order', 'entity'):
        order = order.get(key) if isinstance(order, dict) else None
    if not isinstance(order, dict) or order.get('status') != PAID_STATUS:
        return False

    return _apply_paid_order(db, order)


def verify_webhook_signature(body: bytes, signature: str | None, secret: str) -> bool:
    if not signature:
        return False
    expected = hmac.new(secret.encode('utf-8'), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature)


def _reusable_order(db: Session, authority, appointment) -> dict | None:
    """Return the appointment's stored order while it can still be paid.

    A stored order that was paid but never confirmed is applied here and
    ``AlreadyPaid`` is raised, so a second order is never opened for it.
    """
    order = authority.fetch_order(appointment.payment_reference)
    if order is None or reconciliation_key(order) != appointment.id:
        return None

    if order.get('status') == PAID_STATUS:
        if _apply_paid_order(db, order):
            raise AlreadyPaid()
        return None

    if int(order.get('amount') or 0) != to_minor_units(appointment.amount):
        return None
    return order


def _log_duplicate_payment(appointment, order: dict) -> None:
    if appointment.payment_reference and appointment.payment_reference != order.get('id'):
        logger.warning(
            'Paid order %s arrived for appointment %s already paid by order %s; duplicate payment for refund',
            order.get('id'), appointment.id, appointment.payment_reference,
        )


def _apply_paid_order(db: Session, order: dict) -> bool:
    appointment_id = reconciliation_key(order)
    if not appointment_id:
        logger.warning('Paid order %s carries no reconciliation key', order.get('id'))
        return False

    try:
        appointment = appointment_store.get(db, appointment_id)
        if appointment is None:
            logger.warning('Paid order %s references unknown appointment %s', order.get('id'), appointment_id)
            return False

        if appointment.cancelled:
            logger.warning(
                'Paid order %s arrived for cancelled appointment %s; left unpaid for refund',
                order.get('id'), appointment_id,
            )
            return False

        if appointment.paid:
            _log_duplicate_payment(appointment, order)
            return True

        amount_paid = order.get('amount_paid') or order.get('amount')
        if amount_paid is not None and int(amount_paid) != to_minor_units(appointment.amount):
            logger.warning(
                'Paid order %s amount %s does not match appointment %s amount %s',
                order.get('id'), amount_paid, appointment_id, appointment.amount,
            )
            return False

        if not appointment_store.mark_paid(db, appointment_id, order.get('id')):
            # Cancelled or paid by a concurrent request in the meantime.
            db.refresh(appointment)
            if appointment.paid and not appointment.cancelled:
                _log_duplicate_payment(appointment, order)
                return True
            return False
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Storage failure while confirming payment for appointment %s', appointment_id)
        raise UpstreamFailure() from exc

    logger.info('Appointment %s paid by order %s', appointment_id, order.get('id'))
    return True
