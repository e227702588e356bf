"""Read-only summaries for the admin and provider dashboards."""

from decimal import Decimal

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from slotbook.core import config
from slotbook.models.appointment import Appointment
from slotbook.models.patient import Patient
from slotbook.models.provider import Provider
from slotbook.services.errors import ProviderNotFound, UpstreamFailure


def _latest(query, limit: int) -> list[Appointment]:
    return query.order_by(Appointment.created_at.desc(), Appointment.id.desc()).limit(limit).all()


def dashboard_summary(db: Session, limit: int | None = None) -> dict:
    limit = config.DASHBOARD_LATEST_LIMIT if limit is None else limit

    try:
        return {
            'provider_count': db.query(func.count(Provider.id)).scalar() or 0,
            'patient_count': db.query(func.count(Patient.id)).scalar() or 0,
            'appointment_count': db.query(func.count(Appointment.id)).scalar() or 0,
            'latest': _latest(db.query(Appointment), limit),
        }
    except SQLAlchemyError as exc:
        raise UpstreamFailure() from exc


def provider_summary(db: Session, provider_id: str, limit: int | None = None) -> dict:
    limit = config.DASHBOARD_LATEST_LIMIT if limit is None else limit

    try:
        if db.query(Provider.id).filter(Provider.id == provider_id).first() is None:
            raise ProviderNotFound()

        appointments = db.query(Appointment).filter(Appointment.provider_id == provider_id)
        earnings = db.query(func.coalesce(func.sum(Appointment.amount), 0)).filter(
            Appointment.provider_id == provider_id,
            Appointment.cancelled.is_(False),
            or_(Appointment.paid.is_(True), Appointment.completed.is_(True)),
        ).scalar()
        patient_count = db.query(func.count(func.distinct(Appointment.patient_id))).filter(
            Appointment.provider_id == provider_id,
        ).scalar()

        return {
            'earnings': Decimal(str(earnings or 0)),
            'appointment_count': appointments.count(),
            'patient_count': patient_count or 0,
            'latest': _latest(appointments, limit),
        }
    except SQLAlchemyError as exc:
        raise UpstreamFailure() from exc
