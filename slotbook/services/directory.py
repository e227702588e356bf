"""Provider and patient lookups used by the booking core."""

from decimal import Decimal

from sqlalchemy.orm import Session

from slotbook.models.patient import Patient
from slotbook.models.provider import Provider
from slotbook.services.errors import InvalidRequest, ProviderNotFound


def get_provider(db: Session, provider_id: str) -> Provider | None:
    return db.query(Provider).filter(Provider.id == provider_id).first()


def get_patient(db: Session, patient_id: str) -> Patient | None:
    return db.query(Patient).filter(Patient.id == patient_id).first()


def list_providers(db: Session, available_only: bool = False) -> list[Provider]:
    query = db.query(Provider)
    if available_only:
        query = query.filter(Provider.available.is_(True))
    return query.order_by(Provider.name.asc()).all()


def update_fee(db: Session, provider_id: str, fee: Decimal | int | str) -> Provider:
    """Change the fee for future bookings. Existing appointments keep their amount."""
    fee = Decimal(str(fee))
    if fee < 0:
        raise InvalidRequest('Fee cannot be negative.')

    provider = get_provider(db, provider_id)
    if provider is None:
        raise ProviderNotFound()

    provider.fee = fee
    db.commit()
    db.refresh(provider)
    return provider


def set_availability(db: Session, provider_id: str, available: bool) -> Provider:
    provider = get_provider(db, provider_id)
    if provider is None:
        raise ProviderNotFound()

    provider.available = available
    db.commit()
    db.refresh(provider)
    return provider


def provider_snapshot(provider: Provider) -> dict:
    return {
        'id': provider.id,
        'name': provider.name,
        'email': provider.email,
        'speciality': provider.speciality,
        'fee': str(provider.fee),
    }


def patient_snapshot(patient: Patient) -> dict:
    return {
        'id': patient.id,
        'name': patient.name,
        'email': patient.email,
        'phone': patient.phone,
    }
