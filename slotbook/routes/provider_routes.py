from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from slotbook.auth.dependencies import Caller, get_current_caller, require_admin
from slotbook.routes.common import database_unavailable, ensure_database_ready, get_db, to_http_exception
from slotbook.routes.schemas import (
    AppointmentResponse,
    ProviderDashboardResponse,
    ProviderResponse,
    UpdateAvailabilityRequest,
    UpdateFeeRequest,
)
from slotbook.services import appointment_store, directory, slot_ledger
from slotbook.services.errors import BookingError, ProviderNotFound
from slotbook.services.reporting import provider_summary

router = APIRouter(tags=['providers'])


def _ensure_provider_or_admin(caller: Caller, provider_id: str) -> None:
    if caller.is_admin or (caller.role == 'provider' and caller.id == provider_id):
        return
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail='Only this provider or an admin can do that.',
    )


@router.get('', response_model=list[ProviderResponse])
def list_providers(
    available_only: bool = Query(default=False),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return directory.list_providers(db, available_only=available_only)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/{provider_id}/slots', response_model=dict[date, list[str]])
def list_held_slots(provider_id: str, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        if directory.get_provider(db, provider_id) is None:
            raise to_http_exception(ProviderNotFound())
        return slot_ledger.slot_map(db, provider_id)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.patch('/{provider_id}/fee', response_model=ProviderResponse)
def change_fee(
    provider_id: str,
    data: UpdateFeeRequest,
    caller: Caller = Depends(require_admin),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return directory.update_fee(db, provider_id, str(data.fee))
    except BookingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.patch('/{provider_id}/availability', response_model=ProviderResponse)
def change_availability(
    provider_id: str,
    data: UpdateAvailabilityRequest,
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    _ensure_provider_or_admin(caller, provider_id)
    ensure_database_ready()

    try:
        return directory.set_availability(db, provider_id, data.available)
    except BookingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.get('/{provider_id}/appointments', response_model=list[AppointmentResponse])
def list_provider_appointments(
    provider_id: str,
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    _ensure_provider_or_admin(caller, provider_id)
    ensure_database_ready()

    try:
        return appointment_store.list_for_provider(db, provider_id)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/{provider_id}/dashboard', response_model=ProviderDashboardResponse)
def provider_dashboard(
    provider_id: str,
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    _ensure_provider_or_admin(caller, provider_id)
    ensure_database_ready()

    try:
        return provider_summary(db, provider_id)
    except BookingError as exc:
        raise to_http_exception(exc) from exc
