from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from slotbook.auth.dependencies import Caller, get_current_caller, require_admin
from slotbook.routes.common import database_unavailable, ensure_database_ready, get_db, to_http_exception
from slotbook.routes.schemas import AppointmentActionResponse, AppointmentResponse, CreateAppointmentRequest
from slotbook.services import appointment_store
from slotbook.services.cancellation import cancel_appointment
from slotbook.services.errors import BookingError
from slotbook.services.fulfillment import complete_appointment
from slotbook.services.reservation import book_slot

router = APIRouter(tags=['appointments'])


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    if caller.is_admin:
        if not data.patient_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Admins must name the patient they are booking for.',
            )
        patient_id = data.patient_id
    elif caller.role == 'patient':
        patient_id = caller.id
    else:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='Only patients can book appointments.',
        )

    ensure_database_ready()

    try:
        return book_slot(db, patient_id, data.provider_id, data.slot_date, data.slot_time)
    except BookingError as exc:
        raise to_http_exception(exc) from exc


@router.get('/mine', response_model=list[AppointmentResponse])
def list_my_appointments(
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        if caller.role == 'provider':
            return appointment_store.list_for_provider(db, caller.id)
        return appointment_store.list_for_patient(db, caller.id)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('', response_model=list[AppointmentResponse])
def list_appointments(
    caller: Caller = Depends(require_admin),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return appointment_store.list_all(db)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('/{appointment_id}/cancel', response_model=AppointmentActionResponse)
def cancel_my_appointment(
    appointment_id: str,
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = cancel_appointment(db, appointment_id, caller.id, is_admin=caller.is_admin)
    except BookingError as exc:
        raise to_http_exception(exc) from exc

    return AppointmentActionResponse(
        success=True,
        message='Appointment cancelled successfully.',
        appointment=AppointmentResponse.model_validate(appointment),
    )


@router.post('/{appointment_id}/complete', response_model=AppointmentActionResponse)
def mark_appointment_completed(
    appointment_id: str,
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = complete_appointment(db, appointment_id, caller.id, is_admin=caller.is_admin)
    except BookingError as exc:
        raise to_http_exception(exc) from exc

    return AppointmentActionResponse(
        success=True,
        message='Appointment completed.',
        appointment=AppointmentResponse.model_validate(appointment),
    )
