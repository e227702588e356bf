import logging

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from slotbook.database import SessionLocal, ensure_appointment_schema
from slotbook.services.errors import (
    AlreadyPaid,
    AppointmentCancelled,
    AppointmentCompleted,
    BookingError,
    Forbidden,
    InvalidRequest,
    NotFound,
    SlotUnavailable,
    UpstreamFailure,
)

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = [
    (InvalidRequest, status.HTTP_400_BAD_REQUEST),
    (Forbidden, status.HTTP_403_FORBIDDEN),
    (NotFound, status.HTTP_404_NOT_FOUND),
    (SlotUnavailable, status.HTTP_409_CONFLICT),
    (AppointmentCancelled, status.HTTP_409_CONFLICT),
    (AppointmentCompleted, status.HTTP_409_CONFLICT),
    (AlreadyPaid, status.HTTP_409_CONFLICT),
    (UpstreamFailure, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def to_http_exception(exc: BookingError) -> HTTPException:
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_type, error_status in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            status_code = error_status
            break

    return HTTPException(status_code=status_code, detail={'code': exc.code, 'message': exc.message})


def ensure_database_ready() -> None:
    try:
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        logger.exception('Database schema check failed')
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Database unavailable. Verify DATABASE_URL and database credentials.',
        ) from exc


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def database_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail='Database unavailable. Verify DATABASE_URL and database credentials.',
    )
