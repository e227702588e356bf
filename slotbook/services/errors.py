"""Failure types raised by the booking core.

Every error carries a stable ``code`` for clients and a human readable
``message``. Routes translate them to HTTP responses; nothing in the core
knows about HTTP.
"""


class BookingError(Exception):
    """Base class for all booking core failures."""

    code = 'booking_error'
    default_message = 'Booking operation failed.'

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidRequest(BookingError):
    code = 'invalid_request'
    default_message = 'Missing or malformed booking data.'


class NotFound(BookingError):
    code = 'not_found'
    default_message = 'Record not found.'


class ProviderNotFound(NotFound):
    code = 'provider_not_found'
    default_message = 'Provider not found.'


class PatientNotFound(NotFound):
    code = 'patient_not_found'
    default_message = 'Patient not found.'


class AppointmentNotFound(NotFound):
    code = 'appointment_not_found'
    default_message = 'Appointment not found.'


class SlotUnavailable(BookingError):
    """The slot is held by another appointment. Callers should offer another time."""

    code = 'slot_unavailable'
    default_message = 'Slot not available.'


class AppointmentCancelled(BookingError):
    code = 'appointment_cancelled'
    default_message = 'Appointment is cancelled.'


class AppointmentCompleted(BookingError):
    code = 'appointment_completed'
    default_message = 'Appointment is already completed.'


class AlreadyPaid(BookingError):
    code = 'already_paid'
    default_message = 'Appointment is already paid.'


class Forbidden(BookingError):
    code = 'forbidden'
    default_message = 'Not allowed to act on this appointment.'


class UpstreamFailure(BookingError):
    """Storage or the payment authority could not be reached. Safe to retry with backoff."""

    code = 'upstream_failure'
    default_message = 'A dependent service is unavailable. Try again later.'
