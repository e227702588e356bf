from slotbook.models.appointment import Appointment
from slotbook.services.errors import Forbidden


def ensure_party(appointment: Appointment, actor_id: str | None, is_admin: bool, allow_patient: bool = True) -> None:
    if is_admin:
        return
    if actor_id and actor_id == appointment.provider_id:
        return
    if allow_patient and actor_id and actor_id == appointment.patient_id:
        return
    raise Forbidden()
