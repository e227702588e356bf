from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from slotbook.models.appointment import Appointment
from slotbook.services.cancellation import cancel_appointment
from slotbook.services.errors import ProviderNotFound
from slotbook.services.fulfillment import complete_appointment
from slotbook.services.reporting import dashboard_summary, provider_summary
from slotbook.services.reservation import book_slot

TIMES = ['9:00am', '9:30am', '10:00am', '10:30am', '11:00am', '11:30am', '12:00pm']


def test_dashboard_counts_everything(db, make_provider, make_patient) -> None:
    provider = make_provider()
    make_provider(name='Dr. Idle')
    patient = make_patient()
    make_patient(name='No bookings')
    book_slot(db, patient.id, provider.id, '2025-12-01', '9:00am')
    cancelled = book_slot(db, patient.id, provider.id, '2025-12-01', '9:30am')
    cancel_appointment(db, cancelled.id, patient.id)

    summary = dashboard_summary(db)

    assert summary['provider_count'] == 2
    assert summary['patient_count'] == 2
    assert summary['appointment_count'] == 2
    assert len(summary['latest']) == 2


def test_dashboard_latest_sorts_by_creation_time_not_storage_order(db, make_provider, make_patient) -> None:
    provider = make_provider()
    patient = make_patient()
    appointments = [book_slot(db, patient.id, provider.id, '2025-12-01', slot_time) for slot_time in TIMES]

    # Rewrite timestamps so insertion order and creation order disagree.
    base = datetime(2025, 11, 1, 8, 0)
    offsets = [3, 6, 0, 5, 1, 4, 2]
    for appointment, offset in zip(appointments, offsets):
        db.query(Appointment).filter(Appointment.id == appointment.id).update(
            {Appointment.created_at: base + timedelta(minutes=offset)},
            synchronize_session=False,
        )
    db.commit()

    summary = dashboard_summary(db)

    assert [appointment.slot_time for appointment in summary['latest']] == [
        '9:30am', '10:30am', '11:30am', '9:00am', '12:00pm',
    ]


def test_dashboard_limit_is_configurable(db, make_provider, make_patient) -> None:
    provider = make_provider()
    patient = make_patient()
    for slot_time in TIMES[:3]:
        book_slot(db, patient.id, provider.id, '2025-12-01', slot_time)

    assert len(dashboard_summary(db, limit=2)['latest']) == 2
    assert len(dashboard_summary(db, limit=10)['latest']) == 3


def test_dashboard_on_empty_store(db) -> None:
    assert dashboard_summary(db) == {
        'provider_count': 0,
        'patient_count': 0,
        'appointment_count': 0,
        'latest': [],
    }


def test_provider_summary_counts_paid_or_completed_earnings(db, make_provider, make_patient) -> None:
    provider = make_provider(fee=300)
    first = make_patient()
    second = make_patient(name='Second')

    completed = book_slot(db, first.id, provider.id, '2025-12-01', '9:00am')
    complete_appointment(db, completed.id, provider.id)
    paid = book_slot(db, second.id, provider.id, '2025-12-01', '9:30am')
    db.query(Appointment).filter(Appointment.id == paid.id).update({Appointment.paid: True})
    db.commit()
    book_slot(db, second.id, provider.id, '2025-12-01', '10:00am')
    cancelled = book_slot(db, first.id, provider.id, '2025-12-01', '10:30am')
    cancel_appointment(db, cancelled.id, first.id)

    summary = provider_summary(db, provider.id)

    assert summary['earnings'] == Decimal('600')
    assert summary['appointment_count'] == 4
    assert summary['patient_count'] == 2
    assert len(summary['latest']) == 4


def test_provider_summary_requires_known_provider(db) -> None:
    with pytest.raises(ProviderNotFound):
        provider_summary(db, 'missing')
