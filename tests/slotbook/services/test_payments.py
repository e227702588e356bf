import hashlib
import hmac
import json
from decimal import Decimal

import httpx
import pytest

from slotbook.core import config
from slotbook.models.appointment import Appointment
from slotbook.services import payments
from slotbook.services.cancellation import cancel_appointment
from slotbook.services.errors import (
    AlreadyPaid,
    AppointmentCancelled,
    AppointmentNotFound,
    Forbidden,
    InvalidRequest,
    UpstreamFailure,
)
from slotbook.services.payment_authority import PaymentAuthority, reconciliation_key
from slotbook.services.reservation import book_slot

WEBHOOK_SECRET = 'whsec-test'


@pytest.fixture
def booked(db, make_provider, make_patient):
    provider = make_provider(fee=300)
    patient = make_patient()
    return book_slot(db, patient.id, provider.id, '2025-12-01', '10:30am')


def _reload(db, appointment_id: str) -> Appointment:
    db.expire_all()
    return db.query(Appointment).filter(Appointment.id == appointment_id).one()


@pytest.mark.parametrize(
    ('amount', 'minor_units'),
    [(300, 30000), (Decimal('499.99'), 49999), ('0.1', 10), (Decimal('250.005'), 25001)],
)
def test_to_minor_units_is_exact(amount, minor_units: int) -> None:
    assert payments.to_minor_units(amount) == minor_units


def test_create_payment_intent_sends_minor_units_and_reconciliation_key(db, booked, payment_authority) -> None:
    order = payments.create_payment_intent(db, payment_authority, booked.id, actor_id=booked.patient_id)

    assert order['amount'] == 30000
    assert order['currency'] == config.CURRENCY
    assert reconciliation_key(order) == booked.id
    assert _reload(db, booked.id).payment_reference == order['id']
    assert _reload(db, booked.id).paid is False


def test_create_payment_intent_rejects_missing_appointment(db, payment_authority) -> None:
    with pytest.raises(AppointmentNotFound):
        payments.create_payment_intent(db, payment_authority, 'missing')


def test_create_payment_intent_rejects_cancelled_appointment(db, booked, payment_authority) -> None:
    cancel_appointment(db, booked.id, booked.patient_id)

    with pytest.raises(AppointmentCancelled):
        payments.create_payment_intent(db, payment_authority, booked.id)

    assert payment_authority.orders == {}


def test_create_payment_intent_rejects_other_patients(db, booked, payment_authority) -> None:
    with pytest.raises(Forbidden):
        payments.create_payment_intent(db, payment_authority, booked.id, actor_id='someone-else')


def test_create_payment_intent_rejects_paid_appointment(db, booked, payment_authority) -> None:
    order = payments.create_payment_intent(db, payment_authority, booked.id)
    payment_authority.pay(order['id'])
    payments.confirm_payment(db, payment_authority, order['id'])

    with pytest.raises(AlreadyPaid):
        payments.create_payment_intent(db, payment_authority, booked.id)


def test_create_payment_intent_reuses_unpaid_order(db, booked, payment_authority) -> None:
    first = payments.create_payment_intent(db, payment_authority, booked.id)
    second = payments.create_payment_intent(db, payment_authority, booked.id)

    assert second['id'] == first['id']
    assert list(payment_authority.orders) == [first['id']]
    assert _reload(db, booked.id).payment_reference == first['id']


def test_create_payment_intent_applies_paid_but_unconfirmed_order(db, booked, payment_authority) -> None:
    order = payments.create_payment_intent(db, payment_authority, booked.id)
    payment_authority.pay(order['id'])

    with pytest.raises(AlreadyPaid):
        payments.create_payment_intent(db, payment_authority, booked.id)

    assert len(payment_authority.orders) == 1
    assert _reload(db, booked.id).paid is True


def test_second_paid_order_is_logged_for_refund(db, booked, payment_authority, caplog) -> None:
    order = payments.create_payment_intent(db, payment_authority, booked.id)
    stray = payment_authority.create_order(30000, config.CURRENCY, booked.id)
    payment_authority.pay(order['id'])
    payment_authority.pay(stray['id'])

    assert payments.confirm_payment(db, payment_authority, order['id']) is True
    with caplog.at_level('WARNING', logger='slotbook.services.payments'):
        assert payments.confirm_payment(db, payment_authority, stray['id']) is True

    assert _reload(db, booked.id).payment_reference == order['id']
    assert any(stray['id'] in record.getMessage() and 'refund' in record.getMessage() for record in caplog.records)


def test_first_paid_order_is_recorded_as_the_reference(db, booked, payment_authority, caplog) -> None:
    order = payments.create_payment_intent(db, payment_authority, booked.id)
    stray = payment_authority.create_order(30000, config.CURRENCY, booked.id)
    payment_authority.pay(stray['id'])
    payment_authority.pay(order['id'])

    assert payments.confirm_payment(db, payment_authority, stray['id']) is True
    assert _reload(db, booked.id).payment_reference == stray['id']

    with caplog.at_level('WARNING', logger='slotbook.services.payments'):
        assert payments.confirm_payment(db, payment_authority, order['id']) is True
    assert any(order['id'] in record.getMessage() and 'refund' in record.getMessage() for record in caplog.records)


def test_confirm_unpaid_order_does_not_mark_paid(db, booked, payment_authority) -> None:
    order = payments.create_payment_intent(db, payment_authority, booked.id)

    assert payments.confirm_payment(db, payment_authority, order['id']) is False
    assert _reload(db, booked.id).paid is False


def test_confirm_paid_order_is_idempotent(db, booked, payment_authority) -> None:
    order = payments.create_payment_intent(db, payment_authority, booked.id)
    payment_authority.pay(order['id'])

    assert payments.confirm_payment(db, payment_authority, order['id']) is True
    first_updated_at = _reload(db, booked.id).updated_at
    assert payments.confirm_payment(db, payment_authority, order['id']) is True

    appointment = _reload(db, booked.id)
    assert appointment.paid is True
    assert appointment.updated_at == first_updated_at


def test_confirm_never_pays_a_cancelled_appointment(db, booked, payment_authority) -> None:
    order = payments.create_payment_intent(db, payment_authority, booked.id)
    cancel_appointment(db, booked.id, booked.patient_id)
    payment_authority.pay(order['id'])

    assert payments.confirm_payment(db, payment_authority, order['id']) is False
    assert _reload(db, booked.id).paid is False


def test_confirm_unknown_reference_reports_not_paid(db, payment_authority) -> None:
    assert payments.confirm_payment(db, payment_authority, 'order_missing') is False


def test_confirm_requires_reference(db, payment_authority) -> None:
    with pytest.raises(InvalidRequest):
        payments.confirm_payment(db, payment_authority, '  ')


def test_confirm_rejects_amount_mismatch(db, booked, payment_authority) -> None:
    order = payments.create_payment_intent(db, payment_authority, booked.id)
    payment_authority.pay(order['id'])
    payment_authority.orders[order['id']]['amount_paid'] = 300

    assert payments.confirm_payment(db, payment_authority, order['id']) is False
    assert _reload(db, booked.id).paid is False


def _webhook_body(order: dict) -> bytes:
    return json.dumps({
        'event': 'order.paid',
        'payload': {'order': {'entity': order}},
    }).encode('utf-8')


def _sign(body: bytes) -> str:
    return hmac.new(WEBHOOK_SECRET.encode('utf-8'), body, hashlib.sha256).hexdigest()


def test_webhook_marks_appointment_paid(db, booked, payment_authority) -> None:
    order = payments.create_payment_intent(db, payment_authority, booked.id)
    payment_authority.pay(order['id'])
    body = _webhook_body(payment_authority.orders[order['id']])

    assert payments.handle_webhook(db, body, _sign(body), secret=WEBHOOK_SECRET) is True
    assert payments.handle_webhook(db, body, _sign(body), secret=WEBHOOK_SECRET) is True
    assert _reload(db, booked.id).paid is True


def test_webhook_rejects_bad_signature(db, booked, payment_authority) -> None:
    order = payments.create_payment_intent(db, payment_authority, booked.id)
    payment_authority.pay(order['id'])
    body = _webhook_body(payment_authority.orders[order['id']])

    with pytest.raises(Forbidden):
        payments.handle_webhook(db, body, 'not-a-signature', secret=WEBHOOK_SECRET)

    assert _reload(db, booked.id).paid is False


def test_webhook_ignores_other_events(db) -> None:
    body = json.dumps({'event': 'payment.failed', 'payload': {}}).encode('utf-8')

    assert payments.handle_webhook(db, body, _sign(body), secret=WEBHOOK_SECRET) is False


@pytest.mark.parametrize('payload', [[], 'order.paid', 42])
def test_webhook_rejects_non_object_body(db, payload) -> None:
    body = json.dumps(payload).encode('utf-8')

    with pytest.raises(InvalidRequest):
        payments.handle_webhook(db, body, _sign(body), secret=WEBHOOK_SECRET)


def test_webhook_ignores_malformed_payload(db) -> None:
    body = json.dumps({'event': 'order.paid', 'payload': ['not', 'an', 'object']}).encode('utf-8')

    assert payments.handle_webhook(db, body, _sign(body), secret=WEBHOOK_SECRET) is False


def test_payment_authority_posts_order_with_basic_auth() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen['path'] = request.url.path
        seen['auth'] = request.headers['authorization']
        seen['body'] = json.loads(request.content)
        return httpx.Response(200, json={'id': 'order_1', 'status': 'created', **seen['body']})

    authority = PaymentAuthority(
        'key', 'secret', api_url='https://api.razorpay.test/v1', transport=httpx.MockTransport(handler),
    )
    order = authority.create_order(30000, 'INR', 'appointment-1')
    authority.close()

    assert order['id'] == 'order_1'
    assert seen['path'] == '/v1/orders'
    assert seen['auth'].startswith('Basic ')
    assert seen['body'] == {
        'amount': 30000,
        'currency': 'INR',
        'receipt': 'appointment-1',
        'notes': {'appointment_id': 'appointment-1'},
    }


def test_payment_authority_fetch_returns_none_for_unknown_order() -> None:
    authority = PaymentAuthority(
        'key', 'secret', api_url='https://api.razorpay.test/v1',
        transport=httpx.MockTransport(lambda request: httpx.Response(400, json={'error': {}})),
    )

    assert authority.fetch_order('order_missing') is None


def test_payment_authority_wraps_server_errors() -> None:
    authority = PaymentAuthority(
        'key', 'secret', api_url='https://api.razorpay.test/v1',
        transport=httpx.MockTransport(lambda request: httpx.Response(502, text='bad gateway')),
    )

    with pytest.raises(UpstreamFailure):
        authority.fetch_order('order_1')
    with pytest.raises(UpstreamFailure):
        authority.create_order(100, 'INR', 'appointment-1')
