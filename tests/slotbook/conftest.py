import os
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from slotbook.database import Base  # noqa: E402
from slotbook.models import appointment, slot_hold, slot_inconsistency  # noqa: E402,F401
from slotbook.models.patient import Patient  # noqa: E402
from slotbook.models.provider import Provider  # noqa: E402


class FakePaymentAuthority:
    """In-memory stand-in for the Razorpay orders API."""

    def __init__(self):
        self.orders: dict[str, dict] = {}
        self.fetches: list[str] = []

    def create_order(self, amount: int, currency: str, reconciliation_key: str) -> dict:
        order_id = f'order_{len(self.orders) + 1}'
        self.orders[order_id] = {
            'id': order_id,
            'entity': 'order',
            'amount': amount,
            'amount_paid': 0,
            'currency': currency,
            'receipt': reconciliation_key,
            'notes': {'appointment_id': reconciliation_key},
            'status': 'created',
        }
        return dict(self.orders[order_id])

    def fetch_order(self, reference: str) -> dict | None:
        self.fetches.append(reference)
        order = self.orders.get(reference)
        return dict(order) if order else None

    def pay(self, order_id: str) -> None:
        order = self.orders[order_id]
        order['status'] = 'paid'
        order['amount_paid'] = order['amount']


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'slotbook.db'}",
        connect_args={'check_same_thread': False, 'timeout': 30},
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    try:
        yield factory
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_provider(db):
    def _make_provider(fee=300, name='Dr. Richard James', **fields) -> Provider:
        provider = Provider(name=name, fee=Decimal(str(fee)), **fields)
        db.add(provider)
        db.commit()
        db.refresh(provider)
        return provider

    return _make_provider


@pytest.fixture
def make_patient(db):
    def _make_patient(name='Asha Rao', **fields) -> Patient:
        patient = Patient(name=name, **fields)
        db.add(patient)
        db.commit()
        db.refresh(patient)
        return patient

    return _make_patient


@pytest.fixture
def payment_authority() -> FakePaymentAuthority:
    return FakePaymentAuthority()
