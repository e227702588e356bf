from datetime import date

import pytest

from slotbook.services import slot_ledger
from slotbook.services.errors import InvalidRequest


@pytest.mark.parametrize(
    ('label', 'expected'),
    [
        ('10:30am', '10:30am'),
        ('10:30 am', '10:30am'),
        (' 10:30 AM ', '10:30am'),
        ('9:05 pm', '9:05pm'),
        ('09:00am', '9:00am'),
    ],
)
def test_normalize_slot_time_returns_canonical_label(label: str, expected: str) -> None:
    assert slot_ledger.normalize_slot_time(label) == expected


@pytest.mark.parametrize('label', ['', '   ', None, '13:00 pm', '0:30 am', '10:75 am', '10.30 am', '10:30'])
def test_normalize_slot_time_rejects_malformed_labels(label) -> None:
    with pytest.raises(InvalidRequest):
        slot_ledger.normalize_slot_time(label)


def test_normalize_slot_date_accepts_iso_strings_and_dates() -> None:
    assert slot_ledger.normalize_slot_date('2025-12-01') == date(2025, 12, 1)
    assert slot_ledger.normalize_slot_date(date(2025, 12, 1)) == date(2025, 12, 1)


@pytest.mark.parametrize('value', ['', '01-12-2025', '2025-02-30', None])
def test_normalize_slot_date_rejects_invalid_dates(value) -> None:
    with pytest.raises(InvalidRequest):
        slot_ledger.normalize_slot_date(value)


def test_reserve_fails_when_slot_already_held(db, make_provider) -> None:
    provider = make_provider()
    slot_date = date(2025, 12, 1)

    assert slot_ledger.reserve(db, provider.id, slot_date, '10:30am') is True
    assert slot_ledger.reserve(db, provider.id, slot_date, '10:30am') is False
    assert slot_ledger.is_held(db, provider.id, slot_date, '10:30am') is True


def test_same_time_on_another_date_or_provider_is_independent(db, make_provider) -> None:
    first = make_provider()
    second = make_provider(name='Dr. Emily Larson')

    assert slot_ledger.reserve(db, first.id, date(2025, 12, 1), '10:30am') is True
    assert slot_ledger.reserve(db, first.id, date(2025, 12, 2), '10:30am') is True
    assert slot_ledger.reserve(db, second.id, date(2025, 12, 1), '10:30am') is True


def test_release_is_idempotent(db, make_provider) -> None:
    provider = make_provider()
    slot_date = date(2025, 12, 1)
    slot_ledger.reserve(db, provider.id, slot_date, '11:00am')

    assert slot_ledger.release(db, provider.id, slot_date, '11:00am') is True
    assert slot_ledger.release(db, provider.id, slot_date, '11:00am') is False
    assert slot_ledger.is_held(db, provider.id, slot_date, '11:00am') is False
    assert slot_ledger.reserve(db, provider.id, slot_date, '11:00am') is True


def test_slot_map_groups_held_times_by_date(db, make_provider) -> None:
    provider = make_provider()
    slot_ledger.reserve(db, provider.id, date(2025, 12, 1), '10:30am')
    slot_ledger.reserve(db, provider.id, date(2025, 12, 1), '11:00am')
    slot_ledger.reserve(db, provider.id, date(2025, 12, 2), '4:00pm')
    slot_ledger.reserve(db, provider.id, date(2025, 12, 2), '9:30am')

    assert slot_ledger.slot_map(db, provider.id) == {
        date(2025, 12, 1): ['10:30am', '11:00am'],
        date(2025, 12, 2): ['9:30am', '4:00pm'],
    }
