# tests/unit/test_capacity_guard.py

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from src.domain.capacity import BookingCapacityGuard, EventSnapshot
from src.domain.exceptions import (
    BusinessLogicError,
    InsufficientCapacityError,
    NotFoundError,
)
from src.domain.state_machine import EventStatus

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def guard():
    return BookingCapacityGuard()


@pytest.fixture
def event():
    return EventSnapshot(
        id="evt-1",
        title="Gala Dinner",
        capacity=10,
        price=5000,
        currency="NGN",
        start_date=NOW + timedelta(days=3),
        is_public=True,
        status=EventStatus.ACTIVE,
        allow_partial_payment=True,
        booked_guests=8,
    )


def test_remaining_seats_excludes_booked_guests(guard, event):
    assert guard.remaining_seats(event) == 2


def test_request_over_remaining_rejected(guard, event):
    with pytest.raises(InsufficientCapacityError) as exc_info:
        guard.reserve(event, 3, now=NOW)

    assert exc_info.value.error_code == "INSUFFICIENT_CAPACITY"
    assert exc_info.value.context == {"available": 2, "requested": 3}
    assert "Only 2 seats remaining" in exc_info.value.message


def test_request_equal_to_remaining_accepted(guard, event):
    assert guard.reserve(event, 2, now=NOW) == 0


def test_zero_guests_rejected(guard, event):
    with pytest.raises(BusinessLogicError) as exc_info:
        guard.reserve(event, 0, now=NOW)

    assert exc_info.value.error_code == "INVALID_GUEST_COUNT"


@pytest.mark.parametrize(
    "changes",
    [
        {"is_public": False},
        {"status": EventStatus.DRAFT},
        {"status": EventStatus.CANCELLED},
    ],
)
def test_hidden_events_are_not_found(guard, event, changes):
    with pytest.raises(NotFoundError):
        guard.ensure_bookable(replace(event, **changes), now=NOW)


def test_started_event_rejected(guard, event):
    started = replace(event, start_date=NOW - timedelta(minutes=1))

    with pytest.raises(BusinessLogicError) as exc_info:
        guard.reserve(started, 1, now=NOW)

    assert exc_info.value.error_code == "EVENT_ALREADY_STARTED"


def test_naive_start_date_treated_as_utc(guard, event):
    naive = replace(event, start_date=(NOW + timedelta(hours=1)).replace(tzinfo=None))

    guard.ensure_bookable(naive, now=NOW)


def test_fully_booked_event(guard, event):
    full = replace(event, booked_guests=10)

    with pytest.raises(BusinessLogicError) as exc_info:
        guard.ensure_has_seats(full)

    assert exc_info.value.error_code == "EVENT_FULLY_BOOKED"


def test_has_seats_returns_available(guard, event):
    assert guard.ensure_has_seats(event) == 2
