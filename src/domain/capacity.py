# src/domain/capacity.py

from dataclasses import dataclass
from datetime import datetime, timezone

from src.domain.exceptions import (
    BusinessLogicError,
    InsufficientCapacityError,
    NotFoundError,
)
from src.domain.state_machine import EventStatus


@dataclass(frozen=True)
class EventSnapshot:
    """
    Read-only view of an event as the booking core sees it.

    `booked_guests` is the number of guests on non-cancelled bookings.
    """

    id: str
    title: str
    capacity: int
    price: int
    currency: str
    start_date: datetime
    is_public: bool
    status: EventStatus
    allow_partial_payment: bool
    booked_guests: int = 0


class BookingCapacityGuard:
    """
    Decides whether an event can take a booking of a given size.
    """

    def remaining_seats(self, event: EventSnapshot) -> int:
        return event.capacity - event.booked_guests

    def ensure_bookable(self, event: EventSnapshot, now: datetime | None = None) -> None:
        """
        Raises NotFoundError for events hidden from the public portal
        and BusinessLogicError for events that already started.
        """
        if not event.is_public or event.status != EventStatus.ACTIVE:
            raise NotFoundError("Event not found")

        now = now or datetime.now(timezone.utc)
        if _as_utc(event.start_date) <= _as_utc(now):
            raise BusinessLogicError(
                "This event has already started and cannot be booked.",
                error_code="EVENT_ALREADY_STARTED",
                context={"event_id": event.id},
            )

    def ensure_has_seats(self, event: EventSnapshot) -> int:
        available = self.remaining_seats(event)
        if available <= 0:
            raise BusinessLogicError(
                "This event is fully booked.",
                error_code="EVENT_FULLY_BOOKED",
                context={"event_id": event.id, "available": available},
            )
        return available

    def reserve(
        self,
        event: EventSnapshot,
        requested_guests: int,
        now: datetime | None = None,
    ) -> int:
        """
        Validates a reservation and returns the seats left after it.
        """
        self.ensure_bookable(event, now)

        if requested_guests < 1:
            raise BusinessLogicError(
                "At least one guest is required.",
                error_code="INVALID_GUEST_COUNT",
                context={"requested": requested_guests},
            )

        available = self.remaining_seats(event)
        if requested_guests > available:
            raise InsufficientCapacityError(
                available=available,
                requested=requested_guests,
            )
        return available - requested_guests


def _as_utc(value: datetime) -> datetime:
    # Some drivers hand back naive datetimes; stored values are UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
