# src/infrastructure/repositories/event_repository.py

from sqlalchemy.orm import Session
from sqlalchemy import func, select

from src.domain.capacity import EventSnapshot
from src.domain.state_machine import BookingStatus
from src.infrastructure.db.models import Booking, Event


class EventRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, event_id: str) -> Event | None:
        stmt = select(Event).where(Event.id == event_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def lock_event(self, event_id: str) -> Event | None:
        """
        SELECT ... FOR UPDATE
        Bookings for one event are created one at a time.
        """

        stmt = (
            select(Event)
            .where(Event.id == event_id)
            .with_for_update()
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def booked_guests(self, event_id: str) -> int:
        stmt = (
            select(func.coalesce(func.sum(Booking.number_of_guests), 0))
            .where(Booking.event_id == event_id)
            .where(Booking.status != BookingStatus.CANCELLED)
        )
        return int(self.db.execute(stmt).scalar_one())

    def snapshot(self, event: Event) -> EventSnapshot:
        return EventSnapshot(
            id=event.id,
            title=event.title,
            capacity=event.capacity,
            price=event.price,
            currency=event.currency,
            start_date=event.start_date,
            is_public=event.is_public,
            status=event.status,
            allow_partial_payment=event.allow_partial_payment,
            booked_guests=self.booked_guests(event.id),
        )
