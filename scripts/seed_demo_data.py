from datetime import datetime, timedelta, timezone

from sqlalchemy import select

from src.config import settings
from src.domain.state_machine import EventStatus
from src.infrastructure.db.models import Base, Event
from src.infrastructure.db.session import engine, get_db_session
from src.infrastructure.repositories.sequence_repository import SequenceRepository


def _dt(days_from_now: int, hour: int, minute: int) -> datetime:
    wat = timezone(timedelta(hours=1))
    target = datetime.now(wat) + timedelta(days=days_from_now)
    return target.replace(hour=hour, minute=minute, second=0, microsecond=0)


EVENT_DEFS = [
    {
        "title": "Estate Residents' Gala Dinner",
        "description": "Annual dinner for residents and guests.",
        "venue": "Main Clubhouse Hall",
        "start_date": _dt(days_from_now=14, hour=19, minute=0),
        "end_date": _dt(days_from_now=14, hour=23, minute=0),
        "capacity": 150,
        "price": 2500000,
        "allow_partial_payment": True,
    },
    {
        "title": "Poolside Family Day",
        "description": "Games, food and music by the pool.",
        "venue": "Estate Pool Deck",
        "start_date": _dt(days_from_now=7, hour=11, minute=0),
        "end_date": _dt(days_from_now=7, hour=17, minute=0),
        "capacity": 80,
        "price": 500000,
        "allow_partial_payment": False,
    },
]


def seed_events(db) -> None:
    for item in EVENT_DEFS:
        event = db.execute(
            select(Event).where(Event.title == item["title"])
        ).scalar_one_or_none()
        if event is None:
            event = Event(title=item["title"])
            db.add(event)

        event.description = item["description"]
        event.venue = item["venue"]
        event.start_date = item["start_date"]
        event.end_date = item["end_date"]
        event.capacity = item["capacity"]
        event.price = item["price"]
        event.currency = settings.DEFAULT_CURRENCY
        event.status = EventStatus.ACTIVE
        event.is_public = True
        event.allow_partial_payment = item["allow_partial_payment"]


def main() -> None:
    Base.metadata.create_all(bind=engine)
    with get_db_session() as db:
        SequenceRepository(db).ensure_sequences()
        seed_events(db)
    print("Seed complete: gala dinner and family day events added.")


if __name__ == "__main__":
    main()
