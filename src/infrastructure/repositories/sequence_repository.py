# src/infrastructure/repositories/sequence_repository.py

from sqlalchemy.orm import Session
from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite

from src.infrastructure.db.models import ReferenceSequence

BOOKING_SEQUENCE = "booking"
PAYMENT_SEQUENCE = "payment"

_PREFIXES = {
    BOOKING_SEQUENCE: "BK",
    PAYMENT_SEQUENCE: "PAY",
}

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class SequenceRepository:
    """Gap-free human-readable reference codes, allocated inside the caller's transaction."""

    def __init__(self, db: Session):
        self.db = db

    def ensure_sequence(self, name: str) -> None:
        """
        INSERT ... ON CONFLICT DO NOTHING
        Concurrent first allocations both land on the same row.
        """

        dialect = self.db.get_bind().dialect.name
        insert = _UPSERT_DIALECTS.get(dialect)
        if insert is None:
            raise RuntimeError(f"Reference sequences are not supported on {dialect}")

        stmt = (
            insert(ReferenceSequence)
            .values(name=name, last_value=0)
            .on_conflict_do_nothing(index_elements=[ReferenceSequence.name])
        )
        self.db.execute(stmt)

    def ensure_sequences(self) -> None:
        for name in _PREFIXES:
            self.ensure_sequence(name)

    def next_value(self, name: str) -> int:
        sequence = self._lock(name)
        if sequence is None:
            self.ensure_sequence(name)
            sequence = self._lock(name)

        sequence.last_value += 1
        self.db.flush()
        return sequence.last_value

    def next_reference(self, name: str) -> str:
        return f"{_PREFIXES[name]}-{self.next_value(name):06d}"

    def _lock(self, name: str) -> ReferenceSequence | None:
        stmt = (
            select(ReferenceSequence)
            .where(ReferenceSequence.name == name)
            .with_for_update()
        )
        return self.db.execute(stmt).scalar_one_or_none()
