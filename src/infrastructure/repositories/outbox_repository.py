# src/infrastructure/repositories/outbox_repository.py

from datetime import datetime, timezone
import json

from sqlalchemy.orm import Session
from sqlalchemy import select

from src.infrastructure.db.models import OutboxEvent


class OutboxRepository:

    def __init__(self, db: Session):
        self.db = db

    def add_event(
        self,
        aggregate_type: str,
        aggregate_id: str,
        event_type: str,
        payload: dict,
        dedupe_key: str,
    ) -> None:
        existing = self.db.execute(
            select(OutboxEvent).where(OutboxEvent.dedupe_key == dedupe_key)
        ).scalar_one_or_none()
        if existing:
            return

        self.db.add(
            OutboxEvent(
                aggregate_type=aggregate_type,
                aggregate_id=aggregate_id,
                event_type=event_type,
                payload=json.dumps(payload, sort_keys=True, default=str),
                dedupe_key=dedupe_key,
                status="PENDING",
                attempts=0,
            )
        )
        self.db.flush()

    def list_events(self, status: str = "PENDING", limit: int = 50) -> list[OutboxEvent]:
        safe_limit = max(1, min(limit, 200))
        stmt = (
            select(OutboxEvent)
            .where(OutboxEvent.status == status)
            .order_by(OutboxEvent.created_at)
            .limit(safe_limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def get_by_id(self, event_id: str) -> OutboxEvent | None:
        stmt = select(OutboxEvent).where(OutboxEvent.id == event_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def mark_published(self, item: OutboxEvent) -> OutboxEvent:
        item.status = "PUBLISHED"
        item.published_at = datetime.now(timezone.utc)
        item.attempts += 1
        self.db.flush()
        return item
