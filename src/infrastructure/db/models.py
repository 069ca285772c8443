# src/infrastructure/db/models.py

from sqlalchemy import (
    String,
    BigInteger,
    Integer,
    Boolean,
    DateTime,
    Enum,
    Text,
    UniqueConstraint,
    CheckConstraint,
    ForeignKey,
    Index,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime
from uuid import uuid4

from src.config import settings
from src.infrastructure.db.session import Base
from src.domain.state_machine import (
    BookingStatus,
    EventStatus,
    PaymentMethod,
    PaymentRecordStatus,
    PaymentStatus,
)


def _enum_column(enum_cls, name: str) -> Enum:
    # Persist the lowercase values, not the member names.
    return Enum(
        enum_cls,
        name=name,
        values_callable=lambda members: [member.value for member in members],
    )


class Event(Base):
    __tablename__ = "events"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    venue: Mapped[str | None] = mapped_column(String(255), nullable=True)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    currency: Mapped[str] = mapped_column(String(8), nullable=False, default=settings.DEFAULT_CURRENCY)
    status: Mapped[EventStatus] = mapped_column(
        _enum_column(EventStatus, "event_status"),
        nullable=False,
        default=EventStatus.DRAFT,
    )
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    allow_partial_payment: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("capacity >= 0", name="ck_event_capacity_nonnegative"),
        CheckConstraint("price >= 0", name="ck_event_price_nonnegative"),
    )


class Booking(Base):
    """
    Booking table reflecting domain state.
    The payment ledger controls amounts and transitions;
    the table stores the current state and rejects unbalanced rows.
    """

    __tablename__ = "bookings"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    reference: Mapped[str] = mapped_column(String(32), nullable=False)
    event_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("events.id"),
        nullable=False,
    )
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_email: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_phone: Mapped[str] = mapped_column(String(32), nullable=False)
    special_requirements: Mapped[str | None] = mapped_column(Text, nullable=True)
    number_of_guests: Mapped[int] = mapped_column(Integer, nullable=False)
    total_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    amount_paid: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    remaining_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency: Mapped[str] = mapped_column(String(8), nullable=False, default=settings.DEFAULT_CURRENCY)
    payment_status: Mapped[PaymentStatus] = mapped_column(
        _enum_column(PaymentStatus, "booking_payment_status"),
        nullable=False,
        default=PaymentStatus.UNPAID,
    )
    status: Mapped[BookingStatus] = mapped_column(
        _enum_column(BookingStatus, "booking_status"),
        nullable=False,
        default=BookingStatus.PENDING,
    )
    booking_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("reference", name="uq_booking_reference"),
        CheckConstraint("number_of_guests > 0", name="ck_booking_guests_positive"),
        CheckConstraint("total_amount >= 0", name="ck_booking_total_nonnegative"),
        CheckConstraint("amount_paid >= 0", name="ck_booking_paid_nonnegative"),
        CheckConstraint("remaining_amount >= 0", name="ck_booking_remaining_nonnegative"),
        CheckConstraint(
            "amount_paid + remaining_amount = total_amount",
            name="ck_booking_amounts_balanced",
        ),
        Index("ix_bookings_event_status", "event_id", "status"),
    )


class Payment(Base):
    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    reference: Mapped[str] = mapped_column(String(32), nullable=False)
    booking_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("bookings.id"),
        nullable=False,
    )
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency: Mapped[str] = mapped_column(String(8), nullable=False, default=settings.DEFAULT_CURRENCY)
    method: Mapped[PaymentMethod] = mapped_column(
        _enum_column(PaymentMethod, "payment_method"),
        nullable=False,
    )
    status: Mapped[PaymentRecordStatus] = mapped_column(
        _enum_column(PaymentRecordStatus, "payment_record_status"),
        nullable=False,
        default=PaymentRecordStatus.PENDING,
    )
    gateway_reference: Mapped[str | None] = mapped_column(String(64), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    paid_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("reference", name="uq_payment_reference"),
        CheckConstraint("amount > 0", name="ck_payment_amount_positive"),
        Index("ix_payments_booking_id", "booking_id"),
    )


class ReferenceSequence(Base):
    __tablename__ = "reference_sequences"

    name: Mapped[str] = mapped_column(String(32), primary_key=True)
    last_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class OutboxEvent(Base):
    __tablename__ = "outbox_events"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    aggregate_type: Mapped[str] = mapped_column(String(64), nullable=False)
    aggregate_id: Mapped[str] = mapped_column(String(36), nullable=False)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    dedupe_key: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="PENDING")
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("dedupe_key", name="uq_outbox_dedupe_key"),
    )
