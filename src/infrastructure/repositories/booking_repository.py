# src/infrastructure/repositories/booking_repository.py

from datetime import datetime

from sqlalchemy.orm import Session
from sqlalchemy import or_, select, update

from src.infrastructure.db.models import Booking, Payment
from src.domain.ledger import LedgerState
from src.domain.state_machine import (
    BookingStatus,
    PaymentMethod,
    PaymentRecordStatus,
    PaymentStatus,
)


class BookingRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(
        self,
        booking_id: str,
    ) -> Booking | None:

        stmt = select(Booking).where(Booking.id == booking_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def lock_booking(self, booking_id: str) -> Booking | None:
        """
        SELECT ... FOR UPDATE
        Serializes payments and cancellations on one booking.
        """

        stmt = (
            select(Booking)
            .where(Booking.id == booking_id)
            .with_for_update()
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def list_bookings(
        self,
        status: BookingStatus | None = None,
        payment_status: PaymentStatus | None = None,
        search: str | None = None,
        event_id: str | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        limit: int = 50,
    ) -> list[Booking]:

        stmt = select(Booking).order_by(Booking.created_at.desc(), Booking.reference.desc())
        if status is not None:
            stmt = stmt.where(Booking.status == status)
        if payment_status is not None:
            stmt = stmt.where(Booking.payment_status == payment_status)
        if search:
            pattern = _like(search)
            stmt = stmt.where(
                or_(
                    Booking.reference.ilike(pattern),
                    Booking.customer_name.ilike(pattern),
                    Booking.customer_email.ilike(pattern),
                )
            )
        if event_id is not None:
            stmt = stmt.where(Booking.event_id == event_id)
        if date_from is not None:
            stmt = stmt.where(Booking.booking_date >= date_from)
        if date_to is not None:
            stmt = stmt.where(Booking.booking_date <= date_to)
        return list(self.db.execute(stmt.limit(limit)).scalars().all())

    def create_booking(
        self,
        reference: str,
        event_id: str,
        customer_name: str,
        customer_email: str,
        customer_phone: str,
        number_of_guests: int,
        currency: str,
        ledger: LedgerState,
        special_requirements: str | None = None,
    ) -> Booking:

        booking = Booking(
            reference=reference,
            event_id=event_id,
            customer_name=customer_name,
            customer_email=customer_email,
            customer_phone=customer_phone,
            special_requirements=special_requirements,
            number_of_guests=number_of_guests,
            currency=currency,
            total_amount=ledger.total_amount,
            amount_paid=ledger.amount_paid,
            remaining_amount=ledger.remaining_amount,
            payment_status=ledger.payment_status,
            status=ledger.status,
        )

        self.db.add(booking)
        self.db.flush()
        return booking

    def save_ledger(
        self,
        booking: Booking,
        ledger: LedgerState,
        expected_remaining: int,
    ) -> bool:
        """
        Compare-and-swap on remaining_amount.
        Returns False when another writer changed the booking first.
        """

        stmt = (
            update(Booking)
            .where(Booking.id == booking.id)
            .where(Booking.remaining_amount == expected_remaining)
            .values(
                amount_paid=ledger.amount_paid,
                remaining_amount=ledger.remaining_amount,
                payment_status=ledger.payment_status,
                status=ledger.status,
            )
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        if result.rowcount != 1:
            return False

        self.db.refresh(booking)
        return True

    def mark_cancelled(
        self,
        booking: Booking,
        reason: str,
        cancelled_at: datetime,
    ) -> None:

        booking.status = BookingStatus.CANCELLED
        booking.cancellation_reason = reason
        booking.cancelled_at = cancelled_at
        self.db.flush()

    def mark_completed(self, booking: Booking, completed_at: datetime) -> None:
        booking.status = BookingStatus.COMPLETED
        booking.completed_at = completed_at
        self.db.flush()

    # -----------------------------
    # Payments
    # -----------------------------
    def add_payment(
        self,
        booking: Booking,
        reference: str,
        amount: int,
        method: PaymentMethod,
        status: PaymentRecordStatus,
        notes: str | None = None,
    ) -> Payment:

        payment = Payment(
            reference=reference,
            booking_id=booking.id,
            amount=amount,
            currency=booking.currency,
            method=method,
            status=status,
            notes=notes,
        )
        self.db.add(payment)
        self.db.flush()
        return payment

    def set_gateway_reference(self, payment: Payment, gateway_reference: str | None) -> None:
        payment.gateway_reference = gateway_reference
        self.db.flush()

    def list_payments(self, booking_id: str) -> list[Payment]:
        stmt = (
            select(Payment)
            .where(Payment.booking_id == booking_id)
            .order_by(Payment.created_at, Payment.reference)
        )
        return list(self.db.execute(stmt).scalars().all())

    def search_payments(
        self,
        search: str | None = None,
        status: PaymentRecordStatus | None = None,
        method: PaymentMethod | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        limit: int = 50,
    ) -> list[tuple[Payment, Booking]]:

        stmt = (
            select(Payment, Booking)
            .join(Booking, Payment.booking_id == Booking.id)
            .order_by(Payment.created_at.desc(), Payment.reference.desc())
        )
        if search:
            pattern = _like(search)
            stmt = stmt.where(
                or_(
                    Payment.reference.ilike(pattern),
                    Payment.gateway_reference.ilike(pattern),
                    Booking.reference.ilike(pattern),
                    Booking.customer_name.ilike(pattern),
                )
            )
        if status is not None:
            stmt = stmt.where(Payment.status == status)
        if method is not None:
            stmt = stmt.where(Payment.method == method)
        if date_from is not None:
            stmt = stmt.where(Payment.created_at >= date_from)
        if date_to is not None:
            stmt = stmt.where(Payment.created_at <= date_to)
        return [tuple(row) for row in self.db.execute(stmt.limit(limit)).all()]


def _like(search: str) -> str:
    return f"%{search.strip()}%"
