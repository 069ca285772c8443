from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
import logging

from sqlalchemy.orm import Session

from src.domain.capacity import BookingCapacityGuard, EventSnapshot
from src.domain.exceptions import (
    BusinessLogicError,
    ConcurrentModificationError,
    InputValidationError,
    NotFoundError,
)
from src.domain.ledger import BookingPaymentLedger, LedgerState
from src.domain.state_machine import (
    BookingStatus,
    PaymentMethod,
    PaymentRecordStatus,
    PaymentStatus,
)
from src.infrastructure.db.models import Booking, Payment
from src.infrastructure.payments.razorpay_gateway import PaymentGateway
from src.infrastructure.repositories.booking_repository import BookingRepository
from src.infrastructure.repositories.event_repository import EventRepository
from src.infrastructure.repositories.outbox_repository import OutboxRepository
from src.infrastructure.repositories.sequence_repository import (
    BOOKING_SEQUENCE,
    PAYMENT_SEQUENCE,
    SequenceRepository,
)

logger = logging.getLogger(__name__)

CUSTOMER_CANCELLATION_REASON = "Cancelled by customer"


@dataclass(frozen=True)
class EventAvailability:
    event: EventSnapshot
    available_seats: int


class BookingService:
    """Application service coordinating booking workflow."""

    def __init__(
        self,
        db: Session,
        gateway: PaymentGateway | None = None,
        capacity_guard: BookingCapacityGuard | None = None,
        ledger: BookingPaymentLedger | None = None,
    ):
        self.db = db
        self.gateway = gateway
        self.capacity_guard = capacity_guard or BookingCapacityGuard()
        self.ledger = ledger or BookingPaymentLedger()
        self.booking_repository = BookingRepository(db)
        self.event_repository = EventRepository(db)
        self.sequence_repository = SequenceRepository(db)
        self.outbox_repository = OutboxRepository(db)

    @contextmanager
    def _unit_of_work(self):
        try:
            yield
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    # -----------------------------
    # Queries
    # -----------------------------
    def get_event_availability(self, event_id: str) -> EventAvailability:
        event = self.event_repository.get_by_id(event_id)
        if not event:
            raise NotFoundError("Event not found")

        snapshot = self.event_repository.snapshot(event)
        self.capacity_guard.ensure_bookable(snapshot)
        available = self.capacity_guard.ensure_has_seats(snapshot)
        return EventAvailability(event=snapshot, available_seats=available)

    def get_booking(self, booking_id: str) -> Booking:
        booking = self.booking_repository.get_by_id(booking_id)
        if not booking:
            raise NotFoundError("Booking not found")
        return booking

    def list_payments(self, booking_id: str) -> list[Payment]:
        return self.booking_repository.list_payments(booking_id)

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
        return self.booking_repository.list_bookings(
            status=status,
            payment_status=payment_status,
            search=search,
            event_id=event_id,
            date_from=date_from,
            date_to=date_to,
            limit=_clamp_limit(limit),
        )

    def search_payments(
        self,
        search: str | None = None,
        status: PaymentRecordStatus | None = None,
        method: PaymentMethod | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        limit: int = 50,
    ) -> list[tuple[Payment, Booking]]:
        return self.booking_repository.search_payments(
            search=search,
            status=status,
            method=method,
            date_from=date_from,
            date_to=date_to,
            limit=_clamp_limit(limit),
        )

    # -----------------------------
    # Commands
    # -----------------------------
    def create_booking(
        self,
        event_id: str,
        customer_name: str,
        customer_email: str,
        customer_phone: str,
        number_of_guests: int,
        payment_option: str,
        partial_payment_amount: int | None = None,
        special_requirements: str | None = None,
    ) -> Booking:
        with self._unit_of_work():
            event = self.event_repository.lock_event(event_id)
            if not event:
                raise NotFoundError("Event not found")

            snapshot = self.event_repository.snapshot(event)
            self.capacity_guard.reserve(snapshot, number_of_guests)

            total_amount = snapshot.price * number_of_guests
            initial_payment = self._initial_payment(
                snapshot,
                total_amount,
                payment_option,
                partial_payment_amount,
            )
            state = self.ledger.open(total_amount, initial_payment)

            booking = self.booking_repository.create_booking(
                reference=self.sequence_repository.next_reference(BOOKING_SEQUENCE),
                event_id=snapshot.id,
                customer_name=customer_name,
                customer_email=customer_email,
                customer_phone=customer_phone,
                number_of_guests=number_of_guests,
                currency=snapshot.currency,
                ledger=state,
                special_requirements=special_requirements,
            )

            self._add_outbox_event(
                booking,
                "BOOKING_CREATED",
                {
                    "event_id": booking.event_id,
                    "number_of_guests": booking.number_of_guests,
                    "total_amount": booking.total_amount,
                    "customer_email": booking.customer_email,
                },
            )

            initial = None
            if initial_payment > 0:
                initial = self._record_payment(
                    booking,
                    amount=initial_payment,
                    method=PaymentMethod.ONLINE,
                    status=PaymentRecordStatus.PENDING,
                )

            if state.status == BookingStatus.CONFIRMED:
                self._add_outbox_event(booking, "BOOKING_CONFIRMED", {})

        if initial is not None and self.gateway is not None:
            self._open_gateway_order(booking, initial)

        self.db.refresh(booking)
        logger.info(
            "Booking created",
            extra={"booking_id": booking.id, "reference": booking.reference},
        )
        return booking

    def apply_payment(
        self,
        booking_id: str,
        amount: int,
        method: PaymentMethod,
        status: PaymentRecordStatus = PaymentRecordStatus.PENDING,
        notes: str | None = None,
    ) -> Payment:
        with self._unit_of_work():
            booking = self._lock_booking(booking_id)
            before = _ledger_state(booking)
            after = self.ledger.apply_payment(before, amount)

            if not self.booking_repository.save_ledger(
                booking,
                after,
                expected_remaining=before.remaining_amount,
            ):
                raise ConcurrentModificationError(booking_id=booking.id)

            payment = self._record_payment(
                booking,
                amount=amount,
                method=method,
                status=status,
                notes=notes,
            )

            if before.status != BookingStatus.CONFIRMED and after.status == BookingStatus.CONFIRMED:
                self._add_outbox_event(booking, "BOOKING_CONFIRMED", {})

        self.db.refresh(payment)
        logger.info(
            "Payment %s recorded: %s of %s remaining",
            payment.reference,
            amount,
            before.remaining_amount,
            extra={"booking_id": booking.id, "reference": booking.reference},
        )
        return payment

    def cancel_booking(
        self,
        booking_id: str,
        reason: str = CUSTOMER_CANCELLATION_REASON,
    ) -> Booking:
        with self._unit_of_work():
            booking = self._lock_booking(booking_id)
            before = _ledger_state(booking)
            after = self.ledger.cancel(before)

            if after is not before:
                self.booking_repository.mark_cancelled(
                    booking,
                    reason=reason,
                    cancelled_at=datetime.now(timezone.utc),
                )
                self._add_outbox_event(booking, "BOOKING_CANCELLED", {"reason": reason})

        self.db.refresh(booking)
        return booking

    def complete_booking(self, booking_id: str) -> Booking:
        with self._unit_of_work():
            booking = self._lock_booking(booking_id)
            self.ledger.complete(_ledger_state(booking))
            self.booking_repository.mark_completed(booking, datetime.now(timezone.utc))
            self._add_outbox_event(booking, "BOOKING_COMPLETED", {})

        self.db.refresh(booking)
        return booking

    # -----------------------------
    # Helpers
    # -----------------------------
    def _lock_booking(self, booking_id: str) -> Booking:
        booking = self.booking_repository.lock_booking(booking_id)
        if not booking:
            raise NotFoundError("Booking not found")
        return booking

    @staticmethod
    def _initial_payment(
        event: EventSnapshot,
        total_amount: int,
        payment_option: str,
        partial_payment_amount: int | None,
    ) -> int:
        if payment_option == "full":
            return total_amount

        if not event.allow_partial_payment:
            raise BusinessLogicError(
                "Partial payment is not available for this event.",
                error_code="PARTIAL_PAYMENT_NOT_ALLOWED",
                context={"event_id": event.id},
            )
        if partial_payment_amount is None:
            raise InputValidationError(
                {
                    "partialPaymentAmount": [
                        "The partial payment amount is required when paying in part."
                    ]
                }
            )
        return partial_payment_amount

    def _open_gateway_order(self, booking: Booking, payment: Payment) -> None:
        """Runs after commit so no row lock is held across the gateway call."""
        try:
            order_id = self.gateway.create_order(
                amount=payment.amount,
                currency=booking.currency,
                receipt=booking.reference,
            )
        except Exception as exc:
            logger.exception(
                "Gateway order failed for payment %s",
                payment.reference,
                extra={"booking_id": booking.id, "reference": booking.reference},
            )
            with self._unit_of_work():
                self._add_outbox_event(
                    booking,
                    "BOOKING_GATEWAY_ORDER_FAILED",
                    {
                        "payment_id": payment.id,
                        "payment_reference": payment.reference,
                        "amount": payment.amount,
                        "error": str(exc),
                    },
                    dedupe_suffix=payment.id,
                )
            return

        with self._unit_of_work():
            self.booking_repository.set_gateway_reference(payment, order_id)

    def _record_payment(
        self,
        booking: Booking,
        amount: int,
        method: PaymentMethod,
        status: PaymentRecordStatus,
        notes: str | None = None,
    ) -> Payment:
        payment = self.booking_repository.add_payment(
            booking,
            reference=self.sequence_repository.next_reference(PAYMENT_SEQUENCE),
            amount=amount,
            method=method,
            status=status,
            notes=notes,
        )
        self._add_outbox_event(
            booking,
            "BOOKING_PAYMENT_RECORDED",
            {
                "payment_id": payment.id,
                "payment_reference": payment.reference,
                "amount": amount,
                "method": method.value,
                "status": status.value,
            },
            dedupe_suffix=payment.id,
        )
        return payment

    def _add_outbox_event(
        self,
        booking: Booking,
        event_type: str,
        payload: dict,
        dedupe_suffix: str | None = None,
    ) -> None:
        dedupe_key = f"booking:{booking.id}:{event_type.lower()}"
        if dedupe_suffix:
            dedupe_key = f"{dedupe_key}:{dedupe_suffix}"

        self.outbox_repository.add_event(
            aggregate_type="booking",
            aggregate_id=booking.id,
            event_type=event_type,
            payload={
                "booking_id": booking.id,
                "reference": booking.reference,
                "status": booking.status.value,
                "payment_status": booking.payment_status.value,
                **payload,
            },
            dedupe_key=dedupe_key,
        )


def _clamp_limit(limit: int) -> int:
    return max(1, min(limit, 200))


def _ledger_state(booking: Booking) -> LedgerState:
    return LedgerState(
        total_amount=booking.total_amount,
        amount_paid=booking.amount_paid,
        remaining_amount=booking.remaining_amount,
        payment_status=booking.payment_status,
        status=booking.status,
    )
