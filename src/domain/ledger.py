# src/domain/ledger.py

from dataclasses import dataclass, replace

from src.domain.exceptions import BusinessLogicError, PaymentExceedsBalanceError
from src.domain.state_machine import (
    BookingStateMachine,
    BookingStatus,
    PaymentStatus,
    derive_payment_status,
)


@dataclass(frozen=True)
class LedgerState:
    """
    Financial and lifecycle state of one booking.

    Amounts are integer minor currency units.
    """

    total_amount: int
    amount_paid: int
    remaining_amount: int
    payment_status: PaymentStatus
    status: BookingStatus

    def __post_init__(self) -> None:
        if min(self.total_amount, self.amount_paid, self.remaining_amount) < 0:
            raise ValueError("Ledger amounts cannot be negative")
        if self.amount_paid + self.remaining_amount != self.total_amount:
            raise ValueError(
                "Ledger out of balance: "
                f"{self.amount_paid} + {self.remaining_amount} != {self.total_amount}"
            )


class BookingPaymentLedger:
    """
    Pure state transitions for booking amounts and status.

    Callers persist the returned state; nothing here touches storage.
    """

    def open(self, total_amount: int, initial_payment: int) -> LedgerState:
        if initial_payment < 0:
            raise BusinessLogicError(
                "Payment amount cannot be negative.",
                error_code="INVALID_PAYMENT_AMOUNT",
                context={"amount": initial_payment},
            )
        if initial_payment > total_amount:
            raise BusinessLogicError(
                "Initial payment cannot exceed the booking total.",
                error_code="PAYMENT_EXCEEDS_TOTAL",
                context={"total_amount": total_amount, "amount": initial_payment},
            )

        remaining = total_amount - initial_payment
        payment_status = derive_payment_status(initial_payment, remaining)
        status = (
            BookingStatus.CONFIRMED
            if payment_status == PaymentStatus.PAID
            else BookingStatus.PENDING
        )
        return LedgerState(
            total_amount=total_amount,
            amount_paid=initial_payment,
            remaining_amount=remaining,
            payment_status=payment_status,
            status=status,
        )

    def apply_payment(self, state: LedgerState, amount: int) -> LedgerState:
        if state.status in (BookingStatus.CANCELLED, BookingStatus.COMPLETED):
            raise BusinessLogicError(
                f"Payments cannot be recorded against a {state.status.value} booking.",
                error_code="BOOKING_NOT_PAYABLE",
                context={"status": state.status.value},
            )
        if state.payment_status == PaymentStatus.PAID:
            raise BusinessLogicError(
                "This booking is already fully paid.",
                error_code="BOOKING_ALREADY_PAID",
            )
        if amount <= 0:
            raise BusinessLogicError(
                "Payment amount must be greater than zero.",
                error_code="INVALID_PAYMENT_AMOUNT",
                context={"amount": amount},
            )
        if amount > state.remaining_amount:
            raise PaymentExceedsBalanceError(
                remaining_amount=state.remaining_amount,
                amount=amount,
            )

        amount_paid = state.amount_paid + amount
        remaining = state.remaining_amount - amount
        payment_status = (
            PaymentStatus.PAID if remaining <= 0 else PaymentStatus.PARTIAL
        )

        status = state.status
        if payment_status == PaymentStatus.PAID and status != BookingStatus.CONFIRMED:
            BookingStateMachine.validate_transition(status, BookingStatus.CONFIRMED)
            status = BookingStatus.CONFIRMED

        return replace(
            state,
            amount_paid=amount_paid,
            remaining_amount=remaining,
            payment_status=payment_status,
            status=status,
        )

    def cancel(self, state: LedgerState) -> LedgerState:
        if state.status == BookingStatus.CANCELLED:
            return state
        if state.status == BookingStatus.COMPLETED:
            raise BusinessLogicError(
                "Cannot cancel a completed booking.",
                error_code="BOOKING_ALREADY_COMPLETED",
            )

        BookingStateMachine.validate_transition(state.status, BookingStatus.CANCELLED)
        return replace(state, status=BookingStatus.CANCELLED)

    def complete(self, state: LedgerState) -> LedgerState:
        BookingStateMachine.validate_transition(state.status, BookingStatus.COMPLETED)
        return replace(state, status=BookingStatus.COMPLETED)
