from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.config.settings import MAX_GUESTS_PER_BOOKING
from src.domain.state_machine import (
    BookingStatus,
    PaymentMethod,
    PaymentRecordStatus,
    PaymentStatus,
)

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class CamelRequest(BaseModel):
    """Request bodies arrive camelCase from JSON clients and snake_case from HTML forms."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class CreateBookingRequest(CamelRequest):
    customer_name: str = Field(min_length=1, max_length=255)
    customer_email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    customer_phone: str = Field(min_length=1, max_length=20)
    number_of_guests: int = Field(ge=1, le=MAX_GUESTS_PER_BOOKING)
    special_requirements: str | None = Field(default=None, max_length=1000)
    payment_method: Literal["full", "partial"]
    partial_payment_amount: int | None = Field(default=None, ge=0)


class ApplyPaymentRequest(CamelRequest):
    payment_method: Literal["card", "bank_transfer", "cash"]
    amount: int


class AdminPaymentRequest(CamelRequest):
    payment_method: PaymentMethod
    amount: int
    notes: str | None = Field(default=None, max_length=1000)


class AdminCancelRequest(CamelRequest):
    reason: str = Field(default="Cancelled by staff", min_length=1, max_length=1000)


class PaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    reference: str
    booking_id: str
    amount: int
    currency: str
    method: PaymentMethod
    status: PaymentRecordStatus
    gateway_reference: str | None = None
    notes: str | None = None
    paid_at: datetime | None = None


class AdminPaymentResponse(PaymentResponse):
    booking_reference: str
    customer_name: str
    created_at: datetime | None = None


class BookingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    reference: str
    event_id: str
    customer_name: str
    customer_email: str
    customer_phone: str
    number_of_guests: int
    special_requirements: str | None = None
    total_amount: int
    amount_paid: int
    remaining_amount: int
    currency: str
    payment_status: PaymentStatus
    status: BookingStatus
    booking_date: datetime | None = None
    cancellation_reason: str | None = None
    cancelled_at: datetime | None = None
    completed_at: datetime | None = None
    payments: list[PaymentResponse] = []


class EventAvailabilityResponse(BaseModel):
    event_id: str
    title: str
    start_date: datetime
    capacity: int
    booked_guests: int
    available_seats: int
    price: int
    currency: str
    allow_partial_payment: bool
    max_guests_per_booking: int


class OutboxEventResponse(BaseModel):
    id: str
    aggregate_type: str
    aggregate_id: str
    event_type: str
    status: str
    attempts: int
    created_at: str
    published_at: str | None = None


def booking_response(booking, payments) -> BookingResponse:
    return BookingResponse.model_validate(booking).model_copy(
        update={"payments": [PaymentResponse.model_validate(payment) for payment in payments]}
    )


def admin_payment_response(payment, booking) -> AdminPaymentResponse:
    return AdminPaymentResponse.model_validate(
        {
            **PaymentResponse.model_validate(payment).model_dump(),
            "booking_reference": booking.reference,
            "customer_name": booking.customer_name,
            "created_at": payment.created_at,
        }
    )
