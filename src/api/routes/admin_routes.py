from datetime import datetime

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from src.api.dependencies import (
    get_booking_service,
    get_db,
    require_permission,
    require_role,
)
from src.api.schemas.schemas import (
    AdminCancelRequest,
    AdminPaymentRequest,
    AdminPaymentResponse,
    BookingResponse,
    OutboxEventResponse,
    admin_payment_response,
    booking_response,
)
from src.application.booking_service import BookingService
from src.domain.exceptions import NotFoundError
from src.domain.permissions import CurrentUser, Role
from src.domain.state_machine import (
    BookingStatus,
    PaymentMethod,
    PaymentRecordStatus,
    PaymentStatus,
)
from src.infrastructure.db.models import Booking, OutboxEvent
from src.infrastructure.repositories.outbox_repository import OutboxRepository


router = APIRouter()


def _booking_response(service: BookingService, booking: Booking) -> BookingResponse:
    return booking_response(booking, service.list_payments(booking.id))


def _outbox_response(item: OutboxEvent) -> OutboxEventResponse:
    return OutboxEventResponse(
        id=item.id,
        aggregate_type=item.aggregate_type,
        aggregate_id=item.aggregate_id,
        event_type=item.event_type,
        status=item.status,
        attempts=item.attempts,
        created_at=item.created_at.isoformat(),
        published_at=item.published_at.isoformat() if item.published_at else None,
    )


@router.get("/bookings", response_model=list[BookingResponse])
def list_bookings(
    status_filter: BookingStatus | None = None,
    payment_status: PaymentStatus | None = None,
    search: str | None = None,
    event_id: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    limit: int = 50,
    user: CurrentUser = Depends(require_permission("view-bookings")),
    service: BookingService = Depends(get_booking_service),
):
    bookings = service.list_bookings(
        status=status_filter,
        payment_status=payment_status,
        search=search,
        event_id=event_id,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
    )
    return [_booking_response(service, booking) for booking in bookings]


@router.get("/bookings/{booking_id}", response_model=BookingResponse)
def get_booking(
    booking_id: str,
    user: CurrentUser = Depends(require_permission("view-bookings")),
    service: BookingService = Depends(get_booking_service),
):
    return _booking_response(service, service.get_booking(booking_id))


@router.post(
    "/bookings/{booking_id}/payments",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
)
def record_payment(
    booking_id: str,
    request: AdminPaymentRequest,
    user: CurrentUser = Depends(require_permission("edit-bookings")),
    service: BookingService = Depends(get_booking_service),
):
    notes = request.notes or f"Recorded by {user.id}"
    service.apply_payment(
        booking_id,
        amount=request.amount,
        method=request.payment_method,
        status=PaymentRecordStatus.COMPLETED,
        notes=notes,
    )
    return _booking_response(service, service.get_booking(booking_id))


@router.get("/payments", response_model=list[AdminPaymentResponse])
def list_payments(
    search: str | None = None,
    status_filter: PaymentRecordStatus | None = None,
    payment_method: PaymentMethod | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    limit: int = 50,
    user: CurrentUser = Depends(require_permission("view-bookings")),
    service: BookingService = Depends(get_booking_service),
):
    rows = service.search_payments(
        search=search,
        status=status_filter,
        method=payment_method,
        date_from=start_date,
        date_to=end_date,
        limit=limit,
    )
    return [admin_payment_response(payment, booking) for payment, booking in rows]


@router.patch("/bookings/{booking_id}/cancel", response_model=BookingResponse)
def cancel_booking(
    booking_id: str,
    request: AdminCancelRequest | None = None,
    user: CurrentUser = Depends(require_permission("edit-bookings")),
    service: BookingService = Depends(get_booking_service),
):
    reason = request.reason if request else AdminCancelRequest().reason
    booking = service.cancel_booking(booking_id, reason=reason)
    return _booking_response(service, booking)


@router.patch("/bookings/{booking_id}/complete", response_model=BookingResponse)
def complete_booking(
    booking_id: str,
    user: CurrentUser = Depends(require_permission("edit-bookings")),
    service: BookingService = Depends(get_booking_service),
):
    booking = service.complete_booking(booking_id)
    return _booking_response(service, booking)


@router.get("/outbox/events", response_model=list[OutboxEventResponse])
def list_outbox_events(
    status_filter: str = "PENDING",
    limit: int = 50,
    user: CurrentUser = Depends(require_permission("view-settings")),
    db: Session = Depends(get_db),
):
    events = OutboxRepository(db).list_events(status=status_filter, limit=limit)
    return [_outbox_response(item) for item in events]


@router.post("/outbox/events/{event_id}/mark-published", response_model=OutboxEventResponse)
def mark_outbox_event_published(
    event_id: str,
    user: CurrentUser = Depends(require_role(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    repository = OutboxRepository(db)
    item = repository.get_by_id(event_id)
    if not item:
        raise NotFoundError("Outbox event not found")

    repository.mark_published(item)
    db.commit()
    return _outbox_response(item)
