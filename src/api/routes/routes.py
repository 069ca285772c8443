import json
import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, ValidationError

from src.api.dependencies import get_booking_service, get_request_context
from src.api.flash import flash, pop_flash
from src.api.schemas.schemas import (
    ApplyPaymentRequest,
    BookingResponse,
    CreateBookingRequest,
    EventAvailabilityResponse,
    booking_response,
)
from src.api.templating import templates
from src.application.booking_service import BookingService, EventAvailability
from src.application.error_classifier import collect_field_errors
from src.application.exception_dispatcher import RequestContext
from src.config import settings
from src.domain.exceptions import BusinessLogicError, InputValidationError
from src.domain.state_machine import BookingStatus, PaymentMethod, PaymentStatus
from src.infrastructure.db.models import Booking


router = APIRouter()
logger = logging.getLogger(__name__)


# -----------------------------
# Request body handling
# -----------------------------
async def _read_payload(request: Request, schema: type[BaseModel]) -> BaseModel:
    content_type = request.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            data = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise InputValidationError({"body": ["The request body must be valid JSON."]}) from exc
        if not isinstance(data, dict):
            raise InputValidationError({"body": ["The request body must be a JSON object."]})
    else:
        form = await request.form()
        data = {key: value for key, value in form.items() if isinstance(value, str)}

    request.state.submitted_input = data

    # Blank form fields mean "not provided".
    provided = {key: value for key, value in data.items() if value != ""}
    try:
        return schema.model_validate(provided)
    except ValidationError as exc:
        raise InputValidationError(
            collect_field_errors(exc.errors()),
            submitted_input=data,
        ) from exc


def form_or_json(schema: type[BaseModel]):
    async def dependency(request: Request) -> BaseModel:
        return await _read_payload(request, schema)

    return dependency


# -----------------------------
# Response helpers
# -----------------------------
def _booking_response(service: BookingService, booking: Booking) -> BookingResponse:
    return booking_response(booking, service.list_payments(booking.id))


def _availability_response(availability: EventAvailability) -> EventAvailabilityResponse:
    event = availability.event
    return EventAvailabilityResponse(
        event_id=event.id,
        title=event.title,
        start_date=event.start_date,
        capacity=event.capacity,
        booked_guests=event.booked_guests,
        available_seats=availability.available_seats,
        price=event.price,
        currency=event.currency,
        allow_partial_payment=event.allow_partial_payment,
        max_guests_per_booking=settings.MAX_GUESTS_PER_BOOKING,
    )


def _json(model: BaseModel, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=jsonable_encoder(model))


def _redirect_to_booking(booking_id: str) -> RedirectResponse:
    return RedirectResponse(f"/bookings/{booking_id}", status_code=status.HTTP_303_SEE_OTHER)


def _render(request: Request, name: str, context: dict) -> HTMLResponse:
    page_flash = pop_flash(request)
    return templates.TemplateResponse(
        request,
        name,
        {
            "app_name": settings.APP_NAME,
            "flash": page_flash,
            "errors": page_flash.get("errors", {}),
            "old_input": page_flash.get("old_input", {}),
            **context,
        },
    )


# -----------------------------
# Pages
# -----------------------------
@router.get("/health")
def health():
    return {"message": f"{settings.APP_NAME} is running"}


@router.get("/dashboard", response_class=HTMLResponse)
def dashboard(request: Request):
    return _render(request, "dashboard.html", {})


@router.get("/events/{event_id}/book")
def booking_form(
    event_id: str,
    request: Request,
    context: RequestContext = Depends(get_request_context),
    service: BookingService = Depends(get_booking_service),
):
    availability = service.get_event_availability(event_id)

    if context.wants_structured_response():
        return _json(_availability_response(availability))

    return _render(
        request,
        "bookings/create.html",
        {
            "event": availability.event,
            "available_seats": availability.available_seats,
            "max_guests": min(availability.available_seats, settings.MAX_GUESTS_PER_BOOKING),
        },
    )


@router.post("/events/{event_id}/book")
def create_booking(
    event_id: str,
    request: Request,
    payload: CreateBookingRequest = Depends(form_or_json(CreateBookingRequest)),
    context: RequestContext = Depends(get_request_context),
    service: BookingService = Depends(get_booking_service),
):
    booking = service.create_booking(
        event_id=event_id,
        customer_name=payload.customer_name,
        customer_email=payload.customer_email,
        customer_phone=payload.customer_phone,
        number_of_guests=payload.number_of_guests,
        payment_option=payload.payment_method,
        partial_payment_amount=payload.partial_payment_amount,
        special_requirements=payload.special_requirements,
    )

    if context.wants_structured_response():
        return _json(_booking_response(service, booking), status.HTTP_201_CREATED)

    flash(request, success="Booking created successfully. Please complete your payment.")
    return _redirect_to_booking(booking.id)


@router.get("/bookings/{booking_id}")
def show_booking(
    booking_id: str,
    request: Request,
    context: RequestContext = Depends(get_request_context),
    service: BookingService = Depends(get_booking_service),
):
    booking = service.get_booking(booking_id)
    response = _booking_response(service, booking)

    if context.wants_structured_response():
        return _json(response)

    return _render(request, "bookings/show.html", {"booking": response})


@router.get("/bookings/{booking_id}/payment")
def payment_form(
    booking_id: str,
    request: Request,
    context: RequestContext = Depends(get_request_context),
    service: BookingService = Depends(get_booking_service),
):
    booking = service.get_booking(booking_id)

    if context.wants_structured_response():
        return _json(_booking_response(service, booking))

    if booking.payment_status == PaymentStatus.PAID:
        flash(request, info="This booking is already fully paid.")
        return _redirect_to_booking(booking.id)

    return _render(
        request,
        "bookings/payment.html",
        {"booking": _booking_response(service, booking)},
    )


@router.post("/bookings/{booking_id}/payment")
def process_payment(
    booking_id: str,
    request: Request,
    payload: ApplyPaymentRequest = Depends(form_or_json(ApplyPaymentRequest)),
    context: RequestContext = Depends(get_request_context),
    service: BookingService = Depends(get_booking_service),
):
    service.apply_payment(
        booking_id,
        amount=payload.amount,
        method=PaymentMethod(payload.payment_method),
    )

    if context.wants_structured_response():
        booking = service.get_booking(booking_id)
        return _json(_booking_response(service, booking), status.HTTP_201_CREATED)

    flash(request, success="Payment processed successfully.")
    return _redirect_to_booking(booking_id)


@router.api_route("/bookings/{booking_id}/cancel", methods=["PATCH", "POST"])
def cancel_booking(
    booking_id: str,
    request: Request,
    context: RequestContext = Depends(get_request_context),
    service: BookingService = Depends(get_booking_service),
):
    already_cancelled = service.get_booking(booking_id).status == BookingStatus.CANCELLED
    booking = service.cancel_booking(booking_id)

    if context.wants_structured_response():
        return _json(_booking_response(service, booking))

    if already_cancelled:
        flash(request, info="This booking is already cancelled.")
    else:
        flash(request, success="Booking cancelled successfully.")
    return _redirect_to_booking(booking.id)


@router.get("/bookings/{booking_id}/confirmation")
def booking_confirmation(
    booking_id: str,
    request: Request,
    context: RequestContext = Depends(get_request_context),
    service: BookingService = Depends(get_booking_service),
):
    booking = service.get_booking(booking_id)

    if booking.status != BookingStatus.CONFIRMED:
        if context.wants_structured_response():
            raise BusinessLogicError(
                "This booking is not confirmed yet.",
                error_code="BOOKING_NOT_CONFIRMED",
                context={"status": booking.status.value},
                status_code=status.HTTP_409_CONFLICT,
            )
        return _redirect_to_booking(booking.id)

    response = _booking_response(service, booking)
    if context.wants_structured_response():
        return _json(response)

    return _render(request, "bookings/confirm.html", {"booking": response})
