# tests/integration/test_booking_flow.py

from datetime import datetime, timedelta, timezone

from src.domain.state_machine import EventStatus


def _booking_payload(**overrides):
    payload = {
        "customerName": "Ada Lovelace",
        "customerEmail": "ada@example.com",
        "customerPhone": "+2348000000000",
        "numberOfGuests": 2,
        "paymentMethod": "full",
    }
    payload.update(overrides)
    return payload


def test_booking_flow(client, make_event):
    event_id = make_event(price=25000)

    response = client.post(
        f"/api/events/{event_id}/book",
        json=_booking_payload(paymentMethod="partial", partialPaymentAmount=20000),
    )

    assert response.status_code == 201
    booking = response.json()
    assert booking["reference"] == "BK-000001"
    assert booking["total_amount"] == 50000
    assert booking["amount_paid"] == 20000
    assert booking["remaining_amount"] == 30000
    assert booking["payment_status"] == "partial"
    assert booking["status"] == "pending"
    assert [p["reference"] for p in booking["payments"]] == ["PAY-000001"]
    assert booking["payments"][0]["method"] == "online"
    assert booking["payments"][0]["status"] == "pending"

    pay_response = client.post(
        f"/api/bookings/{booking['id']}/payment",
        json={"paymentMethod": "card", "amount": 30000},
    )

    assert pay_response.status_code == 201
    paid = pay_response.json()
    assert paid["amount_paid"] == 50000
    assert paid["remaining_amount"] == 0
    assert paid["payment_status"] == "paid"
    assert paid["status"] == "confirmed"
    assert [p["reference"] for p in paid["payments"]] == ["PAY-000001", "PAY-000002"]

    confirmation = client.get(f"/api/bookings/{booking['id']}/confirmation")
    assert confirmation.status_code == 200
    assert confirmation.json()["status"] == "confirmed"


def test_full_payment_confirms_immediately(client, make_event):
    event_id = make_event(price=25000)

    response = client.post(f"/api/events/{event_id}/book", json=_booking_payload())

    assert response.status_code == 201
    booking = response.json()
    assert booking["amount_paid"] == 50000
    assert booking["remaining_amount"] == 0
    assert booking["payment_status"] == "paid"
    assert booking["status"] == "confirmed"


def test_capacity_excludes_cancelled_bookings(client, make_event):
    event_id = make_event(capacity=10)

    ids = []
    for guests in (3, 3, 2):
        response = client.post(
            f"/api/events/{event_id}/book",
            json=_booking_payload(numberOfGuests=guests),
        )
        assert response.status_code == 201
        ids.append(response.json()["id"])

    availability = client.get(f"/api/events/{event_id}/book")
    assert availability.json()["available_seats"] == 2

    rejected = client.post(
        f"/api/events/{event_id}/book",
        json=_booking_payload(numberOfGuests=3),
    )
    assert rejected.status_code == 400
    body = rejected.json()
    assert body["error_code"] == "INSUFFICIENT_CAPACITY"
    assert body["context"] == {"available": 2, "requested": 3}

    cancel = client.patch(f"/api/bookings/{ids[0]}/cancel")
    assert cancel.status_code == 200
    assert cancel.json()["status"] == "cancelled"
    assert cancel.json()["cancellation_reason"] == "Cancelled by customer"

    accepted = client.post(
        f"/api/events/{event_id}/book",
        json=_booking_payload(numberOfGuests=3),
    )
    assert accepted.status_code == 201
    assert accepted.json()["reference"] == "BK-000004"


def test_overpayment_rejected(client, make_event):
    event_id = make_event(price=10000)
    booking = client.post(
        f"/api/events/{event_id}/book",
        json=_booking_payload(numberOfGuests=1, paymentMethod="partial", partialPaymentAmount=4000),
    ).json()

    response = client.post(
        f"/api/bookings/{booking['id']}/payment",
        json={"paymentMethod": "cash", "amount": 6001},
    )

    assert response.status_code == 400
    assert response.json()["error_code"] == "AMOUNT_EXCEEDS_REMAINING_BALANCE"
    assert response.json()["context"] == {"remaining_amount": 6000, "amount": 6001}

    unchanged = client.get(f"/api/bookings/{booking['id']}").json()
    assert unchanged["remaining_amount"] == 6000
    assert len(unchanged["payments"]) == 1


def test_partial_payment_requires_event_opt_in(client, make_event):
    event_id = make_event(allow_partial_payment=False)

    response = client.post(
        f"/api/events/{event_id}/book",
        json=_booking_payload(paymentMethod="partial", partialPaymentAmount=1000),
    )

    assert response.status_code == 400
    assert response.json()["error_code"] == "PARTIAL_PAYMENT_NOT_ALLOWED"


def test_partial_payment_amount_required(client, make_event):
    event_id = make_event()

    response = client.post(
        f"/api/events/{event_id}/book",
        json=_booking_payload(paymentMethod="partial"),
    )

    assert response.status_code == 422
    assert "partialPaymentAmount" in response.json()["errors"]


def test_cancel_is_idempotent_and_completed_cannot_cancel(client, make_event, admin_headers):
    event_id = make_event()
    booking = client.post(f"/api/events/{event_id}/book", json=_booking_payload()).json()

    first = client.patch(f"/api/bookings/{booking['id']}/cancel")
    second = client.patch(f"/api/bookings/{booking['id']}/cancel")
    assert first.json()["cancelled_at"] == second.json()["cancelled_at"]

    other = client.post(f"/api/events/{event_id}/book", json=_booking_payload()).json()
    completed = client.patch(f"/api/admin/bookings/{other['id']}/complete", headers=admin_headers)
    assert completed.json()["status"] == "completed"

    response = client.patch(f"/api/bookings/{other['id']}/cancel")
    assert response.status_code == 400
    assert response.json()["error_code"] == "BOOKING_ALREADY_COMPLETED"


def test_unbookable_events(client, make_event):
    hidden = make_event(is_public=False)
    draft = make_event(status=EventStatus.DRAFT)
    started = make_event(start_date=datetime.now(timezone.utc) - timedelta(hours=1))

    assert client.get(f"/api/events/{hidden}/book").status_code == 404
    assert client.get(f"/api/events/{draft}/book").status_code == 404
    response = client.post(f"/api/events/{started}/book", json=_booking_payload())
    assert response.status_code == 400
    assert response.json()["error_code"] == "EVENT_ALREADY_STARTED"


def test_fully_booked_event(client, make_event):
    event_id = make_event(capacity=2)
    client.post(f"/api/events/{event_id}/book", json=_booking_payload(numberOfGuests=2))

    response = client.get(f"/api/events/{event_id}/book")

    assert response.status_code == 400
    assert response.json()["error_code"] == "EVENT_FULLY_BOOKED"


# ---------------------
# HTML FORMS
# ---------------------

def test_web_booking_form_flow(client, make_event):
    event_id = make_event(price=25000)

    page = client.get(f"/events/{event_id}/book")
    assert page.status_code == 200
    assert "Gala Dinner" in page.text
    assert "10 seats left" in page.text

    response = client.post(
        f"/events/{event_id}/book",
        data={
            "customer_name": "Ada Lovelace",
            "customer_email": "ada@example.com",
            "customer_phone": "+2348000000000",
            "number_of_guests": "2",
            "payment_method": "full",
            "partial_payment_amount": "",
            "special_requirements": "",
        },
    )

    assert response.status_code == 303
    location = response.headers["location"]
    assert location.startswith("/bookings/")

    booking_page = client.get(location)
    assert booking_page.status_code == 200
    assert "Booking created successfully" in booking_page.text
    assert "BK-000001" in booking_page.text

    # Flash data lasts one request.
    assert "Booking created successfully" not in client.get(location).text


def test_web_payment_form_redirects_when_paid(client, make_event):
    event_id = make_event()
    booking = client.post(f"/api/events/{event_id}/book", json=_booking_payload()).json()

    response = client.get(f"/bookings/{booking['id']}/payment")

    assert response.status_code == 303
    assert response.headers["location"] == f"/bookings/{booking['id']}"
    assert "already fully paid" in client.get(response.headers["location"]).text


def test_web_confirmation_redirects_until_confirmed(client, make_event):
    event_id = make_event()
    booking = client.post(
        f"/api/events/{event_id}/book",
        json=_booking_payload(paymentMethod="partial", partialPaymentAmount=0),
    ).json()

    response = client.get(f"/bookings/{booking['id']}/confirmation")

    assert response.status_code == 303
    assert response.headers["location"] == f"/bookings/{booking['id']}"
