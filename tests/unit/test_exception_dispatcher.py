# tests/unit/test_exception_dispatcher.py

import pytest

from src.application.error_formatter import RedirectDirective, StructuredErrorResponse
from src.application.exception_dispatcher import (
    MINIMAL_SERVER_ERROR,
    ErrorPage,
    ExceptionDispatcher,
    RequestContext,
)
from src.domain.exceptions import (
    AuthorizationError,
    BusinessLogicError,
    HttpStatusError,
    InputValidationError,
    NotFoundError,
)


class RecordingReporter:
    def __init__(self):
        self.reports = []

    def report(self, failure, context):
        self.reports.append((failure, context))
        return "err_test"


@pytest.fixture
def reporter():
    return RecordingReporter()


@pytest.fixture
def dispatcher(reporter):
    return ExceptionDispatcher(reporter=reporter)


def api_request(**overrides):
    values = {"path": "/api/events/evt-1/book", "method": "POST"}
    values.update(overrides)
    return RequestContext(**values)


def web_request(**overrides):
    values = {"path": "/events/evt-1/book", "method": "POST", "accept": "text/html"}
    values.update(overrides)
    return RequestContext(**values)


# ---------------------
# CONTENT NEGOTIATION
# ---------------------

@pytest.mark.parametrize(
    "context, expected",
    [
        (RequestContext(path="/api/bookings/1"), True),
        (RequestContext(path="/api"), True),
        (RequestContext(path="/bookings/1", accept="application/json"), True),
        (RequestContext(path="/bookings/1", accept="text/html"), False),
        (RequestContext(path="/apiary"), False),
    ],
)
def test_wants_structured_response(context, expected):
    assert context.wants_structured_response() is expected


@pytest.mark.parametrize(
    "referer, expected",
    [
        ("http://testserver/events/evt-1/book?step=2", "/events/evt-1/book?step=2"),
        ("/bookings/1", "/bookings/1"),
        ("https://evil.example.com/phish", "/dashboard"),
        ("//evil.example.com/phish", "/dashboard"),
        ("javascript:alert(1)", "/dashboard"),
        (None, "/dashboard"),
    ],
)
def test_previous_location_only_follows_same_origin(referer, expected):
    context = web_request(url="http://testserver/events/evt-1/book", referer=referer)

    assert context.previous_location("/dashboard") == expected


# ---------------------
# DISPATCH
# ---------------------

def test_authorization_scenario(dispatcher):
    result = dispatcher.dispatch(
        AuthorizationError(required_permission="create-transactions"),
        api_request(),
    )

    assert isinstance(result, StructuredErrorResponse)
    assert result.status_code == 403
    assert result.body["error_code"] == "AUTHORIZATION_ERROR"
    assert result.body["required_permission"] == "create-transactions"


def test_structured_body_carries_request_metadata(dispatcher):
    result = dispatcher.dispatch(BusinessLogicError("Nope", error_code="NOPE"), api_request())

    assert result.body["path"] == "/api/events/evt-1/book"
    assert result.body["method"] == "POST"
    assert result.body["timestamp"]


def test_validation_for_web_caller_redirects_back_with_input(dispatcher):
    errors = {"customerEmail": ["Field required"]}
    submitted = {"customer_name": "Ada", "number_of_guests": "2"}

    result = dispatcher.dispatch(
        InputValidationError(errors, submitted_input=submitted),
        web_request(),
    )

    assert isinstance(result, RedirectDirective)
    assert result.flash["errors"] == errors
    assert result.flash["old_input"] == submitted


def test_request_input_used_when_error_has_none(dispatcher):
    result = dispatcher.dispatch(
        InputValidationError({"partialPaymentAmount": ["Required"]}),
        web_request(submitted_input={"payment_method": "partial"}),
    )

    assert result.flash["old_input"] == {"payment_method": "partial"}


@pytest.mark.parametrize("status_code", [403, 404, 500])
def test_dedicated_error_pages_for_web_callers(dispatcher, status_code):
    result = dispatcher.dispatch(HttpStatusError(status_code), web_request(method="GET"))

    assert isinstance(result, ErrorPage)
    assert result.status_code == status_code
    assert result.template == f"errors/{status_code}.html"


def test_not_found_for_api_caller_is_json(dispatcher):
    result = dispatcher.dispatch(NotFoundError("Booking not found"), api_request(method="GET"))

    assert isinstance(result, StructuredErrorResponse)
    assert result.status_code == 404
    assert result.body["error_code"] == "HTTP_404"


def test_other_http_status_for_web_caller_redirects(dispatcher):
    result = dispatcher.dispatch(HttpStatusError(409, "Conflict"), web_request())

    assert isinstance(result, RedirectDirective)
    assert result.flash["error_code"] == "HTTP_409"


def test_unknown_failure_is_reported_once(dispatcher, reporter):
    failure = RuntimeError("boom")

    result = dispatcher.dispatch(
        failure,
        api_request(user_id="user-7", url="http://testserver/api/events/evt-1/book"),
    )

    assert result.status_code == 500
    assert result.body["error_id"] == "err_test"
    assert reporter.reports == [
        (
            failure,
            {
                "user_id": "user-7",
                "url": "http://testserver/api/events/evt-1/book",
                "method": "POST",
            },
        )
    ]


def test_expected_failures_are_not_reported(dispatcher, reporter):
    dispatcher.dispatch(BusinessLogicError("Nope"), api_request())
    dispatcher.dispatch(NotFoundError(), api_request())

    assert reporter.reports == []


def test_dispatch_never_raises_when_reporter_fails():
    class BrokenReporter:
        def report(self, failure, context):
            raise ConnectionError("log sink down")

    dispatcher = ExceptionDispatcher(reporter=BrokenReporter())

    result = dispatcher.dispatch(RuntimeError("boom"), web_request())

    assert result == MINIMAL_SERVER_ERROR
