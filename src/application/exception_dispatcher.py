"""Single point that turns any failure into a user-visible response value."""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
import logging
from urllib.parse import urlsplit

from src.application.error_classifier import (
    ClassifiedError,
    ErrorClassifier,
    ErrorKind,
)
from src.application.error_formatter import (
    ErrorResponseFormatter,
    RedirectDirective,
    StructuredErrorResponse,
)
from src.application.error_reporter import ErrorReporter, LoggingErrorReporter
from src.domain.exceptions import InputValidationError

logger = logging.getLogger(__name__)

API_PREFIX = "/api"

MINIMAL_SERVER_ERROR = StructuredErrorResponse(
    status_code=500,
    body={
        "error": True,
        "message": "Internal server error",
        "error_code": "INTERNAL_ERROR",
    },
)


@dataclass(frozen=True)
class RequestContext:
    """What the dispatcher needs to know about the inbound request."""

    path: str
    method: str = "GET"
    accept: str = ""
    url: str = ""
    referer: str | None = None
    user_id: str | None = None
    submitted_input: dict = field(default_factory=dict)

    def wants_structured_response(self) -> bool:
        if "application/json" in self.accept.lower():
            return True
        return self.path == API_PREFIX or self.path.startswith(API_PREFIX + "/")

    def current_user(self) -> str | None:
        return self.user_id

    def previous_location(self, fallback: str) -> str:
        """Same-origin referer as a local path, else `fallback`."""
        if not self.referer:
            return fallback

        referer = urlsplit(self.referer)
        if referer.netloc and referer.netloc != urlsplit(self.url).netloc:
            return fallback
        path = referer.path or "/"
        if not path.startswith("/") or path.startswith("//"):
            return fallback
        return f"{path}?{referer.query}" if referer.query else path


@dataclass(frozen=True)
class ErrorPage:
    status_code: int
    template: str
    context: dict = field(default_factory=dict)


DispatchResult = StructuredErrorResponse | RedirectDirective | ErrorPage


class ExceptionDispatcher:
    DEDICATED_PAGES = {
        404: "errors/404.html",
        403: "errors/403.html",
        500: "errors/500.html",
    }

    def __init__(
        self,
        classifier: ErrorClassifier | None = None,
        formatter: ErrorResponseFormatter | None = None,
        reporter: ErrorReporter | None = None,
    ):
        self.classifier = classifier or ErrorClassifier()
        self.formatter = formatter or ErrorResponseFormatter()
        self.reporter = reporter or LoggingErrorReporter()

    def dispatch(self, failure: BaseException, request: RequestContext) -> DispatchResult:
        try:
            return self._dispatch(failure, request)
        except Exception:
            logger.exception("Failed to build error response for %s %s", request.method, request.path)
            return MINIMAL_SERVER_ERROR

    def _dispatch(self, failure: BaseException, request: RequestContext) -> DispatchResult:
        wants_structured = request.wants_structured_response()
        error = self.classifier.classify(failure)

        if (
            error.kind == ErrorKind.HTTP_STATUS
            and not wants_structured
            and error.http_status in self.DEDICATED_PAGES
        ):
            return ErrorPage(
                status_code=error.http_status,
                template=self.DEDICATED_PAGES[error.http_status],
                context={"message": error.message},
            )

        error_id = None
        if error.kind == ErrorKind.UNKNOWN:
            error_id = self.reporter.report(
                failure,
                {
                    "user_id": request.current_user(),
                    "url": request.url or request.path,
                    "method": request.method,
                },
            )
        else:
            logger.info(
                "Request failed: %s %s -> %s %s",
                request.method,
                request.path,
                error.http_status,
                error.code,
            )

        result = self.formatter.format(
            error,
            wants_structured,
            error_id=error_id,
            submitted_input=self._submitted_input(error, request),
        )

        if isinstance(result, StructuredErrorResponse):
            body = dict(result.body)
            body["timestamp"] = datetime.now(timezone.utc).isoformat()
            body["path"] = request.path
            body["method"] = request.method
            result = replace(result, body=body)

        return result

    @staticmethod
    def _submitted_input(error: ClassifiedError, request: RequestContext) -> dict:
        if isinstance(error.original, InputValidationError) and error.original.submitted_input:
            return error.original.submitted_input
        return request.submitted_input
