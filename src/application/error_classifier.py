"""Maps any raised failure onto a closed set of error kinds."""

from dataclasses import dataclass, field
from enum import Enum
from http import HTTPStatus
import logging

from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.domain.exceptions import (
    AuthorizationError,
    BusinessLogicError,
    HttpStatusError,
    InputValidationError,
)

logger = logging.getLogger(__name__)

UNKNOWN_ERROR_MESSAGE = "An unexpected error occurred. Please try again later."
REQUEST_VALIDATION_MESSAGE = "Please check your input and try again."

# Location prefixes FastAPI puts in front of the field name.
_LOCATION_PREFIXES = {"body", "query", "path", "header", "cookie"}


class ErrorKind(str, Enum):
    AUTHORIZATION = "authorization"
    VALIDATION = "validation"
    BUSINESS_LOGIC = "business_logic"
    HTTP_STATUS = "http_status"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ClassifiedError:
    kind: ErrorKind
    http_status: int
    message: str
    code: str
    context: dict = field(default_factory=dict)
    original: BaseException | None = field(default=None, repr=False, compare=False)


def collect_field_errors(errors: list[dict]) -> dict[str, list[str]]:
    """
    Group pydantic/FastAPI error entries by field name, keeping order.
    """
    grouped: dict[str, list[str]] = {}
    for entry in errors:
        parts = [
            str(part)
            for part in entry.get("loc", ())
            if not (isinstance(part, str) and part in _LOCATION_PREFIXES)
        ]
        name = ".".join(parts) or "__all__"
        grouped.setdefault(name, []).append(entry.get("msg", "Invalid value"))
    return grouped


class ErrorClassifier:
    """Total classification: every failure resolves to one ClassifiedError."""

    def classify(self, failure: BaseException) -> ClassifiedError:
        try:
            return self._classify(failure)
        except Exception:
            logger.exception("Error classification failed for %r", type(failure))
            return self._unknown(failure)

    def _classify(self, failure: BaseException) -> ClassifiedError:
        if isinstance(failure, AuthorizationError):
            return ClassifiedError(
                kind=ErrorKind.AUTHORIZATION,
                http_status=failure.status_code or 403,
                message=failure.message,
                code="AUTHORIZATION_ERROR",
                context={
                    "required_permission": failure.required_permission,
                    "required_role": failure.required_role,
                },
                original=failure,
            )

        if isinstance(failure, InputValidationError):
            return ClassifiedError(
                kind=ErrorKind.VALIDATION,
                http_status=422,
                message=failure.message,
                code="VALIDATION_ERROR",
                context={"errors": failure.errors},
                original=failure,
            )

        if isinstance(failure, RequestValidationError):
            return ClassifiedError(
                kind=ErrorKind.VALIDATION,
                http_status=422,
                message=REQUEST_VALIDATION_MESSAGE,
                code="VALIDATION_ERROR",
                context={"errors": collect_field_errors(list(failure.errors()))},
                original=failure,
            )

        if isinstance(failure, BusinessLogicError):
            return ClassifiedError(
                kind=ErrorKind.BUSINESS_LOGIC,
                http_status=failure.status_code or 400,
                message=failure.message,
                code=failure.error_code,
                context=dict(failure.context),
                original=failure,
            )

        if isinstance(failure, (HttpStatusError, StarletteHTTPException)):
            status = int(failure.status_code)
            if isinstance(failure, HttpStatusError):
                message = failure.message
            else:
                message = failure.detail if isinstance(failure.detail, str) else ""
            return ClassifiedError(
                kind=ErrorKind.HTTP_STATUS,
                http_status=status,
                message=message or _reason_phrase(status),
                code=f"HTTP_{status}",
                original=failure,
            )

        return self._unknown(failure)

    @staticmethod
    def _unknown(failure: BaseException) -> ClassifiedError:
        return ClassifiedError(
            kind=ErrorKind.UNKNOWN,
            http_status=500,
            message=UNKNOWN_ERROR_MESSAGE,
            code="INTERNAL_ERROR",
            original=failure,
        )


def _reason_phrase(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return "HTTP error"
