"""Turns a ClassifiedError into a response value. No I/O, no logging."""

from dataclasses import dataclass, field
import json

from src.application.error_classifier import ClassifiedError, ErrorKind

# Redirect target meaning "the page the caller came from".
BACK = "back"

# Inputs never echoed back to a form.
DONT_FLASH = frozenset(
    {
        "current_password",
        "password",
        "password_confirmation",
    }
)

# Flash data rides in the session cookie, which browsers cap at 4096 bytes.
MAX_FLASHED_VALUE_SIZE = 1100
MAX_FLASHED_INPUT_SIZE = 1536


@dataclass(frozen=True)
class StructuredErrorResponse:
    status_code: int
    body: dict


@dataclass(frozen=True)
class RedirectDirective:
    target: str
    flash: dict = field(default_factory=dict)
    status_code: int = 302


class ErrorResponseFormatter:
    def __init__(self, safe_landing_url: str = "/dashboard", debug: bool = False):
        self.safe_landing_url = safe_landing_url
        self.debug = debug

    def format(
        self,
        error: ClassifiedError,
        wants_structured_response: bool,
        *,
        error_id: str | None = None,
        submitted_input: dict | None = None,
    ) -> StructuredErrorResponse | RedirectDirective:
        if wants_structured_response:
            return self._structured(error, error_id)
        return self._redirect(error, error_id, submitted_input or {})

    def _structured(
        self,
        error: ClassifiedError,
        error_id: str | None,
    ) -> StructuredErrorResponse:
        body = {
            "error": True,
            "message": error.message,
            "error_code": error.code,
        }

        if error.kind == ErrorKind.VALIDATION:
            body["errors"] = error.context.get("errors", {})
        elif error.kind == ErrorKind.BUSINESS_LOGIC:
            body["context"] = dict(error.context)
        elif error.kind == ErrorKind.AUTHORIZATION:
            body["required_permission"] = error.context.get("required_permission", "")
            body["required_role"] = error.context.get("required_role", "")
        elif error.kind == ErrorKind.UNKNOWN and self.debug and error.original is not None:
            body["technical_message"] = str(error.original)

        if error_id:
            body["error_id"] = error_id

        return StructuredErrorResponse(status_code=error.http_status, body=body)

    def _redirect(
        self,
        error: ClassifiedError,
        error_id: str | None,
        submitted_input: dict,
    ) -> RedirectDirective:
        flash: dict = {"error": error.message}
        target = BACK

        if error.kind == ErrorKind.AUTHORIZATION:
            # "back" may be exactly the page the caller cannot see.
            target = self.safe_landing_url
            flash["error_code"] = error.code
        elif error.kind == ErrorKind.VALIDATION:
            flash["errors"] = error.context.get("errors", {})
            flash["old_input"] = _flashable(submitted_input)
        elif error.kind == ErrorKind.BUSINESS_LOGIC:
            flash["error_code"] = error.code
            flash["error_context"] = dict(error.context)
            flash["old_input"] = _flashable(submitted_input)
        elif error.kind == ErrorKind.HTTP_STATUS:
            flash["error_code"] = error.code

        if error_id:
            flash["error_id"] = error_id

        return RedirectDirective(target=target, flash=flash)


def _flashable(submitted_input: dict) -> dict:
    """Submitted input safe to echo back, oversized values dropped."""
    kept = {}
    budget = MAX_FLASHED_INPUT_SIZE
    for key, value in submitted_input.items():
        if key in DONT_FLASH:
            continue
        size = len(json.dumps({key: value}, default=str))
        if size > MAX_FLASHED_VALUE_SIZE or size > budget:
            continue
        kept[key] = value
        budget -= size
    return kept
