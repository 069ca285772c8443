import logging
from typing import Protocol
from uuid import uuid4

logger = logging.getLogger(__name__)


class ErrorReporter(Protocol):
    def report(self, failure: BaseException, context: dict) -> str:
        """Record an unexpected failure and return an opaque error id."""
        ...


class LoggingErrorReporter:
    """Writes unexpected failures, with traceback and request context, to the log."""

    def report(self, failure: BaseException, context: dict) -> str:
        error_id = f"err_{uuid4().hex}"
        logger.error(
            "Error ID: %s - %s",
            error_id,
            failure,
            exc_info=(type(failure), failure, failure.__traceback__),
            extra={
                "error_id": error_id,
                "user_id": context.get("user_id"),
                "url": context.get("url"),
                "method": context.get("method"),
            },
        )
        return error_id
