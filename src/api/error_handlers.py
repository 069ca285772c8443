"""Adapts ExceptionDispatcher results to Starlette responses."""

from dataclasses import replace
import logging

from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, RedirectResponse, Response

from src.api.dependencies import get_request_context
from src.api.flash import flash
from src.api.templating import templates
from src.application.error_formatter import (
    BACK,
    ErrorResponseFormatter,
    RedirectDirective,
    StructuredErrorResponse,
)
from src.application.exception_dispatcher import (
    DispatchResult,
    ErrorPage,
    ExceptionDispatcher,
    RequestContext,
)
from src.config import settings
from src.domain.exceptions import BackOfficeError

logger = logging.getLogger(__name__)


def build_dispatcher() -> ExceptionDispatcher:
    return ExceptionDispatcher(
        formatter=ErrorResponseFormatter(
            safe_landing_url=settings.SAFE_LANDING_PATH,
            debug=settings.APP_DEBUG,
        )
    )


def build_request_context(request: Request) -> RequestContext:
    context = get_request_context(request)
    submitted = getattr(request.state, "submitted_input", None)
    if submitted:
        context = replace(context, submitted_input=dict(submitted))
    return context


def render_dispatch_result(
    request: Request,
    result: DispatchResult,
    context: RequestContext,
) -> Response:
    if isinstance(result, StructuredErrorResponse):
        return JSONResponse(
            status_code=result.status_code,
            content=jsonable_encoder(result.body),
        )

    if isinstance(result, RedirectDirective):
        if "session" in request.scope:
            flash(request, **result.flash)
        target = result.target
        if target == BACK:
            target = context.previous_location(settings.SAFE_LANDING_PATH)
        return RedirectResponse(
            target,
            status_code=result.status_code,
        )

    if isinstance(result, ErrorPage):
        return templates.TemplateResponse(
            request,
            result.template,
            {**result.context, "status_code": result.status_code},
            status_code=result.status_code,
        )

    raise TypeError(f"Unsupported dispatch result: {type(result)!r}")


def _dispatcher_for(request: Request) -> ExceptionDispatcher:
    dispatcher = getattr(request.app.state, "exception_dispatcher", None)
    if dispatcher is None:
        dispatcher = build_dispatcher()
        request.app.state.exception_dispatcher = dispatcher
    return dispatcher


async def handle_exception(request: Request, exc: Exception) -> Response:
    try:
        context = build_request_context(request)
        result = _dispatcher_for(request).dispatch(exc, context)
        return render_dispatch_result(request, result, context)
    except Exception:
        logger.exception("Error response rendering failed for %s %s", request.method, request.url.path)
        return PlainTextResponse("Internal Server Error", status_code=500)


class ExceptionDispatchMiddleware(BaseHTTPMiddleware):
    """Catch-all for failures no exception handler claimed; runs inside the session middleware."""

    async def dispatch(self, request: Request, call_next) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            return await handle_exception(request, exc)


def register_exception_handlers(app: FastAPI, dispatcher: ExceptionDispatcher | None = None) -> None:
    app.state.exception_dispatcher = dispatcher or build_dispatcher()
    app.add_exception_handler(BackOfficeError, handle_exception)
    app.add_exception_handler(StarletteHTTPException, handle_exception)
    app.add_exception_handler(RequestValidationError, handle_exception)
