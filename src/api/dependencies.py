"""FastAPI dependency injection: db session, booking service, request context, caller identity."""

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from src.application.booking_service import BookingService
from src.application.exception_dispatcher import RequestContext
from src.domain.permissions import CurrentUser, PermissionChecker, Role
from src.infrastructure.db.session import SessionLocal
from src.infrastructure.payments.razorpay_gateway import PaymentGateway, get_payment_gateway

USER_ID_HEADER = "X-User-Id"
USER_ROLE_HEADER = "X-User-Role"

_permission_checker = PermissionChecker()


def get_db():
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_booking_service(
    db: Session = Depends(get_db),
    gateway: PaymentGateway | None = Depends(get_payment_gateway),
) -> BookingService:
    return BookingService(db, gateway=gateway)


def get_current_user(request: Request) -> CurrentUser | None:
    """Identity forwarded by the upstream gateway. Unknown roles count as anonymous."""
    user_id = (request.headers.get(USER_ID_HEADER) or "").strip()
    role_name = (request.headers.get(USER_ROLE_HEADER) or "").strip().lower()
    if not user_id or not role_name:
        return None
    try:
        role = Role(role_name)
    except ValueError:
        return None
    return CurrentUser(id=user_id, role=role)


def get_request_context(request: Request) -> RequestContext:
    user = get_current_user(request)
    return RequestContext(
        path=request.url.path,
        method=request.method,
        accept=request.headers.get("accept", ""),
        url=str(request.url),
        referer=request.headers.get("referer"),
        user_id=user.id if user else None,
    )


def require_permission(permission: str):
    def dependency(user: CurrentUser | None = Depends(get_current_user)) -> CurrentUser:
        return _permission_checker.require_permission(user, permission)

    return dependency


def require_role(role: Role):
    def dependency(user: CurrentUser | None = Depends(get_current_user)) -> CurrentUser:
        return _permission_checker.require_role(user, role)

    return dependency
