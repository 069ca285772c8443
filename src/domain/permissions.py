"""Role-based access control. No FastAPI."""

from dataclasses import dataclass
from enum import Enum

from src.domain.exceptions import AuthorizationError


class Role(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    STAFF = "staff"


# permission name -> module
PERMISSIONS: dict[str, str] = {
    "view-users": "users",
    "create-users": "users",
    "edit-users": "users",
    "delete-users": "users",
    "view-properties": "properties",
    "create-properties": "properties",
    "edit-properties": "properties",
    "delete-properties": "properties",
    "view-tenants": "tenants",
    "create-tenants": "tenants",
    "edit-tenants": "tenants",
    "delete-tenants": "tenants",
    "view-leases": "leases",
    "create-leases": "leases",
    "edit-leases": "leases",
    "delete-leases": "leases",
    "view-bookings": "bookings",
    "create-bookings": "bookings",
    "edit-bookings": "bookings",
    "delete-bookings": "bookings",
    "view-accounting": "accounting",
    "create-transactions": "accounting",
    "edit-transactions": "accounting",
    "delete-transactions": "accounting",
    "view-reports": "reports",
    "export-reports": "reports",
    "view-settings": "settings",
    "edit-settings": "settings",
}

_ROLE_PERMISSIONS: dict[Role, frozenset[str]] = {
    Role.ADMIN: frozenset(PERMISSIONS),
    Role.MANAGER: frozenset(
        name for name, module in PERMISSIONS.items() if module != "users"
    ),
    Role.STAFF: frozenset(
        {
            "view-properties",
            "view-tenants",
            "view-leases",
            "view-bookings",
            "create-bookings",
            "edit-bookings",
            "view-accounting",
            "create-transactions",
        }
    ),
}


@dataclass(frozen=True)
class CurrentUser:
    id: str
    role: Role

    def has_permission(self, permission: str) -> bool:
        return permission in _ROLE_PERMISSIONS.get(self.role, frozenset())

    def has_role(self, role: Role) -> bool:
        return self.role == role


class PermissionChecker:
    """Check permission or role for the caller. Raise AuthorizationError if missing."""

    def require_permission(self, user: CurrentUser | None, permission: str) -> CurrentUser:
        if user is None:
            raise AuthorizationError(
                "Authentication is required to access this resource.",
                required_permission=permission,
                status_code=401,
            )
        if not user.has_permission(permission):
            raise AuthorizationError(
                "You do not have permission to access this resource.",
                required_permission=permission,
            )
        return user

    def require_role(self, user: CurrentUser | None, role: Role) -> CurrentUser:
        if user is None:
            raise AuthorizationError(
                "Authentication is required to access this resource.",
                required_role=role.value,
                status_code=401,
            )
        if not user.has_role(role):
            raise AuthorizationError(
                "You do not have the required role to access this resource.",
                required_role=role.value,
            )
        return user
