# tests/unit/test_permissions.py

import pytest

from src.domain.exceptions import AuthorizationError
from src.domain.permissions import CurrentUser, PermissionChecker, Role

checker = PermissionChecker()


@pytest.mark.parametrize(
    "role, permission, allowed",
    [
        (Role.ADMIN, "delete-users", True),
        (Role.MANAGER, "edit-settings", True),
        (Role.MANAGER, "create-users", False),
        (Role.STAFF, "create-transactions", True),
        (Role.STAFF, "edit-transactions", False),
        (Role.STAFF, "view-settings", False),
    ],
)
def test_role_permission_matrix(role, permission, allowed):
    assert CurrentUser(id="u1", role=role).has_permission(permission) is allowed


def test_missing_permission_is_forbidden():
    staff = CurrentUser(id="u1", role=Role.STAFF)

    with pytest.raises(AuthorizationError) as exc_info:
        checker.require_permission(staff, "edit-transactions")

    assert exc_info.value.status_code == 403
    assert exc_info.value.required_permission == "edit-transactions"


def test_anonymous_caller_is_unauthenticated():
    with pytest.raises(AuthorizationError) as exc_info:
        checker.require_permission(None, "view-bookings")

    assert exc_info.value.status_code == 401


def test_require_role():
    admin = CurrentUser(id="u1", role=Role.ADMIN)
    manager = CurrentUser(id="u2", role=Role.MANAGER)

    assert checker.require_role(admin, Role.ADMIN) is admin
    with pytest.raises(AuthorizationError) as exc_info:
        checker.require_role(manager, Role.ADMIN)

    assert exc_info.value.required_role == "admin"
