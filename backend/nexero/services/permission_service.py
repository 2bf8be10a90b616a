# Overview: Service-layer operations for permission; role-based access control.

"""
Role-based permissions.

Roles are fixed per user (User.role); each role maps to a set of permission
codes. Fail closed: an unknown role has no permissions.
"""

from __future__ import annotations

from flask import current_app

POS = "POS"
ORDERS = "ORDERS"
PRODUCTS = "PRODUCTS"
INVENTORY = "INVENTORY"
FINANCE = "FINANCE"
CLIENTS = "CLIENTS"

ALL_PERMISSIONS = frozenset({POS, ORDERS, PRODUCTS, INVENTORY, FINANCE, CLIENTS})

ROLE_PERMISSIONS = {
    "ADMIN": ALL_PERMISSIONS,
    "MANAGER": ALL_PERMISSIONS,
    "SELLER": frozenset({POS, ORDERS, CLIENTS}),
    "CASHIER": frozenset({POS}),
}

ROLES = tuple(ROLE_PERMISSIONS.keys())


class PermissionDeniedError(Exception):
    """Raised when user lacks required permission."""
    pass


def get_user_permissions(user) -> frozenset:
    return ROLE_PERMISSIONS.get((user.role or "").upper(), frozenset())


def user_has_permission(user, permission_code: str) -> bool:
    return permission_code in get_user_permissions(user)


def require_permission(user, permission_code: str, *, resource: str | None = None) -> None:
    """Raise PermissionDeniedError (and log the denial) unless the user's role grants the code."""
    if user_has_permission(user, permission_code):
        return
    current_app.logger.warning(
        "PERMISSION_DENIED user_id=%s org_id=%s role=%s permission=%s resource=%s",
        user.id, user.org_id, user.role, permission_code, resource,
    )
    raise PermissionDeniedError(f"Missing permission: {permission_code}")
