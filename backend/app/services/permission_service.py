# Overview: Service-layer operations for permission; role-based capability resolution.

"""
Permission Checking

WHY: Enforce role-based access control from a single static table.
Capabilities are resolved from the user's role once per request and cached
on flask.g by the require_auth decorator.

DESIGN PRINCIPLES:
- Fail closed: unknown roles resolve to an empty permission set
- Log denials only: permission grants are not logged
"""

from flask import current_app

from ..models import User
from ..permissions import DEFAULT_ROLE_PERMISSIONS


class PermissionDeniedError(Exception):
    """Raised when user lacks required permission."""
    pass


def get_role_permissions(role: str | None) -> frozenset[str]:
    """
    Get all permission codes granted to a role.

    Returns an empty set for unknown roles (fail closed).
    """
    return DEFAULT_ROLE_PERMISSIONS.get(role or "", frozenset())


def get_user_permissions(user: User) -> frozenset[str]:
    """Permission codes for an active user; inactive users have none."""
    if not user or not user.is_active:
        return frozenset()
    return get_role_permissions(user.role)


def require_permission(
    user: User,
    permission_code: str,
    permissions: frozenset[str] | None = None,
    resource: str | None = None,
    ip_address: str | None = None,
) -> None:
    """
    Require user to have permission, raise PermissionDeniedError if not.

    `permissions` may carry the already-resolved set for the request so the
    role table is not consulted again.

    Denials are written to the application log.

    Usage:
        require_permission(user, "CREATE_SALE", resource="/api/sales")
    """
    if permissions is None:
        permissions = get_user_permissions(user)

    if permission_code not in permissions:
        current_app.logger.warning(
            "Permission denied: user_id=%s role=%s permission=%s resource=%s ip=%s",
            user.id if user else None,
            user.role if user else None,
            permission_code,
            resource,
            ip_address,
        )
        raise PermissionDeniedError(f"Permission denied: {permission_code}")
