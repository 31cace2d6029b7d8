# Overview: Permission system package.
# Re-exports all public APIs.

from .categories import PermissionCategory
from .definitions import (
    PERMISSION_DEFINITIONS,
    PRODUCT_PERMISSIONS,
    INVENTORY_PERMISSIONS,
    CUSTOMER_PERMISSIONS,
    SUPPLIER_PERMISSIONS,
    SALES_PERMISSIONS,
    USER_PERMISSIONS,
)
from .roles import DEFAULT_ROLE_PERMISSIONS, ROLES
from .helpers import (
    get_all_permission_codes,
    get_permissions_by_category,
    get_permission_definition,
)

__all__ = [
    "PermissionCategory",
    "PERMISSION_DEFINITIONS",
    "PRODUCT_PERMISSIONS",
    "INVENTORY_PERMISSIONS",
    "CUSTOMER_PERMISSIONS",
    "SUPPLIER_PERMISSIONS",
    "SALES_PERMISSIONS",
    "USER_PERMISSIONS",
    "DEFAULT_ROLE_PERMISSIONS",
    "ROLES",
    "get_all_permission_codes",
    "get_permissions_by_category",
    "get_permission_definition",
]
