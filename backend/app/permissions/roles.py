# Overview: Static role -> permission map.
#
# Roles are fixed (ADMIN, MANAGER, STAFF). Capabilities are resolved from this
# table once per request; there are no permission rows in the database.

ROLES = ("ADMIN", "MANAGER", "STAFF")

_STAFF = frozenset({
    "VIEW_PRODUCTS",
    "VIEW_INVENTORY",
    "VIEW_CUSTOMERS",
    "MANAGE_CUSTOMERS",
    "VIEW_SUPPLIERS",
    "VIEW_SALES",
    "CREATE_SALE",
    "EDIT_SALE",
    "DELETE_SALE",
})

_MANAGER = _STAFF | frozenset({
    "MANAGE_PRODUCTS",
    "MANAGE_SUPPLIERS",
    "ADJUST_INVENTORY",
    "VIEW_USERS",
})

_ADMIN = _MANAGER | frozenset({
    "DELETE_PRODUCTS",
    "DELETE_SUPPLIERS",
    "MANAGE_USERS",
})

DEFAULT_ROLE_PERMISSIONS = {
    "ADMIN": _ADMIN,
    "MANAGER": _MANAGER,
    "STAFF": _STAFF,
}
