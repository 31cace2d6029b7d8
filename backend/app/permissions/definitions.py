# Overview: All permission definitions organized by category.
# Each permission is defined as: (code, name, description, category)

from .categories import PermissionCategory


# -- PRODUCTS --

PRODUCT_PERMISSIONS = [
    (
        "VIEW_PRODUCTS",
        "View Products",
        "View the product catalog and supplier links",
        PermissionCategory.PRODUCTS,
    ),
    (
        "MANAGE_PRODUCTS",
        "Manage Products",
        "Create and edit products and their supplier links",
        PermissionCategory.PRODUCTS,
    ),
    (
        "DELETE_PRODUCTS",
        "Delete Products",
        "Permanently delete products",
        PermissionCategory.PRODUCTS,
    ),
]


# -- INVENTORY --

INVENTORY_PERMISSIONS = [
    (
        "VIEW_INVENTORY",
        "View Inventory",
        "View stock levels and inventory log entries",
        PermissionCategory.INVENTORY,
    ),
    (
        "ADJUST_INVENTORY",
        "Adjust Inventory",
        "Record purchases, returns, write-offs and manual corrections",
        PermissionCategory.INVENTORY,
    ),
]


# -- CUSTOMERS --

CUSTOMER_PERMISSIONS = [
    (
        "VIEW_CUSTOMERS",
        "View Customers",
        "View customer list and purchase history",
        PermissionCategory.CUSTOMERS,
    ),
    (
        "MANAGE_CUSTOMERS",
        "Manage Customers",
        "Create, edit and delete customers",
        PermissionCategory.CUSTOMERS,
    ),
]


# -- SUPPLIERS --

SUPPLIER_PERMISSIONS = [
    (
        "VIEW_SUPPLIERS",
        "View Suppliers",
        "View supplier list",
        PermissionCategory.SUPPLIERS,
    ),
    (
        "MANAGE_SUPPLIERS",
        "Manage Suppliers",
        "Create and edit suppliers",
        PermissionCategory.SUPPLIERS,
    ),
    (
        "DELETE_SUPPLIERS",
        "Delete Suppliers",
        "Permanently delete suppliers",
        PermissionCategory.SUPPLIERS,
    ),
]


# -- SALES --

SALES_PERMISSIONS = [
    (
        "VIEW_SALES",
        "View Sales",
        "View sales and invoices",
        PermissionCategory.SALES,
    ),
    (
        "CREATE_SALE",
        "Create Sale",
        "Record new sales",
        PermissionCategory.SALES,
    ),
    (
        "EDIT_SALE",
        "Edit Sale",
        "Change sale status, payment method, discount and tax",
        PermissionCategory.SALES,
    ),
    (
        "DELETE_SALE",
        "Delete Sale",
        "Delete pending or cancelled sales",
        PermissionCategory.SALES,
    ),
]


# -- USERS --

USER_PERMISSIONS = [
    (
        "VIEW_USERS",
        "View Users",
        "View user accounts",
        PermissionCategory.USERS,
    ),
    (
        "MANAGE_USERS",
        "Manage Users",
        "Create, edit and delete user accounts and assign roles",
        PermissionCategory.USERS,
    ),
]


# Combined list of all permissions
PERMISSION_DEFINITIONS = (
    PRODUCT_PERMISSIONS
    + INVENTORY_PERMISSIONS
    + CUSTOMER_PERMISSIONS
    + SUPPLIER_PERMISSIONS
    + SALES_PERMISSIONS
    + USER_PERMISSIONS
)
