from .auth import User, SessionToken
from .inventory import Category, Product, InventoryLog, Supplier, ProductSupplier, INVENTORY_LOG_TYPES
from .customers import Customer
from .sales import Sale, SaleItem, SALE_STATUSES, PAYMENT_METHODS
from .documents import DocumentSequence

__all__ = [
    'User', 'SessionToken',
    'Category', 'Product', 'InventoryLog', 'Supplier', 'ProductSupplier',
    'Customer',
    'Sale', 'SaleItem',
    'DocumentSequence',
    'INVENTORY_LOG_TYPES', 'SALE_STATUSES', 'PAYMENT_METHODS',
]
