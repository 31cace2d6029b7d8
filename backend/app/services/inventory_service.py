# Overview: Service-layer operations for inventory; encapsulates business logic and database work.

# backend/app/services/inventory_service.py
"""
Inventory Invariants

Stock model:
- Product.quantity is the on-hand count and may never go negative.
- Every change to Product.quantity is paired with exactly one InventoryLog row
  written in the same DB transaction.
- InventoryLog is append-only (no updates/deletes from the API).

Sign conventions for InventoryLog.quantity (signed delta):
- SALE and WRITE_OFF are negative
- PURCHASE and RETURN are positive
- ADJUSTMENT may be either sign, never zero

SALE rows are written by sales_service only; this module handles the manual
movement types.
"""

from __future__ import annotations

from ..extensions import db
from ..models import InventoryLog, Product, INVENTORY_LOG_TYPES
from ..validation import ValidationError
from .concurrency import lock_for_update, run_with_retry


MANUAL_LOG_TYPES = ("ADJUSTMENT", "PURCHASE", "RETURN", "WRITE_OFF")
DEFAULT_LOG_LIMIT = 100
MAX_LOG_LIMIT = 1000


class InventoryAdjustmentError(Exception):
    """Raised when a stock movement would break an inventory invariant."""
    pass


class ProductNotFoundError(InventoryAdjustmentError):
    pass


def _check_delta_sign(log_type: str, quantity_delta: int) -> None:
    if quantity_delta == 0:
        raise ValidationError("quantity must be non-zero")
    if log_type in ("PURCHASE", "RETURN") and quantity_delta < 0:
        raise ValidationError(f"{log_type} quantity must be positive")
    if log_type == "WRITE_OFF" and quantity_delta > 0:
        raise ValidationError("WRITE_OFF quantity must be negative")


def record_movement(
    product: Product,
    *,
    quantity_delta: int,
    log_type: str,
    reference: str | None = None,
    notes: str | None = None,
    user_id: int | None = None,
) -> InventoryLog:
    """
    Apply a stock delta to an already-locked product and append its log row.

    Does not commit; callers own the transaction.
    """
    new_quantity = (product.quantity or 0) + quantity_delta
    if new_quantity < 0:
        raise InventoryAdjustmentError(
            f"Insufficient stock for product {product.name}. Available: {product.quantity}"
        )

    product.quantity = new_quantity
    log = InventoryLog(
        product_id=product.id,
        quantity=quantity_delta,
        type=log_type,
        reference=reference,
        notes=notes,
        user_id=user_id,
    )
    db.session.add(log)
    return log


def adjust_stock(
    *,
    product_id: int,
    quantity_delta: int,
    log_type: str = "ADJUSTMENT",
    reference: str | None = None,
    notes: str | None = None,
    user_id: int | None = None,
) -> InventoryLog:
    """
    Record a manual stock movement (purchase, return, write-off, correction).

    Locks the product row, applies the delta and writes the log in one
    transaction; retried on lock contention.
    """
    log_type = log_type or "ADJUSTMENT"
    if not isinstance(log_type, str):
        raise ValidationError(f"type must be one of: {', '.join(MANUAL_LOG_TYPES)}")
    log_type = log_type.strip().upper()
    if log_type not in MANUAL_LOG_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(MANUAL_LOG_TYPES)}")
    _check_delta_sign(log_type, quantity_delta)

    def _op():
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if product is None:
            raise ProductNotFoundError("Product not found")

        try:
            log = record_movement(
                product,
                quantity_delta=quantity_delta,
                log_type=log_type,
                reference=reference,
                notes=notes,
                user_id=user_id,
            )
        except InventoryAdjustmentError:
            db.session.rollback()
            raise

        db.session.commit()
        return log

    return run_with_retry(_op)


def list_logs(
    *,
    product_id: int | None = None,
    log_type: str | None = None,
    limit: int = DEFAULT_LOG_LIMIT,
) -> list[InventoryLog]:
    if limit < 1 or limit > MAX_LOG_LIMIT:
        raise ValidationError(f"limit must be between 1 and {MAX_LOG_LIMIT}")

    query = db.session.query(InventoryLog)
    if product_id is not None:
        query = query.filter(InventoryLog.product_id == product_id)
    if log_type:
        log_type = log_type.strip().upper()
        if log_type not in INVENTORY_LOG_TYPES:
            raise ValidationError(f"type must be one of: {', '.join(INVENTORY_LOG_TYPES)}")
        query = query.filter(InventoryLog.type == log_type)

    return (
        query.order_by(InventoryLog.created_at.desc(), InventoryLog.id.desc())
        .limit(limit)
        .all()
    )


def low_stock_products() -> list[Product]:
    """Active products at or below their minimum stock, lowest stock first."""
    return (
        db.session.query(Product)
        .filter(Product.is_active.is_(True), Product.quantity <= Product.minimum_stock)
        .order_by(Product.quantity.asc(), Product.name.asc())
        .all()
    )
