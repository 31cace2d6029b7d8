# Overview: Service-layer operations for suppliers; encapsulates business logic and database work.

"""
Supplier Service

Suppliers are linked to products through ProductSupplier rows (see
products_service). Deleting a supplier removes its product links.
"""

from ..extensions import db
from ..models import Supplier
from ..validation import ValidationError

SUPPLIER_MUTABLE_FIELDS = {"name", "email", "phone", "address"}

SUPPLIER_SORT_FIELDS = {
    "name": Supplier.name,
    "email": Supplier.email,
    "created_at": Supplier.created_at,
}


class SupplierNotFoundError(Exception):
    """Raised when a supplier is not found."""
    pass


class SupplierValidationError(Exception):
    """Raised when supplier data fails validation."""
    pass


def _order_by(sort: str | None):
    field, _, direction = (sort or "name:asc").partition(":")
    column = SUPPLIER_SORT_FIELDS.get(field.strip())
    if column is None:
        raise ValidationError(f"sort field must be one of: {', '.join(sorted(SUPPLIER_SORT_FIELDS))}")
    return column.desc() if direction.strip().lower() == "desc" else column.asc()


def list_suppliers(*, search: str | None = None, sort: str | None = None) -> list[Supplier]:
    query = db.session.query(Supplier)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(
            db.or_(
                Supplier.name.ilike(like),
                Supplier.email.ilike(like),
                Supplier.phone.ilike(like),
            )
        )
    return query.order_by(_order_by(sort), Supplier.id.asc()).all()


def get_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if not supplier:
        raise SupplierNotFoundError("Supplier not found")
    return supplier


def create_supplier(*, patch: dict) -> Supplier:
    """
    Create a new supplier.

    Raises:
        SupplierValidationError: If name is missing
    """
    name = (patch.get("name") or "").strip()
    if not name:
        raise SupplierValidationError("Supplier name is required")

    supplier = Supplier()
    for k, v in patch.items():
        if k in SUPPLIER_MUTABLE_FIELDS:
            setattr(supplier, k, v)

    db.session.add(supplier)
    db.session.commit()
    return supplier


def update_supplier(*, supplier_id: int, patch: dict) -> Supplier:
    supplier = get_supplier(supplier_id)
    for k, v in patch.items():
        if k in SUPPLIER_MUTABLE_FIELDS:
            setattr(supplier, k, v)
    db.session.commit()
    return supplier


def delete_supplier(*, supplier_id: int) -> None:
    supplier = get_supplier(supplier_id)
    db.session.delete(supplier)
    db.session.commit()
