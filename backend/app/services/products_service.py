# backend/app/services/products_service.py
"""
Products Service

Catalog CRUD plus product <-> supplier links.

Stock (Product.quantity) is set here only at creation time; afterwards it is
owned by sales_service and inventory_service so that every change has a
matching inventory log row.
"""
from __future__ import annotations

from sqlalchemy import update

from ..extensions import db
from ..models import Category, InventoryLog, Product, ProductSupplier, SaleItem, Supplier
from ..validation import ConflictError, ValidationError

PRODUCT_MUTABLE_FIELDS = {
    "sku",
    "name",
    "description",
    "price_cents",
    "cost_price_cents",
    "minimum_stock",
    "category_id",
    "is_active",
}

PRODUCT_SORT_FIELDS = {
    "name": Product.name,
    "sku": Product.sku,
    "price_cents": Product.price_cents,
    "quantity": Product.quantity,
    "created_at": Product.created_at,
}


class ProductNotFoundError(Exception):
    pass


class ProductSupplierError(Exception):
    """Invalid product/supplier link operation (HTTP 400)."""


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def parse_sort(sort: str | None):
    """'field:asc|desc' -> ORDER BY clause. Defaults to name:asc."""
    field, _, direction = (sort or "name:asc").partition(":")
    column = PRODUCT_SORT_FIELDS.get(field.strip())
    if column is None:
        raise ValidationError(f"sort field must be one of: {', '.join(sorted(PRODUCT_SORT_FIELDS))}")
    direction = (direction or "asc").strip().lower()
    if direction not in ("asc", "desc"):
        raise ValidationError("sort direction must be asc or desc")
    return column.asc() if direction == "asc" else column.desc()


def list_products(
    *,
    search: str | None = None,
    category_id: int | None = None,
    low_stock: bool = False,
    sort: str | None = None,
    include_inactive: bool = True,
) -> list[Product]:
    query = db.session.query(Product)

    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(
            db.or_(
                Product.name.ilike(like),
                Product.sku.ilike(like),
                Product.description.ilike(like),
            )
        )
    if low_stock:
        query = query.filter(Product.quantity <= Product.minimum_stock)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))

    return query.order_by(parse_sort(sort), Product.id.asc()).all()


def get_product(product_id: int) -> Product:
    p = db.session.get(Product, product_id)
    if not p:
        raise ProductNotFoundError("Product not found")
    return p


def _require_category(category_id: int | None) -> None:
    if category_id is not None and db.session.get(Category, category_id) is None:
        raise ValidationError("Category not found")


def _sku_taken(sku: str, exclude_id: int | None = None) -> bool:
    query = db.session.query(Product.id).filter(Product.sku == sku)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    return query.first() is not None


def create_product(*, patch: dict, created_by_user_id: int | None = None) -> Product:
    """
    Create product using a validated patch dict.

    Opening stock (`quantity`) is accepted on create only.

    Raises:
        ConflictError: If SKU already exists
        ValidationError: If category_id does not exist
    """
    sku = patch.get("sku")
    if sku is None:
        raise ValidationError("sku is required")
    if _sku_taken(sku):
        raise ConflictError("Product with this SKU already exists")
    _require_category(patch.get("category_id"))

    p = Product(created_by_user_id=created_by_user_id, quantity=patch.get("quantity") or 0)
    apply_product_patch(p, patch)

    db.session.add(p)
    db.session.commit()
    return p


def update_product(*, product_id: int, patch: dict) -> Product:
    """
    Update a product.

    Raises:
        ProductNotFoundError
        ConflictError: If new SKU already exists
    """
    p = get_product(product_id)

    if "sku" in patch and patch["sku"] != p.sku and _sku_taken(patch["sku"], exclude_id=p.id):
        raise ConflictError("Product with this SKU already exists")
    if "category_id" in patch:
        _require_category(patch["category_id"])

    apply_product_patch(p, patch)
    db.session.commit()
    return p


def delete_product(*, product_id: int) -> None:
    """
    Hard-delete a product that has no history.

    Products referenced by sale items or inventory logs keep their rows so
    invoices stay readable; deactivate them (is_active=false) instead.
    """
    p = get_product(product_id)

    has_sales = db.session.query(SaleItem.id).filter(SaleItem.product_id == p.id).first() is not None
    has_logs = db.session.query(InventoryLog.id).filter(InventoryLog.product_id == p.id).first() is not None
    if has_sales or has_logs:
        raise ConflictError("Product has sales or inventory history; deactivate it instead")

    db.session.delete(p)
    db.session.commit()


# -- Categories --

def list_categories() -> list[Category]:
    return db.session.query(Category).order_by(Category.name.asc()).all()


def create_category(*, name: str, description: str | None = None) -> Category:
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required")
    if db.session.query(Category.id).filter(Category.name == name).first():
        raise ConflictError("Category already exists")
    category = Category(name=name, description=description)
    db.session.add(category)
    db.session.commit()
    return category


# -- Product suppliers --

def list_product_suppliers(product_id: int) -> list[ProductSupplier]:
    get_product(product_id)
    return (
        db.session.query(ProductSupplier)
        .filter(ProductSupplier.product_id == product_id)
        .order_by(ProductSupplier.is_preferred.desc(), ProductSupplier.id.asc())
        .all()
    )


def _clear_preferred(product_id: int, except_link_id: int | None = None) -> None:
    stmt = (
        update(ProductSupplier)
        .where(ProductSupplier.product_id == product_id, ProductSupplier.is_preferred.is_(True))
        .values(is_preferred=False)
        .execution_options(synchronize_session="fetch")
    )
    if except_link_id is not None:
        stmt = stmt.where(ProductSupplier.id != except_link_id)
    db.session.execute(stmt)


def _get_link(product_id: int, supplier_id: int) -> ProductSupplier:
    link = (
        db.session.query(ProductSupplier)
        .filter_by(product_id=product_id, supplier_id=supplier_id)
        .first()
    )
    if not link:
        raise ProductNotFoundError("Supplier is not associated with this product")
    return link


def add_product_supplier(*, product_id: int, supplier_id: int, patch: dict) -> ProductSupplier:
    """
    Link a supplier to a product.

    Setting is_preferred clears the flag on the product's other links so at
    most one preferred supplier exists per product.
    """
    get_product(product_id)
    if db.session.get(Supplier, supplier_id) is None:
        raise ProductNotFoundError("Supplier not found")

    exists = (
        db.session.query(ProductSupplier.id)
        .filter_by(product_id=product_id, supplier_id=supplier_id)
        .first()
    )
    if exists:
        raise ProductSupplierError("This supplier is already associated with the product")

    if patch.get("is_preferred"):
        _clear_preferred(product_id)

    link = ProductSupplier(
        product_id=product_id,
        supplier_id=supplier_id,
        is_preferred=bool(patch.get("is_preferred")),
        unit_price_cents=patch.get("unit_price_cents"),
        notes=patch.get("notes"),
    )
    db.session.add(link)
    db.session.commit()
    return link


def update_product_supplier(*, product_id: int, supplier_id: int, patch: dict) -> ProductSupplier:
    link = _get_link(product_id, supplier_id)

    if patch.get("is_preferred") and not link.is_preferred:
        _clear_preferred(product_id, except_link_id=link.id)

    for k in ("is_preferred", "unit_price_cents", "notes"):
        if k in patch:
            setattr(link, k, patch[k] if k != "is_preferred" else bool(patch[k]))

    db.session.commit()
    return link


def remove_product_supplier(*, product_id: int, supplier_id: int) -> None:
    link = _get_link(product_id, supplier_id)
    db.session.delete(link)
    db.session.commit()
