# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/app/routes/products.py
"""
Product management routes.

SECURITY: All routes require authentication.
- Read operations require VIEW_PRODUCTS permission
- Create/update and supplier links require MANAGE_PRODUCTS permission
- Deleting products or supplier links requires DELETE_PRODUCTS permission
"""
from flask import Blueprint, request, g, current_app
from ..extensions import db
from ..models import Category, Product, ProductSupplier
from ..services import products_service
from ..services.products_service import ProductNotFoundError, ProductSupplierError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    enforce_rules_product_supplier,
    optional_int,
    ValidationError,
    ConflictError,
)
from ..decorators import require_auth, require_permission

PRODUCT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku", "name", "description", "price_cents", "cost_price_cents",
        "quantity", "minimum_stock", "category_id", "is_active",
    },
    required_on_create={"sku", "name", "price_cents"},
)

# Stock is only changed through sales and /api/inventory/adjust after creation
PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_CREATE_POLICY.writable_fields - {"quantity"},
)

PRODUCT_SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={"supplier_id", "is_preferred", "unit_price_cents", "notes"},
    required_on_create={"supplier_id"},
)

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description"},
    required_on_create={"name"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _product_detail(p: Product) -> dict:
    data = p.to_dict()
    data["suppliers"] = [link.to_dict() for link in products_service.list_product_suppliers(p.id)]
    return data


@products_bp.get("")
@require_auth
@require_permission("VIEW_PRODUCTS")
def list_products():
    """
    List products.

    Query params:
    - search: matches name, sku or description (case-insensitive)
    - category_id: int
    - low_stock: "true" to return only products at or below minimum stock
    - sort: field:asc|desc over name, sku, price_cents, quantity, created_at
    - active_only: "true" to hide deactivated products
    """
    try:
        category_id = optional_int("category_id", request.args.get("category_id"))
        products = products_service.list_products(
            search=request.args.get("search"),
            category_id=category_id,
            low_stock=request.args.get("low_stock", "false").lower() == "true",
            sort=request.args.get("sort"),
            include_inactive=request.args.get("active_only", "false").lower() != "true",
        )
    except ValidationError as e:
        return {"error": str(e)}, 400

    return {"items": [p.to_dict() for p in products], "count": len(products)}


@products_bp.get("/<int:product_id>")
@require_auth
@require_permission("VIEW_PRODUCTS")
def get_product_route(product_id: int):
    try:
        p = products_service.get_product(product_id)
    except ProductNotFoundError as e:
        return {"error": str(e)}, 404
    return _product_detail(p), 200


@products_bp.post("")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def create_product_route():
    """
    Create a new product.

    `quantity` sets the opening stock; afterwards stock only moves through
    sales and inventory adjustments.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_CREATE_POLICY, partial=False)
        enforce_rules_product(patch)  # Handles price validation including max check
        created = products_service.create_product(patch=patch, created_by_user_id=g.current_user.id)
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Error creating product")
        return {"error": "Error creating product"}, 500

    return created.to_dict(), 201


@products_bp.put("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
        enforce_rules_product(patch)
        updated = products_service.update_product(product_id=product_id, patch=patch)
    except ProductNotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Error updating product %s", product_id)
        return {"error": "Error updating product"}, 500

    return updated.to_dict(), 200


@products_bp.delete("/<int:product_id>")
@require_auth
@require_permission("DELETE_PRODUCTS")
def delete_product_route(product_id: int):
    """
    Delete a product.

    Products with sales or inventory history are refused with 409; set
    is_active=false instead.
    """
    try:
        products_service.delete_product(product_id=product_id)
    except ProductNotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Error deleting product %s", product_id)
        return {"error": "Error deleting product"}, 500

    return {"ok": True}, 200


# -- Categories --

@products_bp.get("/categories")
@require_auth
@require_permission("VIEW_PRODUCTS")
def list_categories_route():
    categories = products_service.list_categories()
    return {"items": [c.to_dict() for c in categories], "count": len(categories)}


@products_bp.post("/categories")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def create_category_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)
        category = products_service.create_category(**patch)
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValidationError as e:
        return {"error": str(e)}, 400
    return category.to_dict(), 201


# -- Product suppliers --

@products_bp.get("/<int:product_id>/suppliers")
@require_auth
@require_permission("VIEW_PRODUCTS")
def list_product_suppliers_route(product_id: int):
    try:
        links = products_service.list_product_suppliers(product_id)
    except ProductNotFoundError as e:
        return {"error": str(e)}, 404
    return {"items": [link.to_dict() for link in links], "count": len(links)}


@products_bp.post("/<int:product_id>/suppliers")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def add_product_supplier_route(product_id: int):
    """Link a supplier; is_preferred=true clears the flag on the product's other links."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=ProductSupplier, payload=payload, policy=PRODUCT_SUPPLIER_POLICY, partial=False)
        enforce_rules_product_supplier(patch)
        link = products_service.add_product_supplier(
            product_id=product_id,
            supplier_id=patch.pop("supplier_id"),
            patch=patch,
        )
    except ProductNotFoundError as e:
        return {"error": str(e)}, 404
    except (ProductSupplierError, ValidationError) as e:
        return {"error": str(e)}, 400

    return link.to_dict(), 201


@products_bp.put("/<int:product_id>/suppliers/<int:supplier_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def update_product_supplier_route(product_id: int, supplier_id: int):
    payload = request.get_json(silent=True) or {}
    payload.pop("supplier_id", None)

    try:
        patch = validate_payload(model=ProductSupplier, payload=payload, policy=PRODUCT_SUPPLIER_POLICY, partial=True)
        enforce_rules_product_supplier(patch)
        link = products_service.update_product_supplier(product_id=product_id, supplier_id=supplier_id, patch=patch)
    except ProductNotFoundError as e:
        return {"error": str(e)}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400

    return link.to_dict(), 200


@products_bp.delete("/<int:product_id>/suppliers/<int:supplier_id>")
@require_auth
@require_permission("DELETE_PRODUCTS")
def remove_product_supplier_route(product_id: int, supplier_id: int):
    try:
        products_service.remove_product_supplier(product_id=product_id, supplier_id=supplier_id)
    except ProductNotFoundError as e:
        return {"error": str(e)}, 404
    return {"ok": True}, 200
