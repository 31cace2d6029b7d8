# Overview: Flask API routes for suppliers operations; parses input and returns JSON responses.

from flask import Blueprint, request
from ..models import Supplier
from ..services import supplier_service
from ..services.supplier_service import SupplierNotFoundError, SupplierValidationError
from ..validation import ModelValidationPolicy, validate_payload, ValidationError
from ..decorators import require_auth, require_permission

SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields=set(supplier_service.SUPPLIER_MUTABLE_FIELDS),
    required_on_create={"name"},
)

suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


@suppliers_bp.get("")
@require_auth
@require_permission("VIEW_SUPPLIERS")
def list_suppliers():
    """
    Query params:
    - search: matches name, email or phone
    - sort: field:asc|desc over name, email, created_at (default name:asc)
    """
    try:
        suppliers = supplier_service.list_suppliers(
            search=request.args.get("search"),
            sort=request.args.get("sort"),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    return {"items": [s.to_dict() for s in suppliers], "count": len(suppliers)}


@suppliers_bp.get("/<int:supplier_id>")
@require_auth
@require_permission("VIEW_SUPPLIERS")
def get_supplier_route(supplier_id: int):
    try:
        supplier = supplier_service.get_supplier(supplier_id)
    except SupplierNotFoundError as e:
        return {"error": str(e)}, 404

    data = supplier.to_dict()
    data["products"] = [
        {
            "product_id": link.product_id,
            "name": link.product.name,
            "sku": link.product.sku,
            "is_preferred": link.is_preferred,
            "unit_price_cents": link.unit_price_cents,
        }
        for link in supplier.product_links
    ]
    return data, 200


@suppliers_bp.post("")
@require_auth
@require_permission("MANAGE_SUPPLIERS")
def create_supplier_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=False)
        supplier = supplier_service.create_supplier(patch=patch)
    except (SupplierValidationError, ValidationError) as e:
        return {"error": str(e)}, 400

    return supplier.to_dict(), 201


@suppliers_bp.put("/<int:supplier_id>")
@require_auth
@require_permission("MANAGE_SUPPLIERS")
def update_supplier_route(supplier_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=True)
        supplier = supplier_service.update_supplier(supplier_id=supplier_id, patch=patch)
    except SupplierNotFoundError as e:
        return {"error": str(e)}, 404
    except (SupplierValidationError, ValidationError) as e:
        return {"error": str(e)}, 400

    return supplier.to_dict(), 200


@suppliers_bp.delete("/<int:supplier_id>")
@require_auth
@require_permission("DELETE_SUPPLIERS")
def delete_supplier_route(supplier_id: int):
    try:
        supplier_service.delete_supplier(supplier_id=supplier_id)
    except SupplierNotFoundError as e:
        return {"error": str(e)}, 404

    return {"message": "Supplier deleted successfully"}, 200
