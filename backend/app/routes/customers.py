# Overview: Flask API routes for customers operations; parses input and returns JSON responses.

from flask import Blueprint, request, current_app
from ..extensions import db
from ..models import Customer
from ..pagination import parse_pagination
from ..services import customer_service
from ..services.customer_service import CustomerNotFoundError, CustomerInUseError
from ..validation import ModelValidationPolicy, validate_payload, ValidationError, ConflictError
from ..decorators import require_auth, require_permission

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields=set(customer_service.CUSTOMER_MUTABLE_FIELDS),
    required_on_create={"name"},
)

DEFAULT_CUSTOMER_PAGE_SIZE = 50

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
@require_permission("VIEW_CUSTOMERS")
def list_customers():
    """
    List customers by name.

    Query params:
    - query: matches name, email or phone (case-insensitive)
    - page, limit (default 50)
    """
    try:
        page, limit = parse_pagination(request.args, default_limit=DEFAULT_CUSTOMER_PAGE_SIZE)
    except ValidationError as e:
        return {"error": str(e)}, 400

    customers, pagination = customer_service.list_customers(
        query_text=request.args.get("query"),
        page=page,
        limit=limit,
    )
    return {"customers": [c.to_dict() for c in customers], "pagination": pagination}


@customers_bp.get("/<int:customer_id>")
@require_auth
@require_permission("VIEW_CUSTOMERS")
def get_customer_route(customer_id: int):
    """Customer with their most recent sales (newest first)."""
    try:
        customer = customer_service.get_customer(customer_id)
    except CustomerNotFoundError as e:
        return {"error": str(e)}, 404

    data = customer.to_dict()
    data["sales"] = [s.to_dict(include_items=False) for s in customer_service.recent_sales(customer.id)]
    return data, 200


@customers_bp.post("")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def create_customer_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
        customer = customer_service.create_customer(patch=patch)
    except ConflictError as e:
        db.session.rollback()
        return {"error": str(e)}, 409
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Error creating customer")
        return {"error": "Error creating customer"}, 500

    return customer.to_dict(), 201


@customers_bp.put("/<int:customer_id>")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def update_customer_route(customer_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
        customer = customer_service.update_customer(customer_id=customer_id, patch=patch)
    except CustomerNotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Error updating customer %s", customer_id)
        return {"error": "Error updating customer"}, 500

    return customer.to_dict(), 200


@customers_bp.delete("/<int:customer_id>")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def delete_customer_route(customer_id: int):
    """Customers with sales history cannot be deleted (400)."""
    try:
        customer_service.delete_customer(customer_id=customer_id)
    except CustomerNotFoundError as e:
        return {"error": str(e)}, 404
    except CustomerInUseError as e:
        return {"error": str(e)}, 400

    return {"message": "Customer deleted successfully"}, 200
