# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/app/routes/sales.py
"""
Sales routes

POST /api/sales records a sale (stock decrement, invoice number, inventory
logs) in one transaction; see sales_service.create_sale.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_permission
from ..pagination import parse_pagination
from ..services import sales_service
from ..services.sales_service import SaleNotFoundError, SaleValidationError
from ..validation import ValidationError


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
@require_auth
@require_permission("VIEW_SALES")
def list_sales_route():
    """
    Query params:
    - query: invoice number or customer name
    - status: PENDING | COMPLETED | CANCELLED
    - date: YYYY-MM-DD (that calendar day, UTC)
    - page, limit (default 10)
    """
    try:
        page, limit = parse_pagination(request.args, default_limit=10)
        sales, pagination = sales_service.list_sales(
            query_text=request.args.get("query"),
            status=request.args.get("status"),
            date=request.args.get("date"),
            page=page,
            limit=limit,
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Error fetching sales")
        return jsonify({"error": "Error fetching sales"}), 500

    return jsonify({"sales": [s.to_dict() for s in sales], "pagination": pagination}), 200


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_permission("VIEW_SALES")
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
    except SaleNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(sale.to_dict()), 200


@sales_bp.post("")
@require_auth
@require_permission("CREATE_SALE")
def create_sale_route():
    """
    Record a sale.

    Body:
    - items: [{product_id, quantity, price? | price_cents?}] (required, non-empty);
      price is a currency amount, price_cents an integer; both default to
      the catalog price
    - customer_id: existing customer, or
    - new_customer: {name, phone?, email?} created inline when name is set
    - date, payment_method, status, discount (%), tax (%): optional
    """
    payload = request.get_json(silent=True)

    try:
        sale = sales_service.create_sale(payload, user_id=g.current_user.id)
    except SaleValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Error creating sale")
        return jsonify({"error": "Error creating sale"}), 500

    return jsonify(sale.to_dict()), 201


@sales_bp.put("/<int:sale_id>")
@require_auth
@require_permission("EDIT_SALE")
def update_sale_route(sale_id: int):
    payload = request.get_json(silent=True)

    try:
        sale = sales_service.update_sale(sale_id, payload)
    except SaleNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except SaleValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Error updating sale %s", sale_id)
        return jsonify({"error": "Error updating sale"}), 500

    return jsonify(sale.to_dict()), 200


@sales_bp.delete("/<int:sale_id>")
@require_auth
@require_permission("DELETE_SALE")
def delete_sale_route(sale_id: int):
    """Completed sales cannot be deleted; pending sales return their stock."""
    try:
        invoice_number = sales_service.delete_sale(sale_id, user_id=g.current_user.id)
    except SaleNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except SaleValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Error deleting sale %s", sale_id)
        return jsonify({"error": "Error deleting sale"}), 500

    return jsonify({"message": "Sale deleted successfully", "invoice_number": invoice_number}), 200
