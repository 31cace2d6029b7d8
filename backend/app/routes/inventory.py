# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

# backend/app/routes/inventory.py
"""
Inventory routes

- GET  /api/inventory            inventory log listing (newest first)
- POST /api/inventory/adjust     manual stock movement
- GET  /api/inventory/low-stock  products at or below minimum stock
"""

from flask import Blueprint, request, g, current_app

from ..decorators import require_auth, require_permission
from ..services import inventory_service
from ..services.inventory_service import InventoryAdjustmentError, ProductNotFoundError
from ..validation import ValidationError, optional_int


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_inventory_logs():
    """
    Query params:
    - product_id: int
    - type: SALE | PURCHASE | ADJUSTMENT | RETURN | WRITE_OFF
    - limit: int (default 100)
    """
    try:
        product_id = optional_int("product_id", request.args.get("product_id"))
        limit = optional_int("limit", request.args.get("limit"))
        logs = inventory_service.list_logs(
            product_id=product_id,
            log_type=request.args.get("type"),
            limit=limit if limit is not None else inventory_service.DEFAULT_LOG_LIMIT,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400

    return {"items": [log.to_dict(include_product=True) for log in logs], "count": len(logs)}


@inventory_bp.post("/adjust")
@require_auth
@require_permission("ADJUST_INVENTORY")
def adjust_inventory_route():
    """
    Record a stock movement.

    Body:
    - product_id: int (required)
    - quantity: signed int delta (required, non-zero)
    - type: ADJUSTMENT (default) | PURCHASE | RETURN | WRITE_OFF
    - reference, notes: optional strings
    """
    payload = request.get_json(silent=True) or {}

    try:
        product_id = optional_int("product_id", payload.get("product_id"))
        quantity = optional_int("quantity", payload.get("quantity"))
        if product_id is None:
            raise ValidationError("product_id is required")
        if quantity is None:
            raise ValidationError("quantity is required")

        log = inventory_service.adjust_stock(
            product_id=product_id,
            quantity_delta=quantity,
            log_type=payload.get("type") or "ADJUSTMENT",
            reference=(payload.get("reference") or None),
            notes=(payload.get("notes") or None),
            user_id=g.current_user.id,
        )
    except ProductNotFoundError as e:
        return {"error": str(e)}, 404
    except (InventoryAdjustmentError, ValidationError) as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Error adjusting inventory")
        return {"error": "Error adjusting inventory"}, 500

    data = log.to_dict(include_product=True)
    data["product_quantity"] = log.product.quantity
    return data, 201


@inventory_bp.get("/low-stock")
@require_auth
@require_permission("VIEW_INVENTORY")
def low_stock_route():
    products = inventory_service.low_stock_products()
    return {"items": [p.to_dict() for p in products], "count": len(products)}
