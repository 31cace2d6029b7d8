# Overview: Flask API routes for user management; parses input and returns JSON responses.

# backend/app/routes/users.py
"""
User management routes.

- GET    /api/users        VIEW_USERS (ADMIN, MANAGER)
- GET    /api/users/<id>   own profile, or VIEW_USERS for others
- POST   /api/users        MANAGE_USERS (ADMIN)
- PUT    /api/users/<id>   own name/password, or MANAGE_USERS for everything
- DELETE /api/users/<id>   MANAGE_USERS, never your own account
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_permission
from ..extensions import db
from ..pagination import parse_pagination
from ..services import auth_service, user_service
from ..services.auth_service import PasswordValidationError
from ..services.user_service import UserNotFoundError, UserPermissionError
from ..validation import ValidationError, ConflictError

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_permission("VIEW_USERS")
def list_users():
    """
    Query params:
    - search: name or email
    - role: ADMIN | MANAGER | STAFF
    - page, limit (default 10)
    """
    try:
        page, limit = parse_pagination(request.args, default_limit=10)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    users, pagination = user_service.list_users(
        search=request.args.get("search"),
        role=request.args.get("role"),
        page=page,
        limit=limit,
    )
    return jsonify({"users": [u.to_dict() for u in users], "pagination": pagination}), 200


@users_bp.get("/<int:user_id>")
@require_auth
def get_user(user_id: int):
    if user_id != g.current_user.id and "VIEW_USERS" not in g.permissions:
        return jsonify({
            "error": "Permission denied",
            "required_permission": "VIEW_USERS",
            "message": "Permission denied: VIEW_USERS",
        }), 403

    try:
        user = user_service.get_user(user_id)
    except UserNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"user": user.to_dict()}), 200


@users_bp.post("")
@require_auth
@require_permission("MANAGE_USERS")
def create_user():
    """
    Request body:
    - name, email, password: str (required)
    - role: ADMIN | MANAGER | STAFF (default STAFF)
    """
    data = request.get_json(silent=True) or {}
    if not data.get("name") or not data.get("email") or not data.get("password"):
        return jsonify({"error": "name, email and password are required"}), 400

    try:
        user = auth_service.create_user(
            name=data["name"],
            email=data["email"],
            password=data["password"],
            role=data.get("role") or "STAFF",
        )
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except (ValidationError, PasswordValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Error creating user")
        return jsonify({"error": "Error creating user"}), 500

    current_app.logger.info("User %s created by user_id=%s", user.email, g.current_user.id)
    return jsonify({"user": user.to_dict()}), 201


@users_bp.put("/<int:user_id>")
@require_auth
def update_user(user_id: int):
    data = request.get_json(silent=True) or {}

    try:
        user = user_service.update_user(
            user_id,
            data,
            actor=g.current_user,
            actor_permissions=g.permissions,
        )
    except UserNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except UserPermissionError as e:
        return jsonify({"error": str(e)}), 403
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except (ValidationError, PasswordValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Error updating user %s", user_id)
        return jsonify({"error": "Error updating user"}), 500

    return jsonify({"user": user.to_dict()}), 200


@users_bp.delete("/<int:user_id>")
@require_auth
@require_permission("MANAGE_USERS")
def delete_user(user_id: int):
    try:
        user_service.delete_user(user_id, actor=g.current_user)
    except UserNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except UserPermissionError as e:
        return jsonify({"error": str(e)}), 403
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Error deleting user %s", user_id)
        return jsonify({"error": "Error deleting user"}), 500

    current_app.logger.info("User %s deleted by user_id=%s", user_id, g.current_user.id)
    return jsonify({"message": "User successfully deleted"}), 200
