# Overview: Service-layer operations for user accounts; encapsulates business logic and database work.

from __future__ import annotations

from ..extensions import db
from ..models import User
from ..pagination import paginate
from ..validation import ConflictError, ValidationError
from . import auth_service, session_service
from .concurrency import atomic


class UserNotFoundError(Exception):
    pass


class UserPermissionError(Exception):
    """The actor may not make this change (HTTP 403)."""


USER_UPDATE_FIELDS = {"name", "email", "password", "current_password", "role", "is_active"}


def list_users(*, search: str | None, role: str | None, page: int, limit: int) -> tuple[list[User], dict]:
    query = db.session.query(User)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(db.or_(User.name.ilike(like), User.email.ilike(like)))
    if role:
        query = query.filter(User.role == role.strip().upper())
    query = query.order_by(User.created_at.desc(), User.id.desc())
    return paginate(query, page=page, limit=limit)


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise UserNotFoundError("User not found")
    return user


def update_user(user_id: int, payload: dict, *, actor: User, actor_permissions: frozenset[str]) -> User:
    """
    Apply a profile update.

    Self-service (no MANAGE_USERS): name, and password when current_password
    matches. Users with MANAGE_USERS may change any field of any account,
    without the current password.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    unknown = sorted(set(payload) - USER_UPDATE_FIELDS)
    if unknown:
        raise ValidationError(f"Field not allowed: {unknown[0]}")

    with atomic():
        user = _apply_update(get_user(user_id), payload, actor=actor, is_admin="MANAGE_USERS" in actor_permissions)
    return user


def _apply_update(user: User, payload: dict, *, actor: User, is_admin: bool) -> User:
    is_self = actor.id == user.id
    if not is_self and not is_admin:
        raise UserPermissionError("Only admins can update other users")

    if not is_admin:
        email = payload.get("email")
        if payload.get("role") or payload.get("is_active") is not None or (
            email and auth_service.normalize_email(email) != user.email
        ):
            raise UserPermissionError("You don't have permission to update role, email or status")

    if payload.get("name") is not None:
        name = str(payload["name"]).strip()
        if not name:
            raise ValidationError("name cannot be blank")
        if len(name) > 128:
            raise ValidationError("name exceeds max length 128")
        user.name = name

    if is_admin and payload.get("email"):
        email = auth_service.normalize_email(payload["email"])
        auth_service.validate_email(email)
        if email != user.email:
            if auth_service.email_in_use(email, exclude_user_id=user.id):
                raise ConflictError("Email is already in use")
            user.email = email

    if is_admin and payload.get("role"):
        role = str(payload["role"]).strip().upper()
        auth_service.validate_role(role)
        if is_self and role != "ADMIN":
            raise ValidationError("You cannot remove your own admin role")
        user.role = role

    if is_admin and payload.get("is_active") is not None:
        if not isinstance(payload["is_active"], bool):
            raise ValidationError("is_active must be a boolean")
        if is_self and not payload["is_active"]:
            raise ValidationError("You cannot deactivate your own account")
        user.is_active = payload["is_active"]
        if not user.is_active:
            session_service.revoke_all_user_sessions(user.id, reason="User deactivated", commit=False)

    if payload.get("password"):
        if is_self and not is_admin:
            current = payload.get("current_password")
            if not current:
                raise ValidationError("Current password is required to set a new password")
            if not auth_service.verify_password(current, user.password_hash):
                raise ValidationError("Current password is incorrect")
        user.password_hash = auth_service.hash_password(payload["password"])
        if not is_self:
            session_service.revoke_all_user_sessions(user.id, reason="Password changed", commit=False)

    return user


def delete_user(user_id: int, *, actor: User) -> None:
    if actor.id == user_id:
        raise UserPermissionError("You cannot delete your own account")
    user = get_user(user_id)
    db.session.delete(user)
    db.session.commit()
