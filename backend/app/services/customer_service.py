# Overview: Service-layer operations for customers; encapsulates business logic and database work.

from __future__ import annotations

from ..extensions import db
from ..models import Customer, Sale
from ..pagination import paginate
from ..validation import ConflictError

CUSTOMER_MUTABLE_FIELDS = {
    "name",
    "email",
    "phone",
    "address",
    "city",
    "state",
    "postal_code",
    "country",
    "notes",
}

RECENT_SALES_LIMIT = 20


class CustomerNotFoundError(Exception):
    pass


class CustomerInUseError(Exception):
    """Customer still referenced by sales (HTTP 400)."""


def _normalize_email(patch: dict) -> None:
    if patch.get("email"):
        patch["email"] = patch["email"].lower()


def _email_taken(email: str, exclude_id: int | None = None) -> bool:
    query = db.session.query(Customer.id).filter(Customer.email == email)
    if exclude_id is not None:
        query = query.filter(Customer.id != exclude_id)
    return query.first() is not None


def list_customers(*, query_text: str | None, page: int, limit: int) -> tuple[list[Customer], dict]:
    query = db.session.query(Customer)
    if query_text:
        like = f"%{query_text.strip()}%"
        query = query.filter(
            db.or_(
                Customer.name.ilike(like),
                Customer.email.ilike(like),
                Customer.phone.ilike(like),
            )
        )
    query = query.order_by(Customer.name.asc(), Customer.id.asc())
    return paginate(query, page=page, limit=limit)


def get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if not customer:
        raise CustomerNotFoundError("Customer not found")
    return customer


def recent_sales(customer_id: int, limit: int = RECENT_SALES_LIMIT) -> list[Sale]:
    return (
        db.session.query(Sale)
        .filter(Sale.customer_id == customer_id)
        .order_by(Sale.date.desc(), Sale.id.desc())
        .limit(limit)
        .all()
    )


def build_customer(patch: dict) -> Customer:
    """
    Add a new Customer to the session without committing.

    Used directly by the sale transaction; create_customer wraps it for the
    customers API.
    """
    _normalize_email(patch)
    if patch.get("email") and _email_taken(patch["email"]):
        raise ConflictError("A customer with this email already exists")

    customer = Customer()
    for k, v in patch.items():
        if k in CUSTOMER_MUTABLE_FIELDS:
            setattr(customer, k, v)
    db.session.add(customer)
    db.session.flush()
    return customer


def create_customer(*, patch: dict) -> Customer:
    customer = build_customer(patch)
    db.session.commit()
    return customer


def update_customer(*, customer_id: int, patch: dict) -> Customer:
    customer = get_customer(customer_id)

    _normalize_email(patch)
    if patch.get("email") and patch["email"] != customer.email and _email_taken(patch["email"], exclude_id=customer.id):
        raise ConflictError("A customer with this email already exists")

    for k, v in patch.items():
        if k in CUSTOMER_MUTABLE_FIELDS:
            setattr(customer, k, v)
    db.session.commit()
    return customer


def delete_customer(*, customer_id: int) -> None:
    customer = get_customer(customer_id)

    has_sales = db.session.query(Sale.id).filter(Sale.customer_id == customer.id).first() is not None
    if has_sales:
        raise CustomerInUseError("Cannot delete customer with sales history")

    db.session.delete(customer)
    db.session.commit()
