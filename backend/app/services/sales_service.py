"""
Sales Service - sale recording and invoice management

WHY: A sale decrements stock, allocates an invoice number and writes the SALE
inventory log rows. All of it happens in one transaction so a failure leaves
no trace: no stock change, no consumed invoice number, no orphan items.

Invariants:
- Line items are created with their sale and never edited afterwards.
- For every sale, the SALE log rows referencing its invoice number sum to
  minus the total item quantity, and each product was decremented once.
- Every precondition (items, products, quantities, stock, customer) is
  checked before the first write.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import Customer, Product, Sale, SaleItem, PAYMENT_METHODS, SALE_STATUSES
from ..pagination import paginate
from ..validation import (
    MAX_PRICE_CENTS,
    ConflictError,
    ModelValidationPolicy,
    ValidationError,
    amount_to_cents,
    apply_bps,
    optional_int,
    percent_to_bps,
    require_positive_int,
    validate_payload,
)
from app.time_utils import day_window, parse_iso_datetime, utcnow
from .concurrency import atomic, lock_for_update
from .customer_service import build_customer
from .document_service import next_invoice_number
from .inventory_service import record_movement


UNKNOWN_CUSTOMER = "Unknown Customer"

SALE_ITEM_FIELDS = {"product_id", "quantity", "price", "price_cents"}

SALE_UPDATE_FIELDS = {"customer_id", "date", "payment_method", "status", "discount", "tax"}

NEW_CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "email"},
    required_on_create={"name"},
)


class SaleValidationError(ValidationError):
    """Sale input or stock problem; nothing was written (HTTP 400)."""


class SaleNotFoundError(Exception):
    pass


@dataclass(frozen=True)
class SaleLineRequest:
    product_id: int
    quantity: int
    price_cents: int | None


@dataclass(frozen=True)
class SaleTotals:
    subtotal_cents: int
    discount_cents: int
    tax_cents: int
    total_amount_cents: int


def compute_totals(subtotal_cents: int, discount_bps: int, tax_bps: int) -> SaleTotals:
    """
    discount = subtotal * discount%; tax = (subtotal - discount) * tax%;
    total = subtotal - discount + tax. Each component rounds half-up to a cent.
    """
    discount_cents = apply_bps(subtotal_cents, discount_bps)
    tax_cents = apply_bps(subtotal_cents - discount_cents, tax_bps)
    return SaleTotals(
        subtotal_cents=subtotal_cents,
        discount_cents=discount_cents,
        tax_cents=tax_cents,
        total_amount_cents=subtotal_cents - discount_cents + tax_cents,
    )


# -- Input parsing --

def _parse_lines(items) -> list[SaleLineRequest]:
    if not isinstance(items, list) or not items:
        raise SaleValidationError("At least one item is required")

    lines = []
    for index, raw in enumerate(items, start=1):
        if not isinstance(raw, dict):
            raise SaleValidationError(f"Item {index} must be an object")
        unknown = set(raw) - SALE_ITEM_FIELDS
        if unknown:
            raise SaleValidationError(f"Item {index}: unknown fields: {', '.join(sorted(unknown))}")
        if raw.get("price") not in (None, "") and raw.get("price_cents") not in (None, ""):
            raise SaleValidationError(f"Item {index}: send either price or price_cents, not both")
        try:
            product_id = require_positive_int("product_id", raw.get("product_id"))
            quantity = require_positive_int("quantity", raw.get("quantity"))
            price_cents = optional_int("price_cents", raw.get("price_cents"))
            if price_cents is None:
                price_cents = amount_to_cents("price", raw.get("price"))
        except ValidationError as e:
            raise SaleValidationError(f"Item {index}: {e}") from e
        if price_cents is not None and not 0 <= price_cents <= MAX_PRICE_CENTS:
            raise SaleValidationError(f"Item {index}: price_cents must be between 0 and {MAX_PRICE_CENTS}")
        lines.append(SaleLineRequest(product_id=product_id, quantity=quantity, price_cents=price_cents))
    return lines


def _parse_choice(key: str, value, choices, default: str) -> str:
    if value is None or value == "":
        return default
    normalized = str(value).strip().upper()
    if normalized not in choices:
        raise SaleValidationError(f"{key} must be one of: {', '.join(choices)}")
    return normalized


def _parse_date(value):
    if value is None or value == "":
        return utcnow()
    if not isinstance(value, str):
        raise SaleValidationError("date must be an ISO-8601 datetime")
    try:
        parsed = parse_iso_datetime(value)
    except ValueError:
        raise SaleValidationError("date must be an ISO-8601 datetime")
    return parsed or utcnow()


def _parse_bps(key: str, value) -> int:
    try:
        return percent_to_bps(key, value)
    except ValidationError as e:
        raise SaleValidationError(str(e)) from e


def _parse_new_customer(payload) -> dict | None:
    """new_customer only counts when it carries a non-blank name."""
    if not isinstance(payload, dict) or not str(payload.get("name") or "").strip():
        return None
    fields = {k: payload.get(k) for k in NEW_CUSTOMER_POLICY.writable_fields if k in payload}
    try:
        return validate_payload(model=Customer, payload=fields, policy=NEW_CUSTOMER_POLICY, partial=False)
    except ValidationError as e:
        raise SaleValidationError(f"new_customer: {e}") from e


# -- Preconditions --

def _lock_products(product_ids) -> dict[int, Product]:
    # Fixed lock order keeps concurrent sales from deadlocking each other
    query = (
        db.session.query(Product)
        .filter(Product.id.in_(sorted(set(product_ids))))
        .order_by(Product.id.asc())
    )
    return {p.id: p for p in lock_for_update(query).all()}


def _check_stock(lines: list[SaleLineRequest], products: dict[int, Product]) -> None:
    requested: dict[int, int] = {}
    for line in lines:
        product = products.get(line.product_id)
        if product is None:
            raise SaleValidationError(f"Product with ID {line.product_id} not found")
        if not product.is_active:
            raise SaleValidationError(f"Product {product.name} is inactive")
        requested[line.product_id] = requested.get(line.product_id, 0) + line.quantity

    for product_id, quantity in requested.items():
        product = products[product_id]
        if product.quantity < quantity:
            raise SaleValidationError(
                f"Insufficient stock for product {product.name}. Available: {product.quantity}"
            )


def _require_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise SaleValidationError(f"Customer with ID {customer_id} not found")
    return customer


# -- Operations --

def create_sale(payload: dict, *, user_id: int | None = None) -> Sale:
    """
    Record a sale in one all-or-nothing transaction.

    Steps: lock products and check stock, resolve or create the customer,
    allocate the invoice number, insert the sale with its items, then
    decrement each product and append its SALE log row.

    On PostgreSQL the transaction is bounded by SALE_TRANSACTION_TIMEOUT_MS.
    Raises SaleValidationError for any input or stock problem. Not retried;
    the caller resubmits.
    """
    if not isinstance(payload, dict):
        raise SaleValidationError("Invalid JSON payload")

    lines = _parse_lines(payload.get("items"))
    payment_method = _parse_choice("payment_method", payload.get("payment_method"), PAYMENT_METHODS, "CASH")
    status = _parse_choice("status", payload.get("status"), SALE_STATUSES, "PENDING")
    discount_bps = _parse_bps("discount", payload.get("discount"))
    tax_bps = _parse_bps("tax", payload.get("tax"))
    sale_date = _parse_date(payload.get("date"))
    new_customer = _parse_new_customer(payload.get("new_customer"))
    try:
        customer_id = optional_int("customer_id", payload.get("customer_id"))
    except ValidationError as e:
        raise SaleValidationError(str(e)) from e

    with atomic(timeout_ms=current_app.config.get("SALE_TRANSACTION_TIMEOUT_MS")):
        products = _lock_products(line.product_id for line in lines)
        _check_stock(lines, products)

        customer = None
        if new_customer is None and customer_id is not None:
            customer = _require_customer(customer_id)
        if new_customer is not None:
            try:
                customer = build_customer(new_customer)
            except ConflictError as e:
                raise SaleValidationError(f"new_customer: {e}") from e

        invoice_number = next_invoice_number()

        sale = Sale(
            invoice_number=invoice_number,
            customer_id=customer.id if customer else None,
            user_id=user_id,
            date=sale_date,
            discount_bps=discount_bps,
            tax_bps=tax_bps,
            payment_method=payment_method,
            status=status,
        )

        subtotal_cents = 0
        for line in lines:
            product = products[line.product_id]
            unit_price_cents = product.price_cents if line.price_cents is None else line.price_cents
            line_total_cents = unit_price_cents * line.quantity
            subtotal_cents += line_total_cents
            sale.items.append(SaleItem(
                product_id=product.id,
                quantity=line.quantity,
                unit_price_cents=unit_price_cents,
                line_total_cents=line_total_cents,
            ))

        _apply_totals(sale, compute_totals(subtotal_cents, discount_bps, tax_bps))
        db.session.add(sale)
        db.session.flush()

        notes = f"Sale to {customer.name if customer else UNKNOWN_CUSTOMER}"
        for line in lines:
            record_movement(
                products[line.product_id],
                quantity_delta=-line.quantity,
                log_type="SALE",
                reference=invoice_number,
                notes=notes,
                user_id=user_id,
            )

    current_app.logger.info(
        "Sale %s recorded: items=%d total_cents=%d user_id=%s",
        sale.invoice_number, len(lines), sale.total_amount_cents, user_id,
    )
    return sale


def _apply_totals(sale: Sale, totals: SaleTotals) -> None:
    sale.subtotal_cents = totals.subtotal_cents
    sale.discount_cents = totals.discount_cents
    sale.tax_cents = totals.tax_cents
    sale.total_amount_cents = totals.total_amount_cents


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise SaleNotFoundError("Sale not found")
    return sale


def list_sales(
    *,
    query_text: str | None = None,
    status: str | None = None,
    date: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[Sale], dict]:
    """Newest first. query matches invoice number or customer name."""
    query = db.session.query(Sale).outerjoin(Customer, Sale.customer_id == Customer.id)

    if query_text:
        like = f"%{query_text.strip()}%"
        query = query.filter(db.or_(Sale.invoice_number.ilike(like), Customer.name.ilike(like)))
    if status:
        query = query.filter(Sale.status == status.strip().upper())
    if date:
        try:
            start, end = day_window(date)
        except ValueError:
            raise ValidationError("date must be YYYY-MM-DD")
        query = query.filter(Sale.date >= start, Sale.date < end)

    query = query.order_by(Sale.created_at.desc(), Sale.id.desc())
    return paginate(query, page=page, limit=limit)


def update_sale(sale_id: int, payload: dict) -> Sale:
    """
    Update header fields of a sale. Items are immutable.

    A COMPLETED sale may only be moved to CANCELLED; a CANCELLED sale stays
    cancelled. Totals are recomputed from the stored items when discount or
    tax changes.
    """
    if not isinstance(payload, dict):
        raise SaleValidationError("Invalid JSON payload")
    unknown = sorted(set(payload) - SALE_UPDATE_FIELDS)
    if unknown:
        raise SaleValidationError(f"Field not allowed: {unknown[0]}")

    with atomic():
        sale = get_sale(sale_id)

        new_status = _parse_choice("status", payload.get("status"), SALE_STATUSES, sale.status)
        if sale.status == "COMPLETED" and new_status != "CANCELLED":
            raise SaleValidationError("Completed sales cannot be modified")
        if sale.status == "CANCELLED" and new_status != "CANCELLED":
            raise SaleValidationError("Cancelled sales cannot be reopened")

        if payload.get("customer_id") is not None:
            try:
                customer_id = require_positive_int("customer_id", payload["customer_id"])
            except ValidationError as e:
                raise SaleValidationError(str(e)) from e
            sale.customer_id = _require_customer(customer_id).id

        if payload.get("date"):
            sale.date = _parse_date(payload["date"])

        sale.payment_method = _parse_choice("payment_method", payload.get("payment_method"), PAYMENT_METHODS, sale.payment_method)
        sale.status = new_status

        if "discount" in payload or "tax" in payload:
            if "discount" in payload:
                sale.discount_bps = _parse_bps("discount", payload["discount"])
            if "tax" in payload:
                sale.tax_bps = _parse_bps("tax", payload["tax"])
            subtotal_cents = sum(item.line_total_cents for item in sale.items)
            _apply_totals(sale, compute_totals(subtotal_cents, sale.discount_bps, sale.tax_bps))

    return sale


def delete_sale(sale_id: int, *, user_id: int | None = None) -> str:
    """
    Delete a PENDING or CANCELLED sale; returns its invoice number.

    PENDING sales put their stock back, each item logged as an ADJUSTMENT
    referencing DELETE-<invoice>. CANCELLED sales are removed without restock.
    """
    with atomic():
        sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
        if sale is None:
            raise SaleNotFoundError("Sale not found")
        if sale.status == "COMPLETED":
            raise SaleValidationError("Completed sales cannot be deleted")

        invoice_number = sale.invoice_number
        if sale.status == "PENDING":
            products = _lock_products(item.product_id for item in sale.items)
            for item in sale.items:
                record_movement(
                    products[item.product_id],
                    quantity_delta=item.quantity,
                    log_type="ADJUSTMENT",
                    reference=f"DELETE-{invoice_number}",
                    notes=f"Restored due to sale deletion: {invoice_number}",
                    user_id=user_id,
                )

        db.session.delete(sale)

    current_app.logger.info("Sale %s deleted by user_id=%s", invoice_number, user_id)
    return invoice_number
