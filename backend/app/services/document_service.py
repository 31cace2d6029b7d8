# Overview: Service-layer operations for document numbering; atomic invoice sequences.

from __future__ import annotations

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence


INVOICE_DOCUMENT_TYPE = "INVOICE"


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def format_document_number(prefix: str, number: int, pad: int) -> str:
    return f"{prefix}-{number:0{pad}d}"


def _allocate(document_type: str) -> int:
    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.document_type == document_type)
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if not result.rowcount:
        # First allocation for this type. A concurrent allocator may insert the
        # row first; the savepoint keeps the outer transaction usable.
        try:
            with db.session.begin_nested():
                db.session.add(DocumentSequence(document_type=document_type, next_number=2))
            return 1
        except IntegrityError:
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise DocumentSequenceError(f"Could not allocate {document_type} number")

    current = (
        db.session.query(DocumentSequence.next_number)
        .filter_by(document_type=document_type)
        .scalar()
    )
    return current - 1


def next_document_number(*, document_type: str, prefix: str, pad: int = 5) -> str:
    """
    Atomically allocate the next document number for a type.

    Runs inside the caller's transaction: the row lock taken by the UPDATE is
    held until that transaction ends, and a rollback returns the number.
    """
    if not document_type:
        raise DocumentSequenceError("document_type is required")
    return format_document_number(prefix, _allocate(document_type), pad)


def next_invoice_number() -> str:
    """Next invoice number, e.g. INV-00001, using INVOICE_PREFIX / INVOICE_PAD."""
    return next_document_number(
        document_type=INVOICE_DOCUMENT_TYPE,
        prefix=current_app.config.get("INVOICE_PREFIX", "INV"),
        pad=int(current_app.config.get("INVOICE_PAD", 5)),
    )
