from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


class DocumentSequence(db.Model):
    """
    Atomic document number sequences, one row per document type.

    WHY: Invoice numbers must not collide when two sales are recorded at the
    same time. Reading the latest sale and adding one is racy; incrementing
    this row with a single UPDATE serializes allocators on the row lock.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("document_type", name="uq_doc_sequences_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_type = db.Column(db.String(32), nullable=False, index=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_type": self.document_type,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
