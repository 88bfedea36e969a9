from __future__ import annotations

from ..extensions import db
from imeipos.time_utils import to_utc_z


class DocumentSequence(db.Model):
    """
    Atomic per-day document sequences.

    One row per (document_type, business_date); next_number is incremented
    in the same transaction as the document it numbers.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("document_type", "business_date", name="uq_doc_sequences_type_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_type = db.Column(db.String(32), nullable=False)
    business_date = db.Column(db.String(8), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_type": self.document_type,
            "business_date": self.business_date,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
