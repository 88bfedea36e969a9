from __future__ import annotations

from sqlalchemy import text

from ..extensions import db
from imeipos.time_utils import to_utc_z


class ReturnRequest(db.Model):
    """
    Customer request to return one sold unit.

    LIFECYCLE: pending -> approved | rejected (terminal).

    At most one pending request may exist per IMEI. The partial unique index
    backs up the service-level check so two concurrent creators cannot both
    succeed.
    """
    __tablename__ = "return_requests"
    __table_args__ = (
        db.Index(
            "uq_return_requests_pending_imei",
            "imei",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
        db.Index("ix_return_requests_status_requested", "status", "requested_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    order_id = db.Column(db.Integer, db.ForeignKey("sales_orders.id"), nullable=False, index=True)
    order_number = db.Column(db.String(32), nullable=False)
    inventory_unit_id = db.Column(db.Integer, db.ForeignKey("inventory_units.id"), nullable=False, index=True)
    imei = db.Column(db.String(15), nullable=False)

    product_id = db.Column(db.Integer, nullable=False)
    product_name = db.Column(db.String(255), nullable=False)
    variant_id = db.Column(db.Integer, nullable=False)
    variant_sku = db.Column(db.String(64), nullable=False)
    sale_price = db.Column(db.BigInteger, nullable=False)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    customer_name = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(32), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="pending")
    reason = db.Column(db.Text, nullable=True)

    requested_at = db.Column(db.DateTime(timezone=True), nullable=False)
    requested_by = db.Column(db.String(128), nullable=True)
    processed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    processed_by = db.Column(db.String(128), nullable=True)
    processing_note = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<ReturnRequest id={self.id} imei={self.imei!r} status={self.status!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "order_number": self.order_number,
            "inventory_unit_id": self.inventory_unit_id,
            "imei": self.imei,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "variant_id": self.variant_id,
            "variant_sku": self.variant_sku,
            "sale_price": self.sale_price,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "status": self.status,
            "reason": self.reason,
            "requested_at": to_utc_z(self.requested_at),
            "requested_by": self.requested_by,
            "processed_at": to_utc_z(self.processed_at),
            "processed_by": self.processed_by,
            "processing_note": self.processing_note,
            "version_id": self.version_id,
        }
