from __future__ import annotations

from ..extensions import db
from imeipos.time_utils import to_utc_z


class Customer(db.Model):
    """
    Customer directory entry with denormalized purchase aggregates.

    Phone is the lookup key for walk-in customers at the counter.
    Aggregates are maintained by the sale engine inside the sale's atomic unit;
    version_id guards the read-modify-write against concurrent sales.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.UniqueConstraint("phone", name="uq_customers_phone"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(512), nullable=True)
    acquisition_channel = db.Column(db.String(32), nullable=True)

    # Denormalized aggregates (updated when sales are completed)
    total_orders = db.Column(db.Integer, nullable=False, default=0)
    total_spent = db.Column(db.BigInteger, nullable=False, default=0)
    average_order_value = db.Column(db.BigInteger, nullable=False, default=0)
    first_purchase_date = db.Column(db.DateTime(timezone=True), nullable=True)
    last_purchase_date = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "acquisition_channel": self.acquisition_channel,
            "total_orders": self.total_orders,
            "total_spent": self.total_spent,
            "average_order_value": self.average_order_value,
            "first_purchase_date": to_utc_z(self.first_purchase_date),
            "last_purchase_date": to_utc_z(self.last_purchase_date),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class CustomerReturnHistory(db.Model):
    """Append-only record of an approved return, kept on the customer for service staff."""
    __tablename__ = "customer_return_history"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    return_request_id = db.Column(db.Integer, db.ForeignKey("return_requests.id"), nullable=False, index=True)

    returned_at = db.Column(db.DateTime(timezone=True), nullable=False)
    order_number = db.Column(db.String(32), nullable=True)
    product_name = db.Column(db.String(255), nullable=True)
    imei = db.Column(db.String(15), nullable=False)
    amount = db.Column(db.BigInteger, nullable=False)

    customer = db.relationship("Customer", backref=db.backref("return_history", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "return_request_id": self.return_request_id,
            "returned_at": to_utc_z(self.returned_at),
            "order_number": self.order_number,
            "product_name": self.product_name,
            "imei": self.imei,
            "amount": self.amount,
        }
