from __future__ import annotations

from ..extensions import db
from imeipos.time_utils import to_utc_z


class SalesOrder(db.Model):
    """
    Completed point-of-sale transaction.

    Financial identity (enforced at creation, never edited afterwards):
        subtotal_amount = sum(line.sale_price)
        total_amount = subtotal_amount + tax_amount - discount_amount + shipping_amount

    Payment is a recorded fact; there is no gateway round-trip.
    """
    __tablename__ = "sales_orders"
    __table_args__ = (
        db.UniqueConstraint("order_number", name="uq_sales_orders_number"),
        db.Index("ix_sales_orders_customer_date", "customer_id", "order_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(32), nullable=False)
    order_date = db.Column(db.DateTime(timezone=True), nullable=False)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    # Walk-in customer data as given at the counter
    customer_name = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(32), nullable=True)
    customer_email = db.Column(db.String(255), nullable=True)
    customer_address = db.Column(db.String(512), nullable=True)

    subtotal_amount = db.Column(db.BigInteger, nullable=False)
    # Basis points: 1000 == 10%
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=0)
    tax_amount = db.Column(db.BigInteger, nullable=False, default=0)
    discount_amount = db.Column(db.BigInteger, nullable=False, default=0)
    shipping_amount = db.Column(db.BigInteger, nullable=False, default=0)
    total_amount = db.Column(db.BigInteger, nullable=False)
    currency = db.Column(db.String(3), nullable=False, default="VND")

    payment_method = db.Column(db.String(32), nullable=False)
    payment_status = db.Column(db.String(16), nullable=False, default="paid")
    amount_received = db.Column(db.BigInteger, nullable=True)
    change_given = db.Column(db.BigInteger, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="completed")
    sales_channel = db.Column(db.String(32), nullable=False, default="pos")
    staff_id = db.Column(db.String(128), nullable=True)
    staff_name = db.Column(db.String(255), nullable=True)
    total_items = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("sales_orders", lazy=True))
    lines = db.relationship(
        "SalesOrderLine",
        backref="sales_order",
        lazy=True,
        order_by="SalesOrderLine.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<SalesOrder id={self.id} number={self.order_number!r} total={self.total_amount}>"

    def to_dict(self, include_lines: bool = False) -> dict:
        data = {
            "id": self.id,
            "order_number": self.order_number,
            "order_date": to_utc_z(self.order_date),
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "customer_email": self.customer_email,
            "customer_address": self.customer_address,
            "subtotal_amount": self.subtotal_amount,
            "tax_rate_bps": self.tax_rate_bps,
            "tax_amount": self.tax_amount,
            "discount_amount": self.discount_amount,
            "shipping_amount": self.shipping_amount,
            "total_amount": self.total_amount,
            "currency": self.currency,
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "amount_received": self.amount_received,
            "change_given": self.change_given,
            "status": self.status,
            "sales_channel": self.sales_channel,
            "staff_id": self.staff_id,
            "staff_name": self.staff_name,
            "total_items": self.total_items,
            "notes": self.notes,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class SalesOrderLine(db.Model):
    """One sold unit. Quantity is always 1 for serialized stock."""
    __tablename__ = "sales_order_lines"
    __table_args__ = (
        db.Index("ix_sales_order_lines_imei", "imei"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sales_order_id = db.Column(db.Integer, db.ForeignKey("sales_orders.id"), nullable=False, index=True)
    inventory_unit_id = db.Column(db.Integer, db.ForeignKey("inventory_units.id"), nullable=False, index=True)
    imei = db.Column(db.String(15), nullable=False)

    product_id = db.Column(db.Integer, nullable=False)
    variant_id = db.Column(db.Integer, nullable=False)
    product_name = db.Column(db.String(255), nullable=False)
    variant_sku = db.Column(db.String(64), nullable=False)
    color_name = db.Column(db.String(64), nullable=True)
    storage_capacity = db.Column(db.String(32), nullable=True)

    quantity = db.Column(db.Integer, nullable=False, default=1)
    # unit_cost is the unit's entry price, frozen for margin reporting
    unit_cost = db.Column(db.BigInteger, nullable=False)
    sale_price = db.Column(db.BigInteger, nullable=False)
    final_price = db.Column(db.BigInteger, nullable=False)
    entry_date_of_unit = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sales_order_id": self.sales_order_id,
            "inventory_unit_id": self.inventory_unit_id,
            "imei": self.imei,
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "product_name": self.product_name,
            "variant_sku": self.variant_sku,
            "color_name": self.color_name,
            "storage_capacity": self.storage_capacity,
            "quantity": self.quantity,
            "unit_cost": self.unit_cost,
            "sale_price": self.sale_price,
            "final_price": self.final_price,
            "entry_date_of_unit": to_utc_z(self.entry_date_of_unit),
        }
