from __future__ import annotations

from ..extensions import db
from imeipos.time_utils import to_utc_z


class InventoryUnit(db.Model):
    """
    One physical serialized device, identified by its IMEI.

    IMEI is the natural key: unique across the whole store history, never
    reassigned, and the unit row is never physically deleted. Re-intake of a
    returned device reuses this row.

    Descriptors (product name, SKU, color, storage) are a snapshot copied from
    the catalog at intake and are not re-synced afterwards.

    Sale linkage fields (sales_order_id, sale_date, actual_sale_price,
    warranty_start_date) are populated only while status == "sold".
    """
    __tablename__ = "inventory_units"
    __table_args__ = (
        db.UniqueConstraint("imei", name="uq_inventory_units_imei"),
        db.Index("ix_inventory_units_status_variant", "status", "variant_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    imei = db.Column(db.String(15), nullable=False)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=False, index=True)

    # Catalog snapshot
    product_name = db.Column(db.String(255), nullable=False)
    variant_sku = db.Column(db.String(64), nullable=False)
    color_name = db.Column(db.String(64), nullable=True)
    storage_capacity = db.Column(db.String(32), nullable=True)

    # Pricing (VND, integer). entry_price is immutable once written.
    entry_price = db.Column(db.BigInteger, nullable=False)
    original_retail_price = db.Column(db.BigInteger, nullable=False)
    current_retail_price = db.Column(db.BigInteger, nullable=False)

    status = db.Column(db.String(32), nullable=False, index=True)
    current_location = db.Column(db.String(128), nullable=False)
    condition = db.Column(db.String(32), nullable=False, default="new")
    quality_notes = db.Column(db.Text, nullable=True)
    last_status_change = db.Column(db.DateTime(timezone=True), nullable=True)
    last_location_change = db.Column(db.DateTime(timezone=True), nullable=True)

    # Sale linkage
    sales_order_id = db.Column(db.Integer, db.ForeignKey("sales_orders.id"), nullable=True, index=True)
    sale_date = db.Column(db.DateTime(timezone=True), nullable=True)
    actual_sale_price = db.Column(db.BigInteger, nullable=True)
    warranty_start_date = db.Column(db.DateTime(timezone=True), nullable=True)
    warranty_period_months = db.Column(db.Integer, nullable=False, default=12)

    # Provenance
    purchase_order_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=True, index=True)
    supplier_name = db.Column(db.String(255), nullable=True)
    entry_date = db.Column(db.DateTime(timezone=True), nullable=False)
    received_by = db.Column(db.String(128), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<InventoryUnit id={self.id} imei={self.imei!r} status={self.status!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "imei": self.imei,
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "product_name": self.product_name,
            "variant_sku": self.variant_sku,
            "color_name": self.color_name,
            "storage_capacity": self.storage_capacity,
            "entry_price": self.entry_price,
            "original_retail_price": self.original_retail_price,
            "current_retail_price": self.current_retail_price,
            "status": self.status,
            "current_location": self.current_location,
            "condition": self.condition,
            "quality_notes": self.quality_notes,
            "last_status_change": to_utc_z(self.last_status_change),
            "last_location_change": to_utc_z(self.last_location_change),
            "sales_order_id": self.sales_order_id,
            "sale_date": to_utc_z(self.sale_date),
            "actual_sale_price": self.actual_sale_price,
            "warranty_start_date": to_utc_z(self.warranty_start_date),
            "warranty_period_months": self.warranty_period_months,
            "purchase_order_id": self.purchase_order_id,
            "supplier_name": self.supplier_name,
            "entry_date": to_utc_z(self.entry_date),
            "received_by": self.received_by,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """
    Append-only audit record of one state change of one inventory unit.

    Rows are never updated or deleted (enforced by ORM listeners in
    imeipos.db_guards). SUM(quantity_change) per IMEI is 1 while the unit is
    physically held and 0 once it has left.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_imei_occurred", "imei", "occurred_at"),
        db.Index("ix_stock_movements_type_occurred", "movement_type", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    inventory_unit_id = db.Column(db.Integer, db.ForeignKey("inventory_units.id"), nullable=False, index=True)
    imei = db.Column(db.String(15), nullable=False)

    movement_type = db.Column(db.String(32), nullable=False)
    quantity_change = db.Column(db.Integer, nullable=False)
    previous_status = db.Column(db.String(32), nullable=True)
    new_status = db.Column(db.String(32), nullable=False)
    from_location = db.Column(db.String(128), nullable=True)
    to_location = db.Column(db.String(128), nullable=True)

    actor_id = db.Column(db.String(128), nullable=True)
    related_order_id = db.Column(db.Integer, nullable=True)
    related_document_type = db.Column(db.String(16), nullable=True)
    reason = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    # occurred_at is business time; created_at is system time (db default)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    inventory_unit = db.relationship("InventoryUnit", backref=db.backref("movements", lazy=True))

    def __repr__(self) -> str:
        return f"<StockMovement id={self.id} imei={self.imei!r} type={self.movement_type!r} qty={self.quantity_change}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "inventory_unit_id": self.inventory_unit_id,
            "imei": self.imei,
            "movement_type": self.movement_type,
            "quantity_change": self.quantity_change,
            "previous_status": self.previous_status,
            "new_status": self.new_status,
            "from_location": self.from_location,
            "to_location": self.to_location,
            "actor_id": self.actor_id,
            "related_order_id": self.related_order_id,
            "related_document_type": self.related_document_type,
            "reason": self.reason,
            "notes": self.notes,
            "occurred_at": to_utc_z(self.occurred_at),
            "created_at": to_utc_z(self.created_at),
        }


class PurchaseOrder(db.Model):
    """Header of one stock intake from a supplier. Created complete; never edited."""
    __tablename__ = "purchase_orders"
    __table_args__ = (
        db.UniqueConstraint("order_number", name="uq_purchase_orders_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(32), nullable=False)

    supplier_name = db.Column(db.String(255), nullable=False)
    order_date = db.Column(db.DateTime(timezone=True), nullable=False)
    expected_delivery_date = db.Column(db.DateTime(timezone=True), nullable=True)
    actual_delivery_date = db.Column(db.DateTime(timezone=True), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="completed")

    subtotal = db.Column(db.BigInteger, nullable=False, default=0)
    tax_amount = db.Column(db.BigInteger, nullable=False, default=0)
    shipping_cost = db.Column(db.BigInteger, nullable=False, default=0)
    total_amount = db.Column(db.BigInteger, nullable=False, default=0)
    currency = db.Column(db.String(3), nullable=False, default="VND")
    payment_status = db.Column(db.String(16), nullable=False, default="pending")

    total_items = db.Column(db.Integer, nullable=False, default=0)
    total_variants = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)
    received_by = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    lines = db.relationship(
        "PurchaseOrderLine",
        backref="purchase_order",
        lazy=True,
        order_by="PurchaseOrderLine.id",
    )

    def to_dict(self, include_lines: bool = False) -> dict:
        data = {
            "id": self.id,
            "order_number": self.order_number,
            "supplier_name": self.supplier_name,
            "order_date": to_utc_z(self.order_date),
            "expected_delivery_date": to_utc_z(self.expected_delivery_date),
            "actual_delivery_date": to_utc_z(self.actual_delivery_date),
            "status": self.status,
            "subtotal": self.subtotal,
            "tax_amount": self.tax_amount,
            "shipping_cost": self.shipping_cost,
            "total_amount": self.total_amount,
            "currency": self.currency,
            "payment_status": self.payment_status,
            "total_items": self.total_items,
            "total_variants": self.total_variants,
            "notes": self.notes,
            "received_by": self.received_by,
            "created_at": to_utc_z(self.created_at),
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class PurchaseOrderLine(db.Model):
    """One (product, variant) group of a purchase order and the IMEIs received for it."""
    __tablename__ = "purchase_order_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    purchase_order_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=False, index=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=False)
    product_name = db.Column(db.String(255), nullable=False)
    variant_sku = db.Column(db.String(64), nullable=False)
    color_name = db.Column(db.String(64), nullable=True)
    storage_capacity = db.Column(db.String(32), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_cost = db.Column(db.BigInteger, nullable=False)
    total_cost = db.Column(db.BigInteger, nullable=False)
    received_imeis = db.Column(db.JSON, nullable=False, default=list)

    condition = db.Column(db.String(32), nullable=False, default="new")
    location = db.Column(db.String(128), nullable=False)
    notes = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_order_id": self.purchase_order_id,
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "product_name": self.product_name,
            "variant_sku": self.variant_sku,
            "color_name": self.color_name,
            "storage_capacity": self.storage_capacity,
            "quantity": self.quantity,
            "unit_cost": self.unit_cost,
            "total_cost": self.total_cost,
            "received_imeis": list(self.received_imeis or []),
            "condition": self.condition,
            "location": self.location,
            "notes": self.notes,
        }
