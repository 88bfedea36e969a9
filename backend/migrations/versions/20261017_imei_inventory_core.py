"""IMEI inventory core: catalog, units, stock ledger, purchase/sales orders, returns

Revision ID: 20261017_imei_core
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261017_imei_core"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
    ]


def upgrade():
    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("brand", sa.String(128), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("products", schema=None) as batch_op:
        batch_op.create_index("ix_products_active", ["is_active"], unique=False)

    op.create_table(
        "product_variants",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("sku", sa.String(64), nullable=False),
        sa.Column("color_name", sa.String(64), nullable=True),
        sa.Column("storage_capacity", sa.String(32), nullable=True),
        sa.Column("retail_price", sa.BigInteger(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("sku", name="uq_product_variants_sku"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("product_variants", schema=None) as batch_op:
        batch_op.create_index("ix_product_variants_product_id", ["product_id"], unique=False)

    op.create_table(
        "customers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("address", sa.String(512), nullable=True),
        sa.Column("acquisition_channel", sa.String(32), nullable=True),
        sa.Column("total_orders", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_spent", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("average_order_value", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("first_purchase_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_purchase_date", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("phone", name="uq_customers_phone"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "purchase_orders",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("order_number", sa.String(32), nullable=False),
        sa.Column("supplier_name", sa.String(255), nullable=False),
        sa.Column("order_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expected_delivery_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("actual_delivery_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="completed"),
        sa.Column("subtotal", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("tax_amount", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("shipping_cost", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_amount", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("currency", sa.String(3), nullable=False, server_default="VND"),
        sa.Column("payment_status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("total_items", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_variants", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("received_by", sa.String(128), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("order_number", name="uq_purchase_orders_number"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "sales_orders",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("order_number", sa.String(32), nullable=False),
        sa.Column("order_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=True),
        sa.Column("customer_name", sa.String(255), nullable=True),
        sa.Column("customer_phone", sa.String(32), nullable=True),
        sa.Column("customer_email", sa.String(255), nullable=True),
        sa.Column("customer_address", sa.String(512), nullable=True),
        sa.Column("subtotal_amount", sa.BigInteger(), nullable=False),
        sa.Column("tax_rate_bps", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("tax_amount", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("discount_amount", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("shipping_amount", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_amount", sa.BigInteger(), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="VND"),
        sa.Column("payment_method", sa.String(32), nullable=False),
        sa.Column("payment_status", sa.String(16), nullable=False, server_default="paid"),
        sa.Column("amount_received", sa.BigInteger(), nullable=True),
        sa.Column("change_given", sa.BigInteger(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="completed"),
        sa.Column("sales_channel", sa.String(32), nullable=False, server_default="pos"),
        sa.Column("staff_id", sa.String(128), nullable=True),
        sa.Column("staff_name", sa.String(255), nullable=True),
        sa.Column("total_items", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("order_number", name="uq_sales_orders_number"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("sales_orders", schema=None) as batch_op:
        batch_op.create_index("ix_sales_orders_customer_id", ["customer_id"], unique=False)
        batch_op.create_index("ix_sales_orders_customer_date", ["customer_id", "order_date"], unique=False)

    op.create_table(
        "inventory_units",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("imei", sa.String(15), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("variant_id", sa.Integer(), nullable=False),
        sa.Column("product_name", sa.String(255), nullable=False),
        sa.Column("variant_sku", sa.String(64), nullable=False),
        sa.Column("color_name", sa.String(64), nullable=True),
        sa.Column("storage_capacity", sa.String(32), nullable=True),
        sa.Column("entry_price", sa.BigInteger(), nullable=False),
        sa.Column("original_retail_price", sa.BigInteger(), nullable=False),
        sa.Column("current_retail_price", sa.BigInteger(), nullable=False),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("current_location", sa.String(128), nullable=False),
        sa.Column("condition", sa.String(32), nullable=False, server_default="new"),
        sa.Column("quality_notes", sa.Text(), nullable=True),
        sa.Column("last_status_change", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_location_change", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sales_order_id", sa.Integer(), nullable=True),
        sa.Column("sale_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("actual_sale_price", sa.BigInteger(), nullable=True),
        sa.Column("warranty_start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("warranty_period_months", sa.Integer(), nullable=False, server_default=sa.text("12")),
        sa.Column("purchase_order_id", sa.Integer(), nullable=True),
        sa.Column("supplier_name", sa.String(255), nullable=True),
        sa.Column("entry_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("received_by", sa.String(128), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.ForeignKeyConstraint(["variant_id"], ["product_variants.id"]),
        sa.ForeignKeyConstraint(["sales_order_id"], ["sales_orders.id"]),
        sa.ForeignKeyConstraint(["purchase_order_id"], ["purchase_orders.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("imei", name="uq_inventory_units_imei"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("inventory_units", schema=None) as batch_op:
        batch_op.create_index("ix_inventory_units_status", ["status"], unique=False)
        batch_op.create_index("ix_inventory_units_status_variant", ["status", "variant_id"], unique=False)
        batch_op.create_index("ix_inventory_units_product_id", ["product_id"], unique=False)
        batch_op.create_index("ix_inventory_units_variant_id", ["variant_id"], unique=False)
        batch_op.create_index("ix_inventory_units_sales_order_id", ["sales_order_id"], unique=False)
        batch_op.create_index("ix_inventory_units_purchase_order_id", ["purchase_order_id"], unique=False)

    op.create_table(
        "stock_movements",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("inventory_unit_id", sa.Integer(), nullable=False),
        sa.Column("imei", sa.String(15), nullable=False),
        sa.Column("movement_type", sa.String(32), nullable=False),
        sa.Column("quantity_change", sa.Integer(), nullable=False),
        sa.Column("previous_status", sa.String(32), nullable=True),
        sa.Column("new_status", sa.String(32), nullable=False),
        sa.Column("from_location", sa.String(128), nullable=True),
        sa.Column("to_location", sa.String(128), nullable=True),
        sa.Column("actor_id", sa.String(128), nullable=True),
        sa.Column("related_order_id", sa.Integer(), nullable=True),
        sa.Column("related_document_type", sa.String(16), nullable=True),
        sa.Column("reason", sa.String(255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["inventory_unit_id"], ["inventory_units.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("stock_movements", schema=None) as batch_op:
        batch_op.create_index("ix_stock_movements_inventory_unit_id", ["inventory_unit_id"], unique=False)
        batch_op.create_index("ix_stock_movements_imei_occurred", ["imei", "occurred_at"], unique=False)
        batch_op.create_index("ix_stock_movements_type_occurred", ["movement_type", "occurred_at"], unique=False)

    op.create_table(
        "purchase_order_lines",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("purchase_order_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("variant_id", sa.Integer(), nullable=False),
        sa.Column("product_name", sa.String(255), nullable=False),
        sa.Column("variant_sku", sa.String(64), nullable=False),
        sa.Column("color_name", sa.String(64), nullable=True),
        sa.Column("storage_capacity", sa.String(32), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_cost", sa.BigInteger(), nullable=False),
        sa.Column("total_cost", sa.BigInteger(), nullable=False),
        sa.Column("received_imeis", sa.JSON(), nullable=False),
        sa.Column("condition", sa.String(32), nullable=False, server_default="new"),
        sa.Column("location", sa.String(128), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["purchase_order_id"], ["purchase_orders.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.ForeignKeyConstraint(["variant_id"], ["product_variants.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("purchase_order_lines", schema=None) as batch_op:
        batch_op.create_index("ix_purchase_order_lines_purchase_order_id", ["purchase_order_id"], unique=False)

    op.create_table(
        "sales_order_lines",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sales_order_id", sa.Integer(), nullable=False),
        sa.Column("inventory_unit_id", sa.Integer(), nullable=False),
        sa.Column("imei", sa.String(15), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("variant_id", sa.Integer(), nullable=False),
        sa.Column("product_name", sa.String(255), nullable=False),
        sa.Column("variant_sku", sa.String(64), nullable=False),
        sa.Column("color_name", sa.String(64), nullable=True),
        sa.Column("storage_capacity", sa.String(32), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("unit_cost", sa.BigInteger(), nullable=False),
        sa.Column("sale_price", sa.BigInteger(), nullable=False),
        sa.Column("final_price", sa.BigInteger(), nullable=False),
        sa.Column("entry_date_of_unit", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["sales_order_id"], ["sales_orders.id"]),
        sa.ForeignKeyConstraint(["inventory_unit_id"], ["inventory_units.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("sales_order_lines", schema=None) as batch_op:
        batch_op.create_index("ix_sales_order_lines_sales_order_id", ["sales_order_id"], unique=False)
        batch_op.create_index("ix_sales_order_lines_inventory_unit_id", ["inventory_unit_id"], unique=False)
        batch_op.create_index("ix_sales_order_lines_imei", ["imei"], unique=False)

    op.create_table(
        "return_requests",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("order_id", sa.Integer(), nullable=False),
        sa.Column("order_number", sa.String(32), nullable=False),
        sa.Column("inventory_unit_id", sa.Integer(), nullable=False),
        sa.Column("imei", sa.String(15), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("product_name", sa.String(255), nullable=False),
        sa.Column("variant_id", sa.Integer(), nullable=False),
        sa.Column("variant_sku", sa.String(64), nullable=False),
        sa.Column("sale_price", sa.BigInteger(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=True),
        sa.Column("customer_name", sa.String(255), nullable=True),
        sa.Column("customer_phone", sa.String(32), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("requested_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("requested_by", sa.String(128), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processed_by", sa.String(128), nullable=True),
        sa.Column("processing_note", sa.Text(), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.ForeignKeyConstraint(["order_id"], ["sales_orders.id"]),
        sa.ForeignKeyConstraint(["inventory_unit_id"], ["inventory_units.id"]),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("return_requests", schema=None) as batch_op:
        batch_op.create_index("ix_return_requests_order_id", ["order_id"], unique=False)
        batch_op.create_index("ix_return_requests_inventory_unit_id", ["inventory_unit_id"], unique=False)
        batch_op.create_index("ix_return_requests_customer_id", ["customer_id"], unique=False)
        batch_op.create_index("ix_return_requests_status_requested", ["status", "requested_at"], unique=False)
        batch_op.create_index(
            "uq_return_requests_pending_imei",
            ["imei"],
            unique=True,
            sqlite_where=sa.text("status = 'pending'"),
            postgresql_where=sa.text("status = 'pending'"),
        )

    op.create_table(
        "customer_return_history",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("return_request_id", sa.Integer(), nullable=False),
        sa.Column("returned_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("order_number", sa.String(32), nullable=True),
        sa.Column("product_name", sa.String(255), nullable=True),
        sa.Column("imei", sa.String(15), nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.ForeignKeyConstraint(["return_request_id"], ["return_requests.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("customer_return_history", schema=None) as batch_op:
        batch_op.create_index("ix_customer_return_history_customer_id", ["customer_id"], unique=False)
        batch_op.create_index("ix_customer_return_history_return_request_id", ["return_request_id"], unique=False)

    op.create_table(
        "document_sequences",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("document_type", sa.String(32), nullable=False),
        sa.Column("business_date", sa.String(8), nullable=False),
        sa.Column("next_number", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("document_type", "business_date", name="uq_doc_sequences_type_date"),
        sqlite_autoincrement=True,
    )


def downgrade():
    op.drop_table("document_sequences")
    op.drop_table("customer_return_history")
    op.drop_table("return_requests")
    op.drop_table("sales_order_lines")
    op.drop_table("purchase_order_lines")
    op.drop_table("stock_movements")
    op.drop_table("inventory_units")
    op.drop_table("sales_orders")
    op.drop_table("purchase_orders")
    op.drop_table("customers")
    op.drop_table("product_variants")
    op.drop_table("products")
