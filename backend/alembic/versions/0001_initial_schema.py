"""Initial schema: clients, users, catalog, stock, invoices, sales, audit.

Revision ID: 0001
Revises:
Create Date: 2026-10-18
"""

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa


def upgrade() -> None:
    op.create_table(
        "clients",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column(
            "role",
            sa.Enum("SUPER_ADMIN", "ADMIN", "MANAGER", "CASHIER", name="userrole"),
            nullable=False,
        ),
        sa.Column("is_super_admin", sa.Boolean(), server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("client_id", sa.String(36), sa.ForeignKey("clients.id")),
        sa.Column("custom_permissions", sa.JSON()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "products",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("client_id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("brand_name", sa.String(120), nullable=False),
        sa.Column("series_name", sa.String(120), nullable=False),
        sa.Column(
            "product_type",
            sa.Enum("BATTERY", "TONIC", "ACCESSORY", "OTHER", name="producttype"),
            nullable=False,
        ),
        sa.Column("category", sa.String(120)),
        sa.Column("description", sa.Text()),
        sa.Column("specifications", sa.JSON()),
        sa.Column("price", sa.Float(), server_default="0"),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_products_client_id", "products", ["client_id"])
    op.create_index("ix_products_brand_name", "products", ["brand_name"])

    op.create_table(
        "stock_entries",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("client_id", sa.String(36), nullable=False),
        sa.Column("product_id", sa.String(36), sa.ForeignKey("products.id"), nullable=False, unique=True),
        sa.Column("brand_name", sa.String(120), nullable=False),
        sa.Column("series_name", sa.String(120), nullable=False),
        sa.Column("in_stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("sold_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("product_cost", sa.Float(), server_default="0"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint("client_id", "brand_name", "series_name", name="uq_stock_series"),
    )
    op.create_index("ix_stock_entries_client_id", "stock_entries", ["client_id"])

    op.create_table(
        "invoices",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("client_id", sa.String(36), nullable=False),
        sa.Column("invoice_no", sa.String(8), nullable=False),
        sa.Column("customer_name", sa.String(255), nullable=False),
        sa.Column("customer_address", sa.Text(), nullable=False),
        sa.Column("customer_contact_number", sa.String(50), nullable=False),
        sa.Column("customer_type", sa.String(50)),
        sa.Column("customer_id", sa.String(36)),
        sa.Column("vehicle_no", sa.String(50)),
        sa.Column("products", sa.JSON()),
        sa.Column("payment_method", sa.JSON()),
        sa.Column("total_amount", sa.Float(), nullable=False),
        sa.Column("received_amount", sa.Float(), server_default="0"),
        sa.Column("batteries_rate", sa.Float(), server_default="0"),
        sa.Column("remaining_amount", sa.Float(), nullable=False),
        sa.Column("payment_status", sa.String(20), nullable=False),
        sa.Column("is_pay_later", sa.Boolean(), server_default=sa.false()),
        sa.Column("additional_payments", sa.JSON()),
        sa.Column("edit_history", sa.JSON()),
        sa.Column("created_date", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("created_by", sa.String(36)),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint("client_id", "invoice_no", name="uq_invoice_client_no"),
    )
    op.create_index("ix_invoices_client_id", "invoices", ["client_id"])
    op.create_index("ix_invoices_invoice_no", "invoices", ["invoice_no"])
    op.create_index("ix_invoices_customer_name", "invoices", ["customer_name"])
    op.create_index("ix_invoices_payment_status", "invoices", ["payment_status"])
    op.create_index("ix_invoices_created_date", "invoices", ["created_date"])

    op.create_table(
        "invoice_counters",
        sa.Column("name", sa.String(80), primary_key=True),
        sa.Column("value", sa.Integer(), nullable=False, server_default="0"),
    )

    op.create_table(
        "sales",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("client_id", sa.String(36), nullable=False),
        sa.Column("invoice_no", sa.String(8), nullable=False),
        sa.Column("date", sa.DateTime(), nullable=False),
        sa.Column("customer_name", sa.String(255), nullable=False),
        sa.Column("products", sa.JSON()),
        sa.Column("total_amount", sa.Float(), nullable=False),
        sa.Column("payment_method", sa.JSON()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint("client_id", "invoice_no", name="uq_sales_client_invoice"),
    )
    op.create_index("ix_sales_client_id", "sales", ["client_id"])
    op.create_index("ix_sales_invoice_no", "sales", ["invoice_no"])
    op.create_index("ix_sales_date", "sales", ["date"])

    op.create_table(
        "warranty_history",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("client_id", sa.String(36), nullable=False),
        sa.Column("warranty_code", sa.String(255), nullable=False),
        sa.Column("customer_name", sa.String(255), nullable=False),
        sa.Column("customer_contact_number", sa.String(50)),
        sa.Column("customer_address", sa.Text()),
        sa.Column("product_details", sa.JSON(), nullable=False),
        sa.Column("original_invoice_no", sa.String(8), nullable=False),
        sa.Column("original_invoice_id", sa.String(36), nullable=False),
        sa.Column("event", sa.String(20), nullable=False),
        sa.Column("reason", sa.Text()),
        sa.Column("deleted_at", sa.DateTime()),
        sa.Column("recorded_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_warranty_history_client_id", "warranty_history", ["client_id"])
    op.create_index("ix_warranty_history_warranty_code", "warranty_history", ["warranty_code"])
    op.create_index("ix_warranty_history_recorded_at", "warranty_history", ["recorded_at"])

    for table, time_col in (("archived_invoices", "archived_at"), ("invoice_edit_history", "edited_at")):
        op.create_table(
            table,
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("client_id", sa.String(36), nullable=False),
            sa.Column("invoice_no", sa.String(8), nullable=False),
            sa.Column("original_id", sa.String(36), nullable=False),
            sa.Column("snapshot", sa.JSON(), nullable=False),
            sa.Column("reason", sa.Text()),
            sa.Column(time_col, sa.DateTime(), server_default=sa.func.now()),
        )
        op.create_index(f"ix_{table}_client_id", table, ["client_id"])
        op.create_index(f"ix_{table}_invoice_no", table, ["invoice_no"])
    op.create_index("ix_invoice_edit_history_original_id", "invoice_edit_history", ["original_id"])

    op.create_table(
        "activity_logs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("client_id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("user_name", sa.String(200), nullable=False),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.String(36)),
        sa.Column("entity_code", sa.String(100)),
        sa.Column("summary", sa.Text()),
        sa.Column("details", sa.JSON()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_activity_logs_client_id", "activity_logs", ["client_id"])
    op.create_index("ix_activity_logs_user_id", "activity_logs", ["user_id"])
    op.create_index("ix_activity_logs_action", "activity_logs", ["action"])
    op.create_index("ix_activity_logs_entity_type", "activity_logs", ["entity_type"])
    op.create_index("ix_activity_logs_created_at", "activity_logs", ["created_at"])


def downgrade() -> None:
    for table in (
        "activity_logs", "invoice_edit_history", "archived_invoices",
        "warranty_history", "sales", "invoice_counters", "invoices",
        "stock_entries", "products", "users", "clients",
    ):
        op.drop_table(table)
    sa.Enum(name="producttype").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="userrole").drop(op.get_bind(), checkfirst=True)
