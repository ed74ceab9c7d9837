"""initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_initial_schema"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ENUMS = {
    "user_role": ("ADMIN", "PROVIDER"),
    "order_status": ("PENDING", "PROCESSING", "SHIPPED", "DELIVERED", "CANCELLED"),
    "notification_type": ("ORDER", "INVENTORY", "SYSTEM", "SHIPMENT", "PRICE_CHANGE", "STOCK_ALERT", "PROMOTION"),
    "audit_action": ("CREATE", "READ", "UPDATE", "DELETE", "LOGIN", "LOGOUT", "LOGIN_FAILED"),
    "audit_severity": ("LOW", "MEDIUM", "HIGH", "CRITICAL"),
    "setting_category": ("GENERAL", "NOTIFICATION", "INTEGRATION", "BACKUP", "ORGANIZATION"),
    "invoice_status": ("PENDING", "PAID", "OVERDUE", "CANCELLED"),
    "report_format": ("JSON", "CSV", "EXCEL", "PDF"),
    "report_status": ("PENDING", "PROCESSING", "COMPLETED", "FAILED"),
}


def _enum(name: str) -> postgresql.ENUM:
    # types are created once in upgrade(), several tables share them
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def _id() -> sa.Column:
    return sa.Column("id", sa.String(36), primary_key=True)


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(), nullable=False)


def _updated_at() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(), nullable=False)


def upgrade() -> None:
    bind = op.get_bind()
    for name, values in ENUMS.items():
        postgresql.ENUM(*values, name=name).create(bind, checkfirst=True)

    op.create_table(
        "users",
        _id(),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role", _enum("user_role"), nullable=False),
        sa.Column("refresh_token", sa.Text()),
        sa.Column("reset_token", sa.String(128)),
        sa.Column("reset_expires", sa.DateTime()),
        _created_at(),
        _updated_at(),
    )
    op.create_index("ix_users_reset_token", "users", ["reset_token"])

    op.create_table(
        "medicines",
        _id(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("category", sa.String(100)),
        _created_at(),
        _updated_at(),
        sa.CheckConstraint("quantity >= 0", name="ck_medicine_quantity_nonneg"),
        sa.CheckConstraint("price >= 0", name="ck_medicine_price_nonneg"),
    )
    op.create_index("ix_medicines_name", "medicines", ["name"])
    op.create_index("ix_medicines_category", "medicines", ["category"])

    op.create_table(
        "orders",
        _id(),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("status", _enum("order_status"), nullable=False),
        sa.Column("total_price", sa.Numeric(12, 2), nullable=False),
        _created_at(),
        _updated_at(),
    )
    op.create_index("ix_orders_user_id", "orders", ["user_id"])
    op.create_index("ix_orders_user_created", "orders", ["user_id", "created_at"])

    op.create_table(
        "order_items",
        _id(),
        sa.Column("order_id", sa.String(36), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("medicine_id", sa.String(36), sa.ForeignKey("medicines.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_order_item_qty_pos"),
        sa.CheckConstraint("price >= 0", name="ck_order_item_price_nonneg"),
    )
    op.create_index("ix_order_items_order_id", "order_items", ["order_id"])
    op.create_index("ix_order_items_medicine_id", "order_items", ["medicine_id"])

    op.create_table(
        "order_templates",
        _id(),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text()),
        _created_at(),
        _updated_at(),
    )
    op.create_index("ix_order_templates_user_id", "order_templates", ["user_id"])

    op.create_table(
        "order_template_items",
        _id(),
        sa.Column(
            "template_id", sa.String(36), sa.ForeignKey("order_templates.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("medicine_id", sa.String(36), sa.ForeignKey("medicines.id", ondelete="CASCADE"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_template_item_qty_pos"),
    )

    op.create_table(
        "notifications",
        _id(),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE")),
        sa.Column("event", sa.String(255), nullable=False),
        sa.Column("details", sa.Text(), nullable=False),
        sa.Column("type", _enum("notification_type"), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])

    op.create_table(
        "audit_logs",
        _id(),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("action", _enum("audit_action"), nullable=False),
        sa.Column("resource", sa.String(64), nullable=False),
        sa.Column("resource_id", sa.String(64)),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("details", sa.JSON()),
        sa.Column("ip_address", sa.String(64)),
        sa.Column("user_agent", sa.String(512)),
        sa.Column("severity", _enum("audit_severity"), nullable=False),
        _created_at(),
    )
    op.create_index("ix_audit_resource", "audit_logs", ["resource", "resource_id"])
    op.create_index("ix_audit_created", "audit_logs", ["created_at"])

    op.create_table(
        "security_events",
        _id(),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("event_type", sa.String(64), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("ip_address", sa.String(64)),
        sa.Column("user_agent", sa.String(512)),
        sa.Column("severity", _enum("audit_severity"), nullable=False),
        sa.Column("details", sa.JSON()),
        sa.Column("resolved", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("resolved_at", sa.DateTime()),
        sa.Column("resolved_by", sa.String(36), sa.ForeignKey("users.id", ondelete="SET NULL")),
        _created_at(),
    )

    op.create_table(
        "settings",
        _id(),
        sa.Column("key", sa.String(128), nullable=False, unique=True),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column("category", _enum("setting_category"), nullable=False),
        _updated_at(),
    )

    op.create_table(
        "invoices",
        _id(),
        sa.Column("invoice_number", sa.String(32), nullable=False, unique=True),
        sa.Column("order_id", sa.String(36), sa.ForeignKey("orders.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("customer_name", sa.String(200), nullable=False),
        sa.Column("customer_email", sa.String(255), nullable=False),
        sa.Column("billing_address", sa.Text(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("tax", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("discount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("status", _enum("invoice_status"), nullable=False),
        _created_at(),
    )
    op.create_index("ix_invoices_order_id", "invoices", ["order_id"])

    op.create_table(
        "report_templates",
        _id(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("category", sa.String(64), nullable=False),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_by", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("config", sa.JSON(), nullable=False),
        _created_at(),
    )

    op.create_table(
        "reports",
        _id(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("template_id", sa.String(36), sa.ForeignKey("report_templates.id", ondelete="SET NULL")),
        sa.Column("created_by", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("config", sa.JSON(), nullable=False),
        sa.Column("format", _enum("report_format"), nullable=False),
        sa.Column("status", _enum("report_status"), nullable=False),
        sa.Column("file_path", sa.String(1024)),
        sa.Column("file_size", sa.Integer()),
        sa.Column("error_message", sa.Text()),
        sa.Column("scheduled_at", sa.DateTime()),
        sa.Column("completed_at", sa.DateTime()),
        sa.Column("expires_at", sa.DateTime()),
        _created_at(),
    )
    op.create_index("ix_reports_created_by", "reports", ["created_by"])

    op.create_table(
        "report_executions",
        _id(),
        sa.Column("report_id", sa.String(36), sa.ForeignKey("reports.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", _enum("report_status"), nullable=False),
        sa.Column("file_path", sa.String(1024)),
        sa.Column("file_size", sa.Integer()),
        sa.Column("error_message", sa.Text()),
        sa.Column("started_at", sa.DateTime(), nullable=False),
        sa.Column("completed_at", sa.DateTime()),
    )
    op.create_index("ix_report_executions_report_id", "report_executions", ["report_id"])


def downgrade() -> None:
    for table in (
        "report_executions",
        "reports",
        "report_templates",
        "invoices",
        "settings",
        "security_events",
        "audit_logs",
        "notifications",
        "order_template_items",
        "order_templates",
        "order_items",
        "orders",
        "medicines",
        "users",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for name in ENUMS:
        postgresql.ENUM(name=name).drop(bind, checkfirst=True)
