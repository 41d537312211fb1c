"""create service management tables

Revision ID: 202610010001
Revises:
Create Date: 2026-10-01 00:01:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610010001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "users_user",
        sa.Column("id", sa.String(length=128), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("role", sa.String(length=32), nullable=False, server_default="customer"),
        sa.Column("city", sa.String(length=128), nullable=True),
        sa.Column("franchise_area_id", sa.Uuid(), nullable=True),
        sa.Column("push_notification_token", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("phone"),
    )
    op.create_index("ix_users_user_role_active", "users_user", ["role", "is_active"], unique=False)

    op.create_table(
        "catalog_product",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("images", sa.Text(), nullable=True),
        sa.Column("rent_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("buy_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("deposit", sa.Numeric(12, 2), nullable=False),
        sa.Column("is_rentable", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_purchasable", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("razorpay_plan_id", sa.String(length=64), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_catalog_product_active", "catalog_product", ["is_active"], unique=False)

    op.create_table(
        "franchise_area",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("city", sa.String(length=128), nullable=False),
        sa.Column("owner_id", sa.String(length=128), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.ForeignKeyConstraint(["owner_id"], ["users_user.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_franchise_area_city", "franchise_area", ["city"], unique=False)
    op.create_index("ix_franchise_area_owner", "franchise_area", ["owner_id"], unique=False)

    op.create_table(
        "franchise_agent",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("franchise_id", sa.Uuid(), nullable=False),
        sa.Column("agent_id", sa.String(length=128), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("assigned_date", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["franchise_id"], ["franchise_area.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["agent_id"], ["users_user.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("franchise_id", "agent_id", name="uq_franchise_agent_pair"),
    )
    op.create_index("ix_franchise_agent_agent", "franchise_agent", ["agent_id"], unique=False)

    op.create_table(
        "installation_request",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("customer_id", sa.String(length=128), nullable=False),
        sa.Column("product_id", sa.Uuid(), nullable=False),
        sa.Column("franchise_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=32), nullable=False),
        sa.Column("installation_address", sa.Text(), nullable=True),
        sa.Column("order_type", sa.String(length=16), nullable=False, server_default="RENTAL"),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="SUBMITTED"),
        sa.Column("assigned_technician_id", sa.String(length=128), nullable=True),
        sa.Column("connect_id", sa.String(length=16), nullable=True),
        sa.Column("razorpay_subscription_id", sa.String(length=64), nullable=True),
        sa.Column("razorpay_payment_link", sa.String(length=512), nullable=True),
        sa.Column("scheduled_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_date", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["customer_id"], ["users_user.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["catalog_product.id"]),
        sa.ForeignKeyConstraint(["franchise_id"], ["franchise_area.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("connect_id", name="uq_installation_request_connect_id"),
    )
    op.create_index(
        "ix_installation_request_franchise_status",
        "installation_request",
        ["franchise_id", "status"],
        unique=False,
    )
    op.create_index("ix_installation_request_customer", "installation_request", ["customer_id"], unique=False)

    op.create_table(
        "subscription",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("connect_id", sa.String(length=16), nullable=False),
        sa.Column("request_id", sa.Uuid(), nullable=False),
        sa.Column("customer_id", sa.String(length=128), nullable=False),
        sa.Column("product_id", sa.Uuid(), nullable=False),
        sa.Column("franchise_id", sa.Uuid(), nullable=False),
        sa.Column("plan_name", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="ACTIVE"),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("current_period_start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("current_period_end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("next_payment_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("monthly_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("deposit_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("razorpay_subscription_id", sa.String(length=64), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["request_id"], ["installation_request.id"]),
        sa.ForeignKeyConstraint(["customer_id"], ["users_user.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["catalog_product.id"]),
        sa.ForeignKeyConstraint(["franchise_id"], ["franchise_area.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("request_id", name="uq_subscription_request"),
        sa.UniqueConstraint("connect_id", name="uq_subscription_connect_id"),
    )
    op.create_index("ix_subscription_customer", "subscription", ["customer_id"], unique=False)
    op.create_index("ix_subscription_franchise_status", "subscription", ["franchise_id", "status"], unique=False)

    op.create_table(
        "service_request",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("customer_id", sa.String(length=128), nullable=False),
        sa.Column("product_id", sa.Uuid(), nullable=False),
        sa.Column("subscription_id", sa.Uuid(), nullable=True),
        sa.Column("installation_request_id", sa.Uuid(), nullable=True),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("images", sa.Text(), nullable=True),
        sa.Column("before_images", sa.Text(), nullable=True),
        sa.Column("after_images", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="CREATED"),
        sa.Column("assigned_to_id", sa.String(length=128), nullable=True),
        sa.Column("franchise_id", sa.Uuid(), nullable=False),
        sa.Column("scheduled_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("requires_payment", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
        sa.ForeignKeyConstraint(["customer_id"], ["users_user.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["catalog_product.id"]),
        sa.ForeignKeyConstraint(["subscription_id"], ["subscription.id"]),
        sa.ForeignKeyConstraint(["installation_request_id"], ["installation_request.id"]),
        sa.ForeignKeyConstraint(["assigned_to_id"], ["users_user.id"]),
        sa.ForeignKeyConstraint(["franchise_id"], ["franchise_area.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_service_request_franchise_status", "service_request", ["franchise_id", "status"], unique=False)
    op.create_index("ix_service_request_customer", "service_request", ["customer_id"], unique=False)
    op.create_index("ix_service_request_assignee", "service_request", ["assigned_to_id"], unique=False)
    op.create_index("ix_service_request_installation", "service_request", ["installation_request_id"], unique=False)

    op.create_table(
        "payments_payment",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("installation_request_id", sa.Uuid(), nullable=True),
        sa.Column("service_request_id", sa.Uuid(), nullable=True),
        sa.Column("subscription_id", sa.Uuid(), nullable=True),
        sa.Column("customer_id", sa.String(length=128), nullable=True),
        sa.Column("franchise_id", sa.Uuid(), nullable=True),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="PENDING"),
        sa.Column("payment_method", sa.String(length=32), nullable=True),
        sa.Column("razorpay_payment_id", sa.String(length=64), nullable=True),
        sa.Column("razorpay_order_id", sa.String(length=64), nullable=True),
        sa.Column("razorpay_subscription_id", sa.String(length=64), nullable=True),
        sa.Column("paid_date", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["installation_request_id"], ["installation_request.id"]),
        sa.ForeignKeyConstraint(["service_request_id"], ["service_request.id"]),
        sa.ForeignKeyConstraint(["subscription_id"], ["subscription.id"]),
        sa.ForeignKeyConstraint(["customer_id"], ["users_user.id"]),
        sa.ForeignKeyConstraint(["franchise_id"], ["franchise_area.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("razorpay_payment_id", name="uq_payments_payment_gateway_id"),
    )
    op.create_index(
        "ix_payments_payment_installation_status",
        "payments_payment",
        ["installation_request_id", "status"],
        unique=False,
    )
    op.create_index("ix_payments_payment_customer", "payments_payment", ["customer_id"], unique=False)

    op.create_table(
        "action_history_entry",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("entity_type", sa.String(length=32), nullable=False),
        sa.Column("entity_id", sa.Uuid(), nullable=False),
        sa.Column("service_request_id", sa.Uuid(), nullable=True),
        sa.Column("installation_request_id", sa.Uuid(), nullable=True),
        sa.Column("subscription_id", sa.Uuid(), nullable=True),
        sa.Column("payment_id", sa.Uuid(), nullable=True),
        sa.Column("action_type", sa.String(length=64), nullable=False),
        sa.Column("from_status", sa.String(length=32), nullable=True),
        sa.Column("to_status", sa.String(length=32), nullable=True),
        sa.Column("performed_by", sa.String(length=128), nullable=False),
        sa.Column("performed_by_role", sa.String(length=32), nullable=False),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_action_history_entity",
        "action_history_entry",
        ["entity_type", "entity_id", "created_at"],
        unique=False,
    )
    op.create_index("ix_action_history_service_request", "action_history_entry", ["service_request_id"], unique=False)
    op.create_index(
        "ix_action_history_installation_request",
        "action_history_entry",
        ["installation_request_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_table("action_history_entry")
    op.drop_table("payments_payment")
    op.drop_table("service_request")
    op.drop_table("subscription")
    op.drop_table("installation_request")
    op.drop_table("franchise_agent")
    op.drop_table("franchise_area")
    op.drop_table("catalog_product")
    op.drop_table("users_user")
