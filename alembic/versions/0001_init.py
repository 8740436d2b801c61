"""init schema

Revision ID: 0001_init
Revises: 
Create Date: 2026-09-28
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None

def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("business_name", sa.String(length=200), nullable=False),
        sa.Column("review_url", sa.String(length=500), nullable=True),
        sa.Column("stripe_customer_id", sa.String(length=255), nullable=True),
        sa.Column("sms_usage_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("sms_usage_limit", sa.Integer(), server_default="50", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.UniqueConstraint("stripe_customer_id", name="uq_accounts_stripe_customer_id"),
    )

    op.create_table(
        "integrations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("account_id", sa.Integer(), sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("provider", sa.String(length=32), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("trigger_on_checkout", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("trigger_on_terminal", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("merchant_id", sa.String(length=255), nullable=True),
        sa.Column("shop_domain", sa.String(length=255), nullable=True),
        sa.Column("access_token", sa.Text(), nullable=True),
        sa.Column("test_mode", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("test_phone_number", sa.String(length=20), nullable=True),
        sa.Column("consent_confirmed", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.UniqueConstraint("account_id", "provider", name="uq_integrations_account_provider"),
    )
    op.create_index("ix_integrations_account_id", "integrations", ["account_id"])
    op.create_index("ix_integrations_merchant_id", "integrations", ["merchant_id"])
    op.create_index("ix_integrations_shop_domain", "integrations", ["shop_domain"])

    op.create_table(
        "integration_locations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("integration_id", sa.Integer(), sa.ForeignKey("integrations.id"), nullable=False),
        sa.Column("external_location_id", sa.String(length=255), nullable=False),
        sa.Column("location_name", sa.String(length=255), nullable=True),
        sa.Column("is_enabled", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.UniqueConstraint(
            "integration_id",
            "external_location_id",
            name="uq_integration_locations_integration_external",
        ),
    )
    op.create_index("ix_integration_locations_integration_id", "integration_locations", ["integration_id"])

def downgrade() -> None:
    op.drop_index("ix_integration_locations_integration_id", table_name="integration_locations")
    op.drop_table("integration_locations")
    op.drop_index("ix_integrations_shop_domain", table_name="integrations")
    op.drop_index("ix_integrations_merchant_id", table_name="integrations")
    op.drop_index("ix_integrations_account_id", table_name="integrations")
    op.drop_table("integrations")
    op.drop_table("accounts")
