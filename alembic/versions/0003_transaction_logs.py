"""transaction audit log

Revision ID: 0003_transaction_logs
Revises: 0002_processed_events
Create Date: 2026-10-02
"""
from __future__ import annotations

from typing import Sequence

import sqlalchemy as sa
from alembic import op

revision = "0003_transaction_logs"
down_revision = "0002_processed_events"
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None

def upgrade() -> None:
    op.create_table(
        "transaction_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("account_id", sa.Integer(), sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("integration_id", sa.Integer(), sa.ForeignKey("integrations.id"), nullable=False),
        sa.Column("external_transaction_id", sa.String(length=255), nullable=False),
        sa.Column("customer_name", sa.String(length=255), nullable=True),
        sa.Column("customer_phone", sa.String(length=20), nullable=True),
        sa.Column("purchase_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("location_name", sa.String(length=255), nullable=True),
        sa.Column("sms_status", sa.String(length=32), nullable=False),
        sa.Column("skip_reason", sa.String(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_transaction_logs_account_id", "transaction_logs", ["account_id"])
    op.create_index("ix_transaction_logs_integration_id", "transaction_logs", ["integration_id"])
    op.create_index("ix_transaction_logs_external_transaction_id", "transaction_logs", ["external_transaction_id"])
    op.create_index(
        "ix_transaction_logs_recent_contact",
        "transaction_logs",
        ["account_id", "customer_phone", "created_at"],
    )

def downgrade() -> None:
    op.drop_index("ix_transaction_logs_recent_contact", table_name="transaction_logs")
    op.drop_index("ix_transaction_logs_external_transaction_id", table_name="transaction_logs")
    op.drop_index("ix_transaction_logs_integration_id", table_name="transaction_logs")
    op.drop_index("ix_transaction_logs_account_id", table_name="transaction_logs")
    op.drop_table("transaction_logs")
