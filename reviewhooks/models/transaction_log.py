from datetime import datetime
from decimal import Decimal

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from reviewhooks.models.base import Base

class TransactionLog(Base):
    __tablename__ = "transaction_logs"
    __table_args__ = (
        sa.Index("ix_transaction_logs_recent_contact", "account_id", "customer_phone", "created_at"),
    )

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)

    account_id: Mapped[int] = mapped_column(sa.Integer, sa.ForeignKey("accounts.id"), index=True, nullable=False)
    integration_id: Mapped[int] = mapped_column(
        sa.Integer, sa.ForeignKey("integrations.id"), index=True, nullable=False
    )

    external_transaction_id: Mapped[str] = mapped_column(sa.String(255), index=True, nullable=False)
    customer_name: Mapped[str | None] = mapped_column(sa.String(255), nullable=True)
    customer_phone: Mapped[str | None] = mapped_column(sa.String(20), nullable=True)
    purchase_amount: Mapped[Decimal | None] = mapped_column(sa.Numeric(10, 2), nullable=True)
    location_name: Mapped[str | None] = mapped_column(sa.String(255), nullable=True)

    sms_status: Mapped[str] = mapped_column(sa.String(32), nullable=False)
    skip_reason: Mapped[str | None] = mapped_column(sa.String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )

# write-once audit row, one per terminal outcome
