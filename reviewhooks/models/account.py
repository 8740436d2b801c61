from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from reviewhooks.models.base import Base

class Account(Base):
    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)

    business_name: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    review_url: Mapped[str | None] = mapped_column(sa.String(500), nullable=True)

    # customer id -> account mapping used when an event carries no explicit account tag
    stripe_customer_id: Mapped[str | None] = mapped_column(sa.String(255), nullable=True, unique=True)

    sms_usage_count: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0, server_default="0")
    sms_usage_limit: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=50, server_default="50")

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )
