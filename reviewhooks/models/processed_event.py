from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from reviewhooks.models.base import Base

class ProcessedEvent(Base):
    __tablename__ = "processed_events"
    __table_args__ = (
        sa.UniqueConstraint("provider", "event_id", name="uq_processed_events_provider_event_id"),
    )

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)

    provider: Mapped[str] = mapped_column(sa.String(32), nullable=False)
    event_id: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    event_type: Mapped[str | None] = mapped_column(sa.String(100), nullable=True)

    processed_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
    )

# insert-only; rows are never updated
