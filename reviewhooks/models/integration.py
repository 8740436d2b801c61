from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from reviewhooks.models.base import Base

class Integration(Base):
    __tablename__ = "integrations"
    __table_args__ = (sa.UniqueConstraint("account_id", "provider", name="uq_integrations_account_provider"),)

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(sa.Integer, sa.ForeignKey("accounts.id"), index=True, nullable=False)

    provider: Mapped[str] = mapped_column(sa.String(32), nullable=False)
    is_active: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True, server_default=sa.true())

    trigger_on_checkout: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True, server_default=sa.true())
    trigger_on_terminal: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True, server_default=sa.true())

    # square merchant id / shopify shop domain
    merchant_id: Mapped[str | None] = mapped_column(sa.String(255), nullable=True, index=True)
    shop_domain: Mapped[str | None] = mapped_column(sa.String(255), nullable=True, index=True)
    access_token: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)

    test_mode: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False, server_default=sa.false())
    test_phone_number: Mapped[str | None] = mapped_column(sa.String(20), nullable=True)
    consent_confirmed: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False, server_default=sa.false())

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )

    locations: Mapped[list["Location"]] = relationship(
        back_populates="integration",
        lazy="selectin",
        order_by="Location.id",
    )

class Location(Base):
    __tablename__ = "integration_locations"
    __table_args__ = (
        sa.UniqueConstraint(
            "integration_id", "external_location_id", name="uq_integration_locations_integration_external"
        ),
    )

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    integration_id: Mapped[int] = mapped_column(
        sa.Integer, sa.ForeignKey("integrations.id"), index=True, nullable=False
    )

    external_location_id: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    location_name: Mapped[str | None] = mapped_column(sa.String(255), nullable=True)
    is_enabled: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False, server_default=sa.false())

    integration: Mapped[Integration] = relationship(back_populates="locations")
