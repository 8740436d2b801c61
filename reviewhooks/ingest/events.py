"""In-memory shapes passed between pipeline stages."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from reviewhooks.models.enums import Origin, Provider

def _now_utc() -> datetime:
    return datetime.now(timezone.utc)

@dataclass
class WebhookEvent:
    """One verified delivery. Lives only for the duration of its processing."""

    provider: Provider
    event_id: str
    event_type: str
    payload: dict[str, Any]
    received_at: datetime = field(default_factory=_now_utc)
    # header-borne context, e.g. the shopify shop domain
    context: dict[str, str] = field(default_factory=dict)

    def data_object(self) -> Any:
        # stripe and square nest the resource under data.object; shopify posts it bare
        if self.provider == Provider.shopify:
            return self.payload
        data = self.payload.get("data")
        if not isinstance(data, dict):
            return None
        return data.get("object")

@dataclass
class Transaction:
    external_transaction_id: str
    origin: Origin
    purchase_amount: Decimal | None = None
    customer_name: str | None = None
    customer_phone: str | None = None
    location_name: str | None = None
    integration_id: int | None = None

    # resolution hints
    account_ref: str | None = None
    merchant_ref: str | None = None
    customer_id: str | None = None
    location_id: str | None = None

@dataclass
class NormalizedTransaction:
    transaction: Transaction
    # sibling object ids recorded in the ledger next to the event id
    ledger_aliases: list[str] = field(default_factory=list)

@dataclass
class Skip:
    reason: str

@dataclass
class LifecycleAction:
    action: str
    merchant_ref: str | None = None
    external_transaction_id: str | None = None

NormalizeResult = NormalizedTransaction | Skip | LifecycleAction

@dataclass
class Outcome:
    skipped: bool
    reason: str | None = None
    state: str = "Received"
    sms_queued: bool = False
    transaction_log_id: int | None = None
    action: str | None = None

    @classmethod
    def skip(cls, reason: str, state: str, transaction_log_id: int | None = None) -> "Outcome":
        return cls(skipped=True, reason=reason, state=state, transaction_log_id=transaction_log_id)
