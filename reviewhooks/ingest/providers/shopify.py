from __future__ import annotations

from reviewhooks.ingest.events import LifecycleAction, NormalizedTransaction, NormalizeResult, Skip, Transaction, WebhookEvent
from reviewhooks.ingest.ledger import EventLedger
from reviewhooks.ingest.money import parse_decimal
from reviewhooks.models.enums import Origin

SHOP_DOMAIN_HEADER = "x-shopify-shop-domain"
TOPIC_HEADER = "x-shopify-topic"

def event_id_for(payload: dict, topic: str) -> str | None:
    # shopify has no event id in the body; order id + topic is stable across retries
    object_id = payload.get("id")
    if object_id in (None, ""):
        return None
    return f"{object_id}-{topic}"

def _customer_name(order: dict) -> str | None:
    customer = order.get("customer") or {}
    name = f"{customer.get('first_name') or ''} {customer.get('last_name') or ''}".strip()
    return name or None

def location_label(order: dict) -> str:
    fulfillments = order.get("fulfillments") or []
    if order.get("location_id") and fulfillments:
        first = fulfillments[0] or {}
        if first.get("location_id"):
            return f"Location {first['location_id']}"
    return order.get("source_name") or "Online"

def order_created(event: WebhookEvent, order: dict, ledger: EventLedger) -> NormalizeResult:
    if order.get("id") in (None, ""):
        return Skip("malformed_payload")

    location_id = order.get("location_id")
    tx = Transaction(
        external_transaction_id=str(order["id"]),
        origin=Origin.terminal if order.get("source_name") == "pos" else Origin.checkout,
        purchase_amount=parse_decimal(order.get("total_price")),
        customer_name=_customer_name(order),
        location_name=location_label(order),
        merchant_ref=event.context.get("shop_domain"),
        location_id=str(location_id) if location_id else None,
    )
    return NormalizedTransaction(tx)

def app_uninstalled(event: WebhookEvent, payload: dict, ledger: EventLedger) -> NormalizeResult:
    return LifecycleAction("revoke", merchant_ref=event.context.get("shop_domain"))

HANDLERS = {
    "orders/create": order_created,
    "app/uninstalled": app_uninstalled,
}
