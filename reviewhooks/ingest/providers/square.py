"""Square payment, order, refund and oauth events.

Square posts both a payment and an order for most sales. Each side records the
other's id as a ledger alias so only the first one to arrive is dispatched.
"""
from __future__ import annotations

from reviewhooks.ingest.events import (
    LifecycleAction,
    NormalizedTransaction,
    NormalizeResult,
    Skip,
    Transaction,
    WebhookEvent,
)
from reviewhooks.ingest.ledger import EventLedger
from reviewhooks.ingest.money import minor_to_decimal
from reviewhooks.models.enums import Origin, Provider

CARD_PRESENT_ENTRY_METHODS = {"EMV", "CONTACTLESS", "SWIPED"}
REMOTE_FULFILLMENTS = {"SHIPMENT", "PICKUP", "DELIVERY"}

def _amount(resource: dict):
    money = resource.get("total_money") or resource.get("amount_money") or {}
    return minor_to_decimal(money.get("amount"), money.get("currency"))

def _seen(ledger: EventLedger, object_id: str | None) -> bool:
    return bool(object_id) and ledger.is_processed(Provider.square.value, object_id)

def payment_origin(payment: dict) -> Origin:
    if payment.get("source_type") == "CASH":
        return Origin.terminal
    entry_method = (payment.get("card_details") or {}).get("entry_method")
    return Origin.terminal if entry_method in CARD_PRESENT_ENTRY_METHODS else Origin.checkout

def order_origin(order: dict) -> Origin:
    for f in order.get("fulfillments") or []:
        if isinstance(f, dict) and f.get("type") in REMOTE_FULFILLMENTS:
            return Origin.checkout
    return Origin.terminal

def payment_event(event: WebhookEvent, obj: dict, ledger: EventLedger) -> NormalizeResult:
    payment = obj.get("payment")
    if not isinstance(payment, dict):
        return Skip("no_payment_data")
    if payment.get("status") != "COMPLETED":
        return Skip("payment_not_completed")

    order_id = payment.get("order_id")
    if _seen(ledger, payment.get("id")) or _seen(ledger, order_id):
        return Skip("already_processed")

    tx = Transaction(
        external_transaction_id=payment["id"],
        origin=payment_origin(payment),
        purchase_amount=_amount(payment),
        merchant_ref=event.payload.get("merchant_id"),
        customer_id=payment.get("customer_id"),
        location_id=payment.get("location_id"),
    )
    aliases = [payment["id"]] + ([order_id] if order_id else [])
    return NormalizedTransaction(tx, ledger_aliases=aliases)

def order_event(event: WebhookEvent, obj: dict, ledger: EventLedger) -> NormalizeResult:
    order = obj.get("order") or obj.get("order_created") or obj.get("order_updated")
    if not isinstance(order, dict):
        return Skip("no_order_data")
    if order.get("state") != "COMPLETED":
        return Skip("order_not_completed")

    order_id = order.get("id") or order.get("order_id")
    if not order_id:
        return Skip("no_order_data")
    if _seen(ledger, order_id):
        return Skip("already_processed")

    tx = Transaction(
        external_transaction_id=order_id,
        origin=order_origin(order),
        purchase_amount=_amount(order),
        merchant_ref=event.payload.get("merchant_id"),
        customer_id=order.get("customer_id"),
        location_id=order.get("location_id"),
    )
    return NormalizedTransaction(tx, ledger_aliases=[order_id])

def refund_event(event: WebhookEvent, obj: dict, ledger: EventLedger) -> NormalizeResult:
    refund = obj.get("refund")
    if not isinstance(refund, dict):
        return Skip("no_refund_data")
    if refund.get("status") not in {"COMPLETED", "APPROVED"}:
        return Skip("refund_not_completed")
    return LifecycleAction(
        "refund",
        merchant_ref=event.payload.get("merchant_id"),
        external_transaction_id=refund.get("payment_id") or refund.get("order_id"),
    )

def oauth_revoked(event: WebhookEvent, obj: dict, ledger: EventLedger) -> NormalizeResult:
    return LifecycleAction("revoke", merchant_ref=event.payload.get("merchant_id"))

HANDLERS = {
    "payment.created": payment_event,
    "payment.updated": payment_event,
    "order.created": order_event,
    "order.updated": order_event,
    "refund.created": refund_event,
    "refund.updated": refund_event,
    "oauth.authorization.revoked": oauth_revoked,
}
