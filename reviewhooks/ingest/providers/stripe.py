"""Stripe Checkout and Terminal payment events.

``checkout.session.completed``, ``payment_intent.succeeded`` and
``charge.succeeded`` can all describe the same purchase. The payment intent id
is written to the ledger next to whichever event is handled first, and the
others skip with ``already_processed_via_pi``.
"""
from __future__ import annotations

from typing import Any

from reviewhooks.config import settings
from reviewhooks.ingest.events import NormalizedTransaction, NormalizeResult, Skip, Transaction, WebhookEvent
from reviewhooks.ingest.ledger import EventLedger
from reviewhooks.ingest.money import minor_to_decimal
from reviewhooks.models.enums import Origin, Provider

CARD_PRESENT = "card_present"

def _metadata(obj: dict) -> dict:
    md = obj.get("metadata")
    return md if isinstance(md, dict) else {}

def _account_ref(obj: dict) -> str | None:
    raw = _metadata(obj).get(settings.metadata_account_key)
    return str(raw).strip() if raw not in (None, "") else None

def _customer_id(obj: dict) -> str | None:
    customer = obj.get("customer")
    # expanded customer objects carry the id inside
    if isinstance(customer, dict):
        customer = customer.get("id")
    return customer or None

def _metadata_name(obj: dict) -> str | None:
    md = _metadata(obj)
    return md.get("customer_name") or md.get("name") or None

def _pi_already_handled(ledger: EventLedger, pi_id: Any) -> bool:
    return bool(pi_id) and isinstance(pi_id, str) and ledger.is_processed(Provider.stripe.value, pi_id)

def is_terminal_payment_intent(pi: dict) -> bool:
    if CARD_PRESENT in (pi.get("payment_method_types") or []):
        return True
    charges = (pi.get("charges") or {}).get("data") or []
    if charges and isinstance(charges[0], dict):
        details = charges[0].get("payment_method_details") or {}
        return details.get("type") == CARD_PRESENT
    return False

def checkout_session_completed(event: WebhookEvent, session: dict, ledger: EventLedger) -> NormalizeResult:
    mode = session.get("mode")
    # subscription checkouts belong to billing
    if mode == "subscription":
        return Skip("subscription_checkout")
    if mode != "payment":
        return Skip("not_payment_mode")

    pi_id = session.get("payment_intent")
    if isinstance(pi_id, dict):
        pi_id = pi_id.get("id")
    if _pi_already_handled(ledger, pi_id):
        return Skip("already_processed_via_pi")

    details = session.get("customer_details") or {}
    tx = Transaction(
        external_transaction_id=session["id"],
        origin=Origin.checkout,
        purchase_amount=minor_to_decimal(session.get("amount_total"), session.get("currency")),
        customer_name=details.get("name") or _metadata_name(session),
        location_name="Stripe Checkout",
        account_ref=_account_ref(session),
        customer_id=_customer_id(session),
    )
    return NormalizedTransaction(tx, ledger_aliases=[pi_id] if pi_id else [])

def payment_intent_succeeded(event: WebhookEvent, pi: dict, ledger: EventLedger) -> NormalizeResult:
    if _pi_already_handled(ledger, pi.get("id")):
        return Skip("already_processed_via_pi")

    terminal = is_terminal_payment_intent(pi)
    amount = pi.get("amount_received") or pi.get("amount")
    tx = Transaction(
        external_transaction_id=pi["id"],
        origin=Origin.terminal if terminal else Origin.checkout,
        purchase_amount=minor_to_decimal(amount, pi.get("currency")),
        customer_name=_metadata_name(pi),
        location_name="Stripe Terminal" if terminal else "Stripe Payment",
        account_ref=_account_ref(pi),
        customer_id=_customer_id(pi),
    )
    return NormalizedTransaction(tx, ledger_aliases=[pi["id"]])

def charge_succeeded(event: WebhookEvent, charge: dict, ledger: EventLedger) -> NormalizeResult:
    pi_id = charge.get("payment_intent")
    if isinstance(pi_id, dict):
        pi_id = pi_id.get("id")
    if _pi_already_handled(ledger, pi_id):
        return Skip("already_processed_via_pi")

    terminal = (charge.get("payment_method_details") or {}).get("type") == CARD_PRESENT
    billing = charge.get("billing_details") or {}
    tx = Transaction(
        external_transaction_id=charge["id"],
        origin=Origin.terminal if terminal else Origin.charge,
        purchase_amount=minor_to_decimal(charge.get("amount"), charge.get("currency")),
        customer_name=_metadata_name(charge) or billing.get("name"),
        location_name="Stripe Terminal" if terminal else "Stripe Charge",
        account_ref=_account_ref(charge),
        customer_id=_customer_id(charge),
    )
    return NormalizedTransaction(tx, ledger_aliases=[pi_id] if pi_id else [])

HANDLERS = {
    "checkout.session.completed": checkout_session_completed,
    "payment_intent.succeeded": payment_intent_succeeded,
    "charge.succeeded": charge_succeeded,
}
