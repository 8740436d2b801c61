from __future__ import annotations

import base64
import hashlib
import hmac
import json
import os
import time

import requests
from rich import print
from sqlalchemy import select

from reviewhooks.config import settings
from reviewhooks.db import SessionLocal
from reviewhooks.models.transaction_log import TransactionLog
from scripts.seed import SHOPIFY_SHOP_DOMAIN, SQUARE_MERCHANT_ID, seed

BASE = os.getenv("API_BASE_URL", "http://127.0.0.1:8000")

def _digest(secret: str, message: bytes) -> bytes:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).digest()

def post_signed(provider: str, payload: dict, extra_headers: dict[str, str] | None = None) -> requests.Response:
    raw = json.dumps(payload).encode("utf-8")
    headers = {"content-type": "application/json", **(extra_headers or {})}

    if provider == "stripe":
        ts = int(time.time())
        v1 = _digest(settings.STRIPE_WEBHOOK_SECRET or "", f"{ts}.".encode("utf-8") + raw).hex()
        headers["stripe-signature"] = f"t={ts},v1={v1}"
    elif provider == "square":
        # the server signs against its own notification url, so BASE must match it
        message = settings.square_webhook_url().encode("utf-8") + raw
        headers["x-square-hmacsha256-signature"] = base64.b64encode(
            _digest(settings.SQUARE_WEBHOOK_SIGNATURE_KEY or "", message)
        ).decode("ascii")
    else:
        headers["x-shopify-hmac-sha256"] = base64.b64encode(_digest(settings.SHOPIFY_API_SECRET or "", raw)).decode(
            "ascii"
        )

    return requests.post(f"{BASE}/api/webhooks/{provider}", data=raw, headers=headers, timeout=10)

def wait_ready(timeout_s: float = 30.0) -> None:
    deadline = time.time() + timeout_s
    last_err: Exception | None = None

    while time.time() < deadline:
        try:
            r = requests.get(f"{BASE}/ready", timeout=10)
            if r.status_code == 200:
                return
        except Exception as e:
            last_err = e
        time.sleep(0.5)

    if last_err:
        raise RuntimeError(f"api not ready after {timeout_s}s (last error: {last_err})")
    raise RuntimeError(f"api not ready after {timeout_s}s")

def stripe_checkout(run: int) -> dict:
    return {
        "id": f"evt_demo_cs_{run}",
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": f"cs_demo_{run}",
                "mode": "payment",
                "amount_total": 4999,
                "currency": "usd",
                "payment_intent": f"pi_demo_{run}",
                "customer_details": {"name": "Jane Demo", "phone": "+15559876543"},
            }
        },
    }

def stripe_charge(run: int) -> dict:
    # same purchase as the checkout above, must be skipped
    return {
        "id": f"evt_demo_ch_{run}",
        "type": "charge.succeeded",
        "data": {"object": {"id": f"ch_demo_{run}", "amount": 4999, "currency": "usd", "payment_intent": f"pi_demo_{run}"}},
    }

def square_payment(run: int, location: str) -> dict:
    payment_id = f"PAY_DEMO_{location}_{run}"
    return {
        "merchant_id": SQUARE_MERCHANT_ID,
        "type": "payment.updated",
        "event_id": f"sq_demo_{location}_{run}",
        "data": {
            "type": "payment",
            "id": payment_id,
            "object": {
                "payment": {
                    "id": payment_id,
                    "status": "COMPLETED",
                    "location_id": location,
                    "amount_money": {"amount": 1250, "currency": "USD"},
                    "card_details": {"entry_method": "CONTACTLESS"},
                    "billing_address": {"phone_number": "+15553334444"},
                }
            },
        },
    }

def shopify_order(run: int) -> dict:
    return {
        "id": 900000 + run % 100000,
        "total_price": "18.50",
        "source_name": "web",
        "customer": {"first_name": "Ada", "last_name": "Demo", "phone": "+15556667777"},
    }

def main() -> None:
    print("[bold]demo: seed -> signed webhooks for stripe, square, shopify -> audit log[/bold]")

    wait_ready()
    print("[green]ready ok[/green]")

    seeded = seed()
    print("seeded account:", seeded.account_id)

    run = int(time.time())
    deliveries = [
        ("stripe", stripe_checkout(run), None),
        ("stripe", stripe_charge(run), None),
        ("stripe", stripe_checkout(run), None),
        ("square", square_payment(run, "LDEMO_MAIN"), None),
        ("square", square_payment(run, "LDEMO_KIOSK"), None),
        ("shopify", shopify_order(run), {"x-shopify-topic": "orders/create", "x-shopify-shop-domain": SHOPIFY_SHOP_DOMAIN}),
    ]
    for provider, payload, headers in deliveries:
        r = post_signed(provider, payload, headers)
        print(f"{provider:8} -> {r.status_code} {r.text}")

    # background processing runs after the ack
    time.sleep(1.0)

    with SessionLocal() as db:
        rows = db.scalars(
            select(TransactionLog).where(TransactionLog.account_id == seeded.account_id).order_by(TransactionLog.id.desc()).limit(10)
        ).all()
    for row in rows:
        print(f"  {row.external_transaction_id:28} {row.sms_status:28} {row.location_name or ''}")

    print("[bold green]demo complete[/bold green]")

if __name__ == "__main__":
    main()
