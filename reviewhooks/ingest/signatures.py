"""Per-provider webhook signature checks.

Every verifier works on the raw request bytes, before any JSON parsing, and
compares digests with ``hmac.compare_digest``. A missing secret, missing or
malformed header, stale timestamp, or any error while computing the digest
returns False. Nothing here raises.
"""
from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import time
from collections.abc import Mapping

from reviewhooks.config import settings
from reviewhooks.models.enums import Provider

logger = logging.getLogger(__name__)

STRIPE_SIGNATURE_HEADER = "stripe-signature"
SQUARE_SIGNATURE_HEADER = "x-square-hmacsha256-signature"
SHOPIFY_SIGNATURE_HEADER = "x-shopify-hmac-sha256"

def _hmac_sha256(secret: str, message: bytes) -> bytes:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).digest()

def _parse_stripe_header(header: str) -> dict[str, list[str]]:
    parts: dict[str, list[str]] = {}
    for item in header.split(","):
        if "=" not in item:
            continue
        k, v = item.split("=", 1)
        parts.setdefault(k.strip(), []).append(v.strip())
    return parts

def verify_stripe(
    raw_body: bytes,
    header: str | None,
    secret: str | None,
    *,
    tolerance_seconds: int = 300,
    now: int | None = None,
) -> bool:
    # canonical string: "<t>." + body, hex digest, any v1 may match
    if not secret:
        logger.warning("stripe webhook secret not configured, rejecting delivery")
        return False
    if not header:
        return False

    try:
        parts = _parse_stripe_header(header)
        ts_list = parts.get("t") or []
        v1_list = parts.get("v1") or []
        if not ts_list or not v1_list:
            return False

        ts = int(ts_list[0])
        current = int(time.time()) if now is None else now
        if abs(current - ts) > tolerance_seconds:
            logger.info("stripe signature timestamp outside tolerance")
            return False

        signed_payload = f"{ts}.".encode("utf-8") + raw_body
        expected = _hmac_sha256(secret, signed_payload).hex()
        return any(hmac.compare_digest(expected, cand) for cand in v1_list)
    except Exception:
        return False

def verify_square(
    raw_body: bytes,
    header: str | None,
    secret: str | None,
    *,
    notification_url: str,
) -> bool:
    # canonical string: notification url + body, base64 digest
    if not secret:
        logger.warning("square signature key not configured, rejecting delivery")
        return False
    if not header:
        return False

    try:
        signed_payload = notification_url.encode("utf-8") + raw_body
        expected = base64.b64encode(_hmac_sha256(secret, signed_payload)).decode("ascii")
        return hmac.compare_digest(expected.encode("ascii"), header.strip().encode("utf-8"))
    except Exception:
        return False

def verify_shopify(raw_body: bytes, header: str | None, secret: str | None) -> bool:
    # canonical string: body, base64 digest
    if not secret:
        logger.warning("shopify api secret not configured, rejecting delivery")
        return False
    if not header:
        return False

    try:
        expected = base64.b64encode(_hmac_sha256(secret, raw_body)).decode("ascii")
        return hmac.compare_digest(expected.encode("ascii"), header.strip().encode("utf-8"))
    except Exception:
        return False

def verify_request(provider: Provider, raw_body: bytes, headers: Mapping[str, str]) -> bool:
    """Check a delivery against the configured secret for ``provider``.

    ``headers`` must be case-insensitive or already lower-cased.
    """
    if provider == Provider.stripe:
        return verify_stripe(
            raw_body,
            headers.get(STRIPE_SIGNATURE_HEADER),
            settings.STRIPE_WEBHOOK_SECRET,
            tolerance_seconds=settings.stripe_signature_tolerance_seconds,
        )
    if provider == Provider.square:
        return verify_square(
            raw_body,
            headers.get(SQUARE_SIGNATURE_HEADER),
            settings.SQUARE_WEBHOOK_SIGNATURE_KEY,
            notification_url=settings.square_webhook_url(),
        )
    if provider == Provider.shopify:
        return verify_shopify(
            raw_body,
            headers.get(SHOPIFY_SIGNATURE_HEADER),
            settings.SHOPIFY_API_SECRET,
        )

    logger.warning("no signature scheme for provider %s", provider)
    return False
