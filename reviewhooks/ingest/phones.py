"""Phone number resolution for review requests.

Sources are consulted in a fixed order and the first non-empty one wins:

1. metadata supplied by the integrator
2. checkout / session details
3. shipping address
4. billing address
5. the provider's stored customer record (network lookup)

The lookup never aborts the pipeline: timeouts, missing customers and API
errors are logged as warnings and treated as "nothing from this source".
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from reviewhooks.config import settings
from reviewhooks.ingest.errors import CustomerLookupError
from reviewhooks.ingest.events import Transaction, WebhookEvent
from reviewhooks.ingest.lookups import CustomerLookup
from reviewhooks.models.enums import Provider
from reviewhooks.models.integration import Integration

logger = logging.getLogger(__name__)

PhoneSource = Callable[[dict], Any]

@dataclass
class PhoneMatch:
    phone: str
    source: str
    customer_name: str | None = None

def _dig(obj: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(obj, dict):
            return None
        obj = obj.get(key)
    return obj

def _first(*values: Any) -> Any:
    for v in values:
        if v:
            return v
    return None

def _clean(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None

def normalize_e164(raw: str | None, default_region: str | None = None) -> str | None:
    """Parse ``raw`` and return it in E.164, or None when it cannot be a phone number.

    Only the shape is checked; carriers reject unassigned ranges at send time.
    Local-only numbers without an area code are refused.
    """
    if not raw:
        return None
    from phonenumbers import (
        NumberParseException,
        PhoneNumberFormat,
        ValidationResult,
        format_number,
        is_possible_number_with_reason,
        parse,
    )

    try:
        parsed = parse(raw, default_region or settings.sms_default_region)
    except NumberParseException:
        return None
    if is_possible_number_with_reason(parsed) != ValidationResult.IS_POSSIBLE:
        return None
    return format_number(parsed, PhoneNumberFormat.E164)

def in_regions(e164: str, regions: list[str]) -> bool:
    """True when the number's calling code belongs to one of ``regions``."""
    from phonenumbers import country_code_for_region, parse

    calling_code = parse(e164, None).country_code
    return any(country_code_for_region(r) == calling_code for r in regions)

# stripe

def _stripe_metadata(obj: dict) -> Any:
    return _first(_dig(obj, "metadata", "customer_phone"), _dig(obj, "metadata", "phone"))

def _stripe_details(obj: dict) -> Any:
    return _dig(obj, "customer_details", "phone")

def _stripe_shipping(obj: dict) -> Any:
    return _first(_dig(obj, "shipping_details", "phone"), _dig(obj, "shipping", "phone"))

def _stripe_billing(obj: dict) -> Any:
    charges = _dig(obj, "charges", "data") or []
    first_charge = charges[0] if charges and isinstance(charges[0], dict) else {}
    return _first(_dig(obj, "billing_details", "phone"), _dig(first_charge, "billing_details", "phone"))

# square

def _square_resource(obj: dict) -> dict:
    for key in ("payment", "order", "order_created", "order_updated"):
        if isinstance(obj.get(key), dict):
            return obj[key]
    return {}

def _square_metadata(obj: dict) -> Any:
    res = _square_resource(obj)
    return _first(_dig(res, "metadata", "customer_phone"), _dig(res, "metadata", "phone"))

def _square_details(obj: dict) -> Any:
    for f in _square_resource(obj).get("fulfillments") or []:
        for details in ("pickup_details", "shipment_details", "delivery_details"):
            phone = _dig(f, details, "recipient", "phone_number")
            if phone:
                return phone
    return None

def _square_shipping(obj: dict) -> Any:
    return _dig(_square_resource(obj), "shipping_address", "phone_number")

def _square_billing(obj: dict) -> Any:
    return _dig(_square_resource(obj), "billing_address", "phone_number")

# shopify

def _shopify_metadata(order: dict) -> Any:
    for attr in order.get("note_attributes") or []:
        if isinstance(attr, dict) and str(attr.get("name", "")).lower() in {"phone", "customer_phone"}:
            return attr.get("value")
    return None

def _shopify_details(order: dict) -> Any:
    return _first(_dig(order, "customer", "phone"), order.get("phone"))

def _shopify_shipping(order: dict) -> Any:
    return _dig(order, "shipping_address", "phone")

def _shopify_billing(order: dict) -> Any:
    return _dig(order, "billing_address", "phone")

PHONE_SOURCES: dict[Provider, list[tuple[str, PhoneSource]]] = {
    Provider.stripe: [
        ("metadata", _stripe_metadata),
        ("details", _stripe_details),
        ("shipping", _stripe_shipping),
        ("billing", _stripe_billing),
    ],
    Provider.square: [
        ("metadata", _square_metadata),
        ("details", _square_details),
        ("shipping", _square_shipping),
        ("billing", _square_billing),
    ],
    Provider.shopify: [
        ("metadata", _shopify_metadata),
        ("details", _shopify_details),
        ("shipping", _shopify_shipping),
        ("billing", _shopify_billing),
    ],
}

class PhoneResolver:
    def __init__(self, lookups: dict[Provider, CustomerLookup] | None = None):
        self.lookups = lookups or {}

    def resolve(self, tx: Transaction, event: WebhookEvent, integration: Integration) -> PhoneMatch | None:
        obj = event.data_object()
        if not isinstance(obj, dict):
            obj = {}

        for name, source in PHONE_SOURCES.get(event.provider, []):
            phone = _clean(source(obj))
            if phone:
                return PhoneMatch(phone=phone, source=name)

        return self._lookup(tx, event, integration)

    def resolve_phone(self, tx: Transaction, event: WebhookEvent, integration: Integration) -> str | None:
        match = self.resolve(tx, event, integration)
        return match.phone if match else None

    def _lookup(self, tx: Transaction, event: WebhookEvent, integration: Integration) -> PhoneMatch | None:
        lookup = self.lookups.get(event.provider)
        if lookup is None or not tx.customer_id:
            return None

        try:
            record = lookup.fetch(tx.customer_id, integration)
        except CustomerLookupError as e:
            logger.warning(
                "customer lookup failed for %s event_id=%s: %s",
                event.provider.value,
                event.event_id,
                e,
            )
            return None
        except Exception:
            logger.warning(
                "customer lookup raised for %s event_id=%s",
                event.provider.value,
                event.event_id,
                exc_info=True,
            )
            return None

        phone = _clean(record.phone)
        if not phone:
            return None
        return PhoneMatch(phone=phone, source="lookup", customer_name=_clean(record.name))
