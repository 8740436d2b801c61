from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

_CENTS = Decimal("0.01")

# currencies whose minor unit is the major unit
ZERO_DECIMAL_CURRENCIES = {
    "bif", "clp", "djf", "gnf", "jpy", "kmf", "krw", "mga",
    "pyg", "rwf", "ugx", "vnd", "vuv", "xaf", "xof", "xpf",
}

def minor_to_decimal(amount: Any, currency: str | None = None) -> Decimal | None:
    """Convert an integer minor-unit amount (e.g. cents) to currency units."""
    if amount is None or isinstance(amount, bool):
        return None
    try:
        value = Decimal(int(amount))
    except (TypeError, ValueError, InvalidOperation):
        return None
    if currency and currency.lower() in ZERO_DECIMAL_CURRENCIES:
        return value.quantize(_CENTS)
    return (value / 100).quantize(_CENTS, rounding=ROUND_HALF_UP)

def parse_decimal(amount: Any) -> Decimal | None:
    # shopify already sends "49.99"
    if amount is None or amount == "":
        return None
    try:
        return Decimal(str(amount)).quantize(_CENTS, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        return None
