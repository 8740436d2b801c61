from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from reviewhooks.ingest.events import NormalizeResult, Skip, WebhookEvent
from reviewhooks.ingest.ledger import EventLedger
from reviewhooks.ingest.providers import shopify, square, stripe
from reviewhooks.models.enums import Provider

logger = logging.getLogger(__name__)

Handler = Callable[[WebhookEvent, dict, EventLedger], NormalizeResult]

def _build_routes() -> dict[tuple[Provider, str], Handler]:
    routes: dict[tuple[Provider, str], Handler] = {}
    for provider, handlers in (
        (Provider.stripe, stripe.HANDLERS),
        (Provider.square, square.HANDLERS),
        (Provider.shopify, shopify.HANDLERS),
    ):
        for event_type, fn in handlers.items():
            routes[(provider, event_type)] = fn
    return routes

ROUTES = _build_routes()

def is_routed(provider: Provider, event_type: str) -> bool:
    return (provider, event_type) in ROUTES

def normalize(event: WebhookEvent, ledger: EventLedger) -> NormalizeResult:
    handler = ROUTES.get((event.provider, event.event_type))
    if handler is None:
        return Skip("unhandled_event_type")

    obj: Any = event.data_object()
    if not isinstance(obj, dict):
        return Skip("malformed_payload")

    try:
        return handler(event, obj, ledger)
    except (KeyError, TypeError, AttributeError) as e:
        logger.warning(
            "malformed %s payload for %s event_id=%s: %s",
            event.provider.value,
            event.event_type,
            event.event_id,
            e.__class__.__name__,
        )
        return Skip("malformed_payload")
