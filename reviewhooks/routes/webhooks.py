from __future__ import annotations

import json
import logging
from collections.abc import Callable

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from reviewhooks.db import get_session_factory
from reviewhooks.ingest.dispatcher import process_event
from reviewhooks.ingest.events import WebhookEvent
from reviewhooks.ingest.ledger import RedisClaims
from reviewhooks.ingest.lookups import CustomerLookup, default_lookups
from reviewhooks.ingest.messaging import SmsQueue
from reviewhooks.ingest.providers import shopify
from reviewhooks.ingest.signatures import verify_request
from reviewhooks.models.enums import Provider
from reviewhooks.ratelimit import webhook_rate_limit
from reviewhooks.redis_client import redis_client
from reviewhooks.schemas.webhooks import WebhookAck

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])

def get_claims() -> RedisClaims | None:
    return RedisClaims(redis_client)

def get_sms_queue() -> SmsQueue:
    return SmsQueue(redis_client)

def get_lookups() -> dict[Provider, CustomerLookup]:
    return default_lookups()

class PipelineDeps:
    def __init__(
        self,
        session_factory: Callable[[], Session] = Depends(get_session_factory),
        claims: RedisClaims | None = Depends(get_claims),
        queue: SmsQueue = Depends(get_sms_queue),
        lookups: dict[Provider, CustomerLookup] = Depends(get_lookups),
    ):
        self.session_factory = session_factory
        self.claims = claims
        self.queue = queue
        self.lookups = lookups

def _parse_json(raw: bytes) -> dict:
    try:
        payload = json.loads(raw.decode("utf-8"))
    except Exception:
        raise HTTPException(status_code=400, detail="invalid_json")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="invalid_json")
    return payload

def _build_event(provider: Provider, payload: dict, request: Request) -> WebhookEvent:
    context: dict[str, str] = {}

    if provider == Provider.stripe:
        event_id, event_type = payload.get("id"), payload.get("type")
    elif provider == Provider.square:
        event_id, event_type = payload.get("event_id"), payload.get("type")
    else:
        # shopify carries the event name in a header, not the body
        event_type = request.headers.get(shopify.TOPIC_HEADER)
        event_id = shopify.event_id_for(payload, event_type) if event_type else None
        shop_domain = request.headers.get(shopify.SHOP_DOMAIN_HEADER)
        if shop_domain:
            context["shop_domain"] = shop_domain.strip().lower()

    if not isinstance(event_id, str) or not event_id or not isinstance(event_type, str) or not event_type:
        raise HTTPException(status_code=400, detail="invalid_event")

    return WebhookEvent(
        provider=provider,
        event_id=event_id,
        event_type=event_type,
        payload=payload,
        context=context,
    )

async def handle_request(
    provider: Provider,
    request: Request,
    background: BackgroundTasks,
    deps: PipelineDeps,
):
    """Verify, parse and acknowledge. The pipeline runs after the response is sent."""
    try:
        raw = await request.body()

        if not verify_request(provider, raw, request.headers):
            logger.warning("rejected %s webhook: invalid signature", provider.value)
            raise HTTPException(status_code=401, detail="invalid_signature")

        payload = _parse_json(raw)
        event = _build_event(provider, payload, request)
        logger.info(
            "accepted %s webhook event_id=%s type=%s", provider.value, event.event_id, event.event_type
        )

        background.add_task(
            process_event,
            event,
            deps.session_factory,
            claims=deps.claims,
            queue=deps.queue,
            lookups=deps.lookups,
        )
        return WebhookAck()
    except HTTPException:
        raise
    except Exception:
        logger.exception("%s webhook failed before acknowledgement", provider.value)
        return JSONResponse(status_code=500, content={"detail": "internal_error"})

@router.post("/stripe", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    background: BackgroundTasks,
    deps: PipelineDeps = Depends(),
    _: None = Depends(webhook_rate_limit(Provider.stripe)),
):
    return await handle_request(Provider.stripe, request, background, deps)

@router.post("/square", response_model=WebhookAck)
async def square_webhook(
    request: Request,
    background: BackgroundTasks,
    deps: PipelineDeps = Depends(),
    _: None = Depends(webhook_rate_limit(Provider.square)),
):
    return await handle_request(Provider.square, request, background, deps)

@router.post("/shopify", response_model=WebhookAck)
async def shopify_webhook(
    request: Request,
    background: BackgroundTasks,
    deps: PipelineDeps = Depends(),
    _: None = Depends(webhook_rate_limit(Provider.shopify)),
):
    return await handle_request(Provider.shopify, request, background, deps)
