from __future__ import annotations

import hashlib
import logging
import time

from fastapi import HTTPException, Request

from reviewhooks.config import settings
from reviewhooks.models.enums import Provider
from reviewhooks.redis_client import redis_client

logger = logging.getLogger(__name__)

def _hash(s: str) -> str:
    return hashlib.sha256(s.encode("utf-8")).hexdigest()[:24]

# fixed-window limiter per provider and source ip, using redis INCR + EXPIRE
def webhook_rate_limit(provider: Provider, window_seconds: int = 60):
    name = f"webhooks:{provider.value}"

    async def _dep(request: Request) -> None:
        if not settings.rate_limit_enabled:
            return

        ip = (request.client.host if request.client else "unknown").strip()
        bucket = int(time.time()) // window_seconds
        key = f"rl:{name}:{bucket}:{_hash(ip)}"

        try:
            pipe = redis_client.pipeline()
            pipe.incr(key)
            pipe.expire(key, window_seconds, nx=True)
            count, _ = pipe.execute()
        except Exception:
            # fail-open if redis is down
            return

        if int(count) > settings.rate_limit_webhooks_per_min:
            logger.warning("rate limited %s deliveries from %s", provider.value, _hash(ip))
            retry_after = window_seconds - int(time.time()) % window_seconds
            raise HTTPException(
                status_code=429,
                detail="rate_limited",
                headers={"retry-after": str(retry_after)},
            )

    return _dep
