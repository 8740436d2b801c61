from collections.abc import Callable

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from reviewhooks.config import settings
from reviewhooks.db import db_ping
from reviewhooks.models.enums import Provider
from reviewhooks.redis_client import redis_ping

router = APIRouter(tags=["health"])

# name -> probe; the ledger and audit log live in the db, claims and the sms queue in redis
PROBES: dict[str, Callable[[], bool]] = {"db": db_ping, "redis": redis_ping}

def _probe(fn: Callable[[], bool]) -> tuple[bool, str | None]:
    try:
        return bool(fn()), None
    except Exception as e:
        detail = str(e).strip()
        return False, e.__class__.__name__ + (f": {detail}" if detail else "")

def _signing_configured() -> dict[str, bool]:
    return {
        Provider.stripe.value: bool(settings.STRIPE_WEBHOOK_SECRET),
        Provider.square.value: bool(settings.SQUARE_WEBHOOK_SIGNATURE_KEY),
        Provider.shopify.value: bool(settings.SHOPIFY_API_SECRET),
    }

@router.get("/health")
def health() -> dict:
    return {"status": "ok"}

@router.get("/ready")
def ready():
    results = {name: _probe(fn) for name, fn in PROBES.items()}
    ok = all(passed for passed, _ in results.values())

    body: dict = {
        "status": "ok" if ok else "unready",
        "checks": {name: passed for name, (passed, _) in results.items()},
        # unsigned providers reject every delivery; reported, not fatal
        "signing": _signing_configured(),
    }
    errors = {name: err for name, (_, err) in results.items() if err}
    if errors:
        body["errors"] = errors

    return JSONResponse(status_code=200 if ok else 503, content=body)
