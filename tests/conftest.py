import base64
import hashlib
import hmac
import json
import os
import time

# configure before anything imports reviewhooks.config
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("BASE_URL", "http://testserver")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test")
os.environ.setdefault("SQUARE_WEBHOOK_SIGNATURE_KEY", "sq_sig_test")
os.environ.setdefault("SHOPIFY_API_SECRET", "shpss_test")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from reviewhooks.config import settings
from reviewhooks.db import get_session_factory
from reviewhooks.ingest.dispatcher import TransactionDispatcher
from reviewhooks.ingest.errors import CustomerLookupError
from reviewhooks.ingest.ledger import EventLedger, RedisClaims
from reviewhooks.ingest.lookups import CustomerRecord
from reviewhooks.ingest.messaging import MessagingTrigger, SmsQueue
from reviewhooks.ingest.phones import PhoneResolver
from reviewhooks.main import create_app
from reviewhooks.models.account import Account
from reviewhooks.models.base import Base
from reviewhooks.models.enums import Provider
from reviewhooks.models.integration import Integration, Location
from reviewhooks.routes.webhooks import get_claims, get_lookups, get_sms_queue

class FakeRedis:
    """Just enough of the redis client surface for claims and the sms queue."""

    def __init__(self):
        self.values: dict[str, str] = {}
        self.lists: dict[str, list[str]] = {}

    def set(self, key, value, nx=False, ex=None):
        if nx and key in self.values:
            return None
        self.values[key] = value
        return True

    def delete(self, key):
        return 1 if self.values.pop(key, None) is not None else 0

    def rpush(self, key, value):
        self.lists.setdefault(key, []).append(value)
        return len(self.lists[key])

    def jobs(self) -> list[dict]:
        return [json.loads(v) for v in self.lists.get(settings.sms_queue_key, [])]

class FakeLookup:
    def __init__(self):
        self.records: dict[str, CustomerRecord] = {}
        self.fail_with: Exception | None = None
        self.calls: list[str] = []

    def fetch(self, customer_id, integration):
        self.calls.append(customer_id)
        if self.fail_with is not None:
            raise self.fail_with
        if customer_id not in self.records:
            raise CustomerLookupError("customer not found")
        return self.records[customer_id]

@pytest.fixture()
def engine():
    url = os.environ.get("TEST_DATABASE_URL", "sqlite+pysqlite:///:memory:")
    kwargs = {}
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}
    eng = create_engine(url, **kwargs)
    Base.metadata.create_all(eng)
    try:
        yield eng
    finally:
        Base.metadata.drop_all(eng)
        eng.dispose()

@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)

@pytest.fixture()
def db_session(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()

@pytest.fixture()
def fake_redis() -> FakeRedis:
    return FakeRedis()

@pytest.fixture()
def stripe_lookup() -> FakeLookup:
    return FakeLookup()

@pytest.fixture()
def square_lookup() -> FakeLookup:
    return FakeLookup()

@pytest.fixture()
def lookups(stripe_lookup, square_lookup):
    return {Provider.stripe: stripe_lookup, Provider.square: square_lookup}

@pytest.fixture()
def client(session_factory, fake_redis, lookups) -> TestClient:
    app = create_app()
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_claims] = lambda: RedisClaims(fake_redis)
    app.dependency_overrides[get_sms_queue] = lambda: SmsQueue(fake_redis)
    app.dependency_overrides[get_lookups] = lambda: lookups
    return TestClient(app)

@pytest.fixture()
def dispatcher(db_session, fake_redis, lookups) -> TransactionDispatcher:
    ledger = EventLedger(db_session, RedisClaims(fake_redis))
    return TransactionDispatcher(
        db_session,
        ledger,
        MessagingTrigger(db_session, SmsQueue(fake_redis)),
        PhoneResolver(lookups),
    )

@pytest.fixture()
def make_account(db_session):
    def _make(**kw) -> Account:
        kw.setdefault("business_name", "Corner Bakery")
        kw.setdefault("review_url", "https://g.page/r/corner-bakery/review")
        acct = Account(**kw)
        db_session.add(acct)
        db_session.commit()
        return acct

    return _make

@pytest.fixture()
def make_integration(db_session, make_account):
    def _make(provider: Provider | str = Provider.stripe, account: Account | None = None, locations=(), **kw) -> Integration:
        account = account or make_account()
        kw.setdefault("consent_confirmed", True)
        integration = Integration(
            account_id=account.id,
            provider=Provider(provider).value,
            **kw,
        )
        db_session.add(integration)
        db_session.flush()
        for ext_id, name, enabled in locations:
            db_session.add(
                Location(
                    integration_id=integration.id,
                    external_location_id=ext_id,
                    location_name=name,
                    is_enabled=enabled,
                )
            )
        db_session.commit()
        db_session.refresh(integration)
        return integration

    return _make

def stripe_sig(secret: str, raw: bytes, ts: int | None = None) -> str:
    ts = ts or int(time.time())
    signed = f"{ts}.".encode("utf-8") + raw
    v1 = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={ts},v1={v1}"

def b64_sig(secret: str, message: bytes) -> str:
    return base64.b64encode(hmac.new(secret.encode("utf-8"), message, hashlib.sha256).digest()).decode("ascii")

@pytest.fixture()
def post_raw(client):
    """Sign ``raw`` the way ``provider`` does and post it."""

    def _post(provider: Provider | str, raw: bytes, headers: dict[str, str] | None = None, signature: str | None = None):
        provider = Provider(provider)
        headers = {"content-type": "application/json", **(headers or {})}
        if provider == Provider.stripe:
            headers["stripe-signature"] = signature or stripe_sig(settings.STRIPE_WEBHOOK_SECRET or "", raw)
        elif provider == Provider.square:
            message = settings.square_webhook_url().encode("utf-8") + raw
            headers["x-square-hmacsha256-signature"] = signature or b64_sig(settings.SQUARE_WEBHOOK_SIGNATURE_KEY or "", message)
        else:
            headers["x-shopify-hmac-sha256"] = signature or b64_sig(settings.SHOPIFY_API_SECRET or "", raw)
        return client.post(f"/api/webhooks/{provider.value}", content=raw, headers=headers)

    return _post

@pytest.fixture()
def post_stripe(post_raw):
    def _post(payload: dict, signature: str | None = None):
        return post_raw(Provider.stripe, json.dumps(payload).encode("utf-8"), signature=signature)

    return _post

@pytest.fixture()
def post_square(post_raw):
    def _post(payload: dict):
        return post_raw(Provider.square, json.dumps(payload).encode("utf-8"))

    return _post

@pytest.fixture()
def post_shopify(post_raw):
    def _post(payload: dict, topic: str = "orders/create", shop: str = "corner-bakery.myshopify.com"):
        return post_raw(
            Provider.shopify,
            json.dumps(payload).encode("utf-8"),
            headers={"x-shopify-topic": topic, "x-shopify-shop-domain": shop},
        )

    return _post
