from sqlalchemy import func, select

from reviewhooks.ingest.ledger import EventLedger, RedisClaims
from reviewhooks.models.processed_event import ProcessedEvent

class DownRedis:
    def set(self, *args, **kwargs):
        raise ConnectionError("redis down")

    def delete(self, *args, **kwargs):
        raise ConnectionError("redis down")

def test_mark_processed_is_insert_once(db_session):
    ledger = EventLedger(db_session)

    assert ledger.is_processed("stripe", "evt_once") is False
    assert ledger.mark_processed("stripe", "evt_once", "charge.succeeded") is True
    assert ledger.mark_processed("stripe", "evt_once", "charge.succeeded") is False
    assert ledger.is_processed("stripe", "evt_once") is True

    count = db_session.scalar(select(func.count()).select_from(ProcessedEvent))
    assert count == 1

def test_same_event_id_is_scoped_per_provider(db_session):
    ledger = EventLedger(db_session)
    assert ledger.mark_processed("stripe", "shared_id") is True
    assert ledger.mark_processed("square", "shared_id") is True
    assert ledger.is_processed("shopify", "shared_id") is False

def test_claim_is_exclusive_until_released(fake_redis):
    claims = RedisClaims(fake_redis, ttl_seconds=30)

    assert claims.acquire("square", "evt_claim") is True
    assert claims.acquire("square", "evt_claim") is False
    assert claims.acquire("stripe", "evt_claim") is True

    claims.release("square", "evt_claim")
    assert claims.acquire("square", "evt_claim") is True

def test_claims_fail_open_when_redis_is_down(db_session):
    ledger = EventLedger(db_session, RedisClaims(DownRedis()))
    assert ledger.claim("stripe", "evt_down") is True
    # release swallows the error too
    ledger.release("stripe", "evt_down")

def test_ledger_without_claims_always_claims(db_session):
    ledger = EventLedger(db_session)
    assert ledger.claim("stripe", "evt_x") is True
    assert ledger.claim("stripe", "evt_x") is True
