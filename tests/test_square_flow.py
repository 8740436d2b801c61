from sqlalchemy import select

from reviewhooks.ingest.lookups import CustomerRecord
from reviewhooks.models.enums import Provider
from reviewhooks.models.processed_event import ProcessedEvent
from reviewhooks.models.transaction_log import TransactionLog

MERCHANT = "MLQ8W3X1"

def _payment(event_id: str, payment_id: str, *, status="COMPLETED", location="LOC_DOWNTOWN", order_id=None, **extra) -> dict:
    payment = {
        "id": payment_id,
        "status": status,
        "location_id": location,
        "customer_id": "SQ_CUST_1",
        "amount_money": {"amount": 1250, "currency": "USD"},
        "source_type": "CARD",
        "card_details": {"entry_method": "EMV"},
    }
    if order_id:
        payment["order_id"] = order_id
    payment.update(extra)
    return {
        "merchant_id": MERCHANT,
        "type": "payment.updated",
        "event_id": event_id,
        "data": {"type": "payment", "id": payment_id, "object": {"payment": payment}},
    }

def _logs(db) -> list[TransactionLog]:
    return list(db.scalars(select(TransactionLog).order_by(TransactionLog.id)))

def _square_integration(make_integration, **kw):
    kw.setdefault(
        "locations",
        [("LOC_DOWNTOWN", "Downtown", True), ("LOC_AIRPORT", "Airport", False)],
    )
    return make_integration(Provider.square, merchant_id=MERCHANT, access_token="sq0atp-test", **kw)

def test_completed_payment_uses_lookup_and_location_name(post_square, make_integration, square_lookup, fake_redis, db_session):
    integration = _square_integration(make_integration)
    square_lookup.records["SQ_CUST_1"] = CustomerRecord("SQ_CUST_1", phone="+15553334444", name="Rita Moreno")

    r = post_square(_payment("sq_evt_1", "PAY_1", order_id="ORD_1"))
    assert r.status_code == 200

    (job,) = fake_redis.jobs()
    assert job["target_phone"] == "+15553334444"
    assert job["location_name"] == "Downtown"

    (row,) = _logs(db_session)
    assert row.integration_id == integration.id
    assert row.external_transaction_id == "PAY_1"
    assert str(row.purchase_amount) == "12.50"

def test_order_for_dispatched_payment_is_not_dispatched_again(post_square, make_integration, square_lookup, fake_redis, db_session):
    _square_integration(make_integration)
    square_lookup.records["SQ_CUST_1"] = CustomerRecord("SQ_CUST_1", phone="+15553334444")

    post_square(_payment("sq_evt_pay", "PAY_2", order_id="ORD_2"))
    order = {
        "merchant_id": MERCHANT,
        "type": "order.updated",
        "event_id": "sq_evt_order",
        "data": {
            "type": "order",
            "id": "ORD_2",
            "object": {"order_updated": {"order_id": "ORD_2", "state": "COMPLETED", "location_id": "LOC_DOWNTOWN"}},
        },
    }
    post_square(order)

    assert len(fake_redis.jobs()) == 1
    assert len(_logs(db_session)) == 1
    ids = set(db_session.scalars(select(ProcessedEvent.event_id).where(ProcessedEvent.provider == "square")))
    assert {"sq_evt_pay", "sq_evt_order", "PAY_2", "ORD_2"} <= ids

def test_disabled_and_unknown_locations_are_logged_not_sent(post_square, make_integration, fake_redis, db_session):
    _square_integration(make_integration)

    post_square(_payment("sq_evt_airport", "PAY_3", location="LOC_AIRPORT", buyer_email_address="x@example.com"))
    post_square(_payment("sq_evt_unknown", "PAY_4", location="LOC_NEW"))

    assert fake_redis.jobs() == []
    rows = _logs(db_session)
    assert [r.sms_status for r in rows] == ["skipped_location_disabled", "skipped_location_disabled"]
    assert rows[0].location_name == "Airport"

def test_incomplete_payment_is_skipped(post_square, make_integration, fake_redis, db_session):
    _square_integration(make_integration)
    post_square(_payment("sq_evt_pending", "PAY_5", status="APPROVED"))

    assert fake_redis.jobs() == []
    assert _logs(db_session) == []

def test_revocation_deactivates_integration(post_square, make_integration, square_lookup, fake_redis, db_session):
    integration = _square_integration(make_integration)
    square_lookup.records["SQ_CUST_1"] = CustomerRecord("SQ_CUST_1", phone="+15553334444")

    revoke = {
        "merchant_id": MERCHANT,
        "type": "oauth.authorization.revoked",
        "event_id": "sq_evt_revoke",
        "data": {"type": "revocation", "id": "rev_1", "object": {"revocation": {"revoker_type": "MERCHANT"}}},
    }
    assert post_square(revoke).status_code == 200

    db_session.refresh(integration)
    assert integration.is_active is False
    assert integration.access_token is None

    post_square(_payment("sq_evt_after_revoke", "PAY_6"))
    assert fake_redis.jobs() == []
    (row,) = _logs(db_session)
    assert row.sms_status == "skipped_integration_inactive"
    assert row.external_transaction_id == "PAY_6"

def test_refund_blocks_a_later_review_request(post_square, make_integration, square_lookup, fake_redis, db_session):
    _square_integration(make_integration)
    square_lookup.records["SQ_CUST_1"] = CustomerRecord("SQ_CUST_1", phone="+15553334444")

    refund = {
        "merchant_id": MERCHANT,
        "type": "refund.created",
        "event_id": "sq_evt_refund",
        "data": {
            "type": "refund",
            "id": "REF_1",
            "object": {"refund": {"id": "REF_1", "status": "COMPLETED", "payment_id": "PAY_7"}},
        },
    }
    post_square(refund)
    post_square(_payment("sq_evt_refunded_payment", "PAY_7"))

    assert fake_redis.jobs() == []
    rows = _logs(db_session)
    assert [r.sms_status for r in rows] == ["skipped_refunded", "skipped_refunded"]
    assert all(r.external_transaction_id == "PAY_7" for r in rows)
