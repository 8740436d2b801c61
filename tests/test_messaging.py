from decimal import Decimal

import pytest

from reviewhooks.ingest.messaging import AuditLog, MessagingTrigger, SmsQueue
from reviewhooks.ingest.phones import normalize_e164
from reviewhooks.models.enums import Provider, SmsStatus

@pytest.fixture()
def trigger(db_session, fake_redis):
    return MessagingTrigger(db_session, SmsQueue(fake_redis))

def _send(trigger, integration, phone="+15551234567", tx_id="tx_1"):
    return trigger.process_transaction(
        integration=integration,
        external_transaction_id=tx_id,
        customer_name="Pat",
        customer_phone=phone,
        purchase_amount=Decimal("20.00"),
        location_name="Main St",
    )

def test_queues_job_for_eligible_purchase(trigger, make_integration, fake_redis):
    integration = make_integration(Provider.square)
    result = _send(trigger, integration, phone="(555) 987-6543")

    assert result.sms_queued is True
    assert result.sms_status == SmsStatus.pending
    assert result.customer_phone == "+15559876543"

    (job,) = fake_redis.jobs()
    assert job["target_phone"] == "+15559876543"
    assert job["review_url"] == "https://g.page/r/corner-bakery/review"
    assert job["business_name"] == "Corner Bakery"
    assert job["test_mode"] is False

@pytest.mark.parametrize("phone", ["12345", "not a phone", "+442071838750"])
def test_invalid_or_foreign_phone(trigger, make_integration, phone):
    result = _send(trigger, make_integration(Provider.stripe), phone=phone)
    assert result.sms_status == SmsStatus.skipped_invalid_phone

def test_consent_required(trigger, make_integration, fake_redis):
    result = _send(trigger, make_integration(Provider.stripe, consent_confirmed=False))
    assert result.sms_status == SmsStatus.skipped_no_consent
    assert fake_redis.jobs() == []

def test_review_url_required(trigger, make_account, make_integration):
    account = make_account(review_url=None)
    result = _send(trigger, make_integration(Provider.stripe, account=account))
    assert result.sms_status == SmsStatus.skipped_no_review_link

def test_usage_limit(trigger, make_account, make_integration):
    account = make_account(sms_usage_count=50, sms_usage_limit=50)
    result = _send(trigger, make_integration(Provider.stripe, account=account))
    assert result.sms_status == SmsStatus.skipped_limit_reached
    assert "50/50" in result.skip_reason

def test_recent_contact_is_not_messaged_again(trigger, db_session, make_integration):
    integration = make_integration(Provider.stripe)
    AuditLog(db_session).log_transaction(
        integration=integration,
        external_transaction_id="tx_earlier",
        sms_status=SmsStatus.sent,
        customer_phone="+15551234567",
    )

    result = _send(trigger, integration, tx_id="tx_later")
    assert result.sms_status == SmsStatus.skipped_recent

    # a different customer is fine
    assert _send(trigger, integration, phone="+15551234568").sms_queued is True

def test_skipped_rows_do_not_count_as_contact(trigger, db_session, make_integration):
    integration = make_integration(Provider.stripe)
    AuditLog(db_session).log_transaction(
        integration=integration,
        external_transaction_id="tx_skipped",
        sms_status=SmsStatus.skipped_location_disabled,
        customer_phone="+15551234567",
    )
    assert _send(trigger, integration).sms_queued is True

def test_test_mode_reroutes_to_test_phone(trigger, make_integration, fake_redis):
    integration = make_integration(Provider.stripe, test_mode=True, test_phone_number="555-000-1234")
    result = _send(trigger, integration)

    assert result.sms_queued is True
    assert result.test_mode is True
    assert result.customer_phone == "+15551234567"
    (job,) = fake_redis.jobs()
    assert job["target_phone"] == "+15550001234"
    assert job["test_mode"] is True

def test_test_mode_without_test_phone(trigger, make_integration, fake_redis):
    result = _send(trigger, make_integration(Provider.stripe, test_mode=True))
    assert result.sms_status == SmsStatus.skipped_test_mode
    assert fake_redis.jobs() == []

def test_normalize_e164():
    assert normalize_e164("+1 (555) 111-1111") == "+15551111111"
    assert normalize_e164("5552222222") == "+15552222222"
    assert normalize_e164("") is None
    assert normalize_e164(None) is None
    assert normalize_e164("abc") is None
