from enum import Enum

class Provider(str, Enum):
    stripe = "stripe"
    square = "square"
    shopify = "shopify"

class Origin(str, Enum):
    checkout = "checkout"
    terminal = "terminal"
    charge = "charge"

class SmsStatus(str, Enum):
    pending = "pending"
    sent = "sent"
    failed = "failed"
    skipped_no_phone = "skipped_no_phone"
    skipped_invalid_phone = "skipped_invalid_phone"
    skipped_recent = "skipped_recent"
    skipped_no_review_link = "skipped_no_review_link"
    skipped_limit_reached = "skipped_limit_reached"
    skipped_test_mode = "skipped_test_mode"
    skipped_no_consent = "skipped_no_consent"
    skipped_location_disabled = "skipped_location_disabled"
    skipped_refunded = "skipped_refunded"
    skipped_integration_inactive = "skipped_integration_inactive"
    skipped_trigger_disabled = "skipped_trigger_disabled"

# statuses that count as "we already reached out to this customer"
CONTACTED_STATUSES = {SmsStatus.pending.value, SmsStatus.sent.value}
