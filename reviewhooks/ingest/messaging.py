"""Review-request messaging trigger and the transaction audit log.

``MessagingTrigger.process_transaction`` decides whether a resolved purchase
may produce an SMS and, if so, pushes a job onto the redis list consumed by
the SMS worker. It reports an outcome and never writes the audit row itself;
the dispatcher records exactly one ``TransactionLog`` per outcome.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from reviewhooks.config import settings
from reviewhooks.ingest.errors import MessagingError
from reviewhooks.ingest.phones import in_regions, normalize_e164
from reviewhooks.models.account import Account
from reviewhooks.models.enums import CONTACTED_STATUSES, SmsStatus
from reviewhooks.models.integration import Integration
from reviewhooks.models.transaction_log import TransactionLog

logger = logging.getLogger(__name__)

@dataclass
class DispatchResult:
    sms_queued: bool
    sms_status: SmsStatus
    skip_reason: str | None = None
    customer_phone: str | None = None
    test_mode: bool = False

class SmsQueue:
    def __init__(self, client: Any, key: str | None = None):
        self.client = client
        self.key = key or settings.sms_queue_key

    def enqueue(self, job: dict) -> None:
        try:
            self.client.rpush(self.key, json.dumps(job, default=str))
        except Exception as e:
            raise MessagingError(f"sms queue unavailable: {e.__class__.__name__}") from e

class AuditLog:
    def __init__(self, db: Session):
        self.db = db

    def log_transaction(
        self,
        *,
        integration: Integration,
        external_transaction_id: str,
        sms_status: SmsStatus | str,
        customer_name: str | None = None,
        customer_phone: str | None = None,
        purchase_amount: Decimal | None = None,
        location_name: str | None = None,
        skip_reason: str | None = None,
    ) -> TransactionLog:
        row = TransactionLog(
            account_id=integration.account_id,
            integration_id=integration.id,
            external_transaction_id=external_transaction_id,
            customer_name=customer_name,
            customer_phone=customer_phone,
            purchase_amount=purchase_amount,
            location_name=location_name,
            sms_status=SmsStatus(sms_status).value,
            skip_reason=skip_reason[:500] if skip_reason else None,
        )
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return row

    def was_refunded(self, integration: Integration, external_transaction_id: str) -> bool:
        return (
            self.db.scalar(
                select(TransactionLog.id).where(
                    TransactionLog.integration_id == integration.id,
                    TransactionLog.external_transaction_id == external_transaction_id,
                    TransactionLog.sms_status == SmsStatus.skipped_refunded.value,
                )
            )
            is not None
        )

    def was_contacted_recently(self, account_id: int, phone: str, days: int) -> bool:
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        return (
            self.db.scalar(
                select(TransactionLog.id)
                .where(
                    TransactionLog.account_id == account_id,
                    TransactionLog.customer_phone == phone,
                    TransactionLog.sms_status.in_(CONTACTED_STATUSES),
                    TransactionLog.created_at >= cutoff,
                )
                .limit(1)
            )
            is not None
        )

class MessagingTrigger:
    def __init__(self, db: Session, queue: SmsQueue, audit: AuditLog | None = None):
        self.db = db
        self.queue = queue
        self.audit = audit or AuditLog(db)

    def process_transaction(
        self,
        *,
        integration: Integration,
        external_transaction_id: str,
        customer_name: str | None,
        customer_phone: str,
        purchase_amount: Decimal | None,
        location_name: str | None,
    ) -> DispatchResult:
        phone = normalize_e164(customer_phone)
        if phone is None or not in_regions(phone, settings.sms_allowed_regions):
            return DispatchResult(False, SmsStatus.skipped_invalid_phone, "Invalid or unsupported phone number")

        if not integration.consent_confirmed:
            return DispatchResult(False, SmsStatus.skipped_no_consent, "SMS consent not confirmed", phone)

        account = self.db.get(Account, integration.account_id)
        if account is None or not account.review_url:
            return DispatchResult(False, SmsStatus.skipped_no_review_link, "No review URL configured", phone)

        if account.sms_usage_count >= account.sms_usage_limit:
            return DispatchResult(
                False,
                SmsStatus.skipped_limit_reached,
                f"SMS limit reached ({account.sms_usage_count}/{account.sms_usage_limit})",
                phone,
            )

        if self.audit.was_contacted_recently(account.id, phone, settings.recent_contact_days):
            return DispatchResult(
                False, SmsStatus.skipped_recent, f"Contacted within last {settings.recent_contact_days} days", phone
            )

        if self.audit.was_refunded(integration, external_transaction_id):
            return DispatchResult(False, SmsStatus.skipped_refunded, "Order was refunded", phone)

        target = phone
        if integration.test_mode:
            target = normalize_e164(integration.test_phone_number)
            if target is None:
                return DispatchResult(
                    False,
                    SmsStatus.skipped_test_mode,
                    "Test mode enabled but no test phone number configured",
                    phone,
                )

        self.queue.enqueue(
            {
                "integration_id": integration.id,
                "account_id": account.id,
                "external_transaction_id": external_transaction_id,
                "target_phone": target,
                "customer_name": customer_name,
                "business_name": account.business_name,
                "review_url": account.review_url,
                "purchase_amount": purchase_amount,
                "location_name": location_name,
                "test_mode": bool(integration.test_mode),
            }
        )
        logger.info(
            "queued review request for integration %s (%s)",
            integration.id,
            "TEST" if integration.test_mode else "LIVE",
        )
        return DispatchResult(True, SmsStatus.pending, None, phone, test_mode=bool(integration.test_mode))
