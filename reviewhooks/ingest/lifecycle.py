"""Non-purchase events that change how future purchases are handled.

Revocation deactivates the integration; a refund leaves a
``skipped_refunded`` audit row the messaging trigger checks before queueing.
"""
from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from reviewhooks.ingest.events import LifecycleAction, Outcome, WebhookEvent
from reviewhooks.ingest.messaging import AuditLog
from reviewhooks.ingest.resolver import IntegrationResolver
from reviewhooks.models.enums import SmsStatus

logger = logging.getLogger(__name__)

def apply(db: Session, event: WebhookEvent, action: LifecycleAction, audit: AuditLog) -> Outcome:
    resolver = IntegrationResolver(db)
    integration = resolver.find_for_merchant(event.provider, action.merchant_ref)

    if action.action == "revoke":
        if integration is not None:
            integration.is_active = False
            integration.access_token = None
            db.commit()
            logger.info("%s integration %s deactivated by %s", event.provider.value, integration.id, event.event_type)
        return Outcome(skipped=False, state="Normalized", action="integration_revoked")

    if action.action == "refund":
        if integration is None or not action.external_transaction_id:
            logger.info("refund for unknown %s merchant or transaction, logged only", event.provider.value)
            return Outcome(skipped=False, state="Normalized", action="refund_logged")
        row = audit.log_transaction(
            integration=integration,
            external_transaction_id=action.external_transaction_id,
            sms_status=SmsStatus.skipped_refunded,
            skip_reason="Order was refunded",
        )
        return Outcome(skipped=False, state="Normalized", action="refund_recorded", transaction_log_id=row.id)

    logger.warning("unknown lifecycle action %s", action.action)
    return Outcome.skip("unhandled_event_type", "Normalized")
