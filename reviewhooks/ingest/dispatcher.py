"""Runs one verified webhook event through the review-request pipeline.

States, in order::

    Received -> Verified -> Normalized -> IdempotencyChecked ->
    IntegrationResolved -> PolicyEvaluated -> PhoneResolved -> Dispatched

Each failed check ends the run with a skip ``Outcome``; nothing is retried
inside a run. Provider redelivery is the only retry path, and the ledger makes
it safe. Ledger rows for the event and its sibling aliases are inserted before
any side effect, so every terminal outcome except ``duplicate`` is recorded.
An unexpected exception drops those rows again and leaves the event
reprocessable.
"""
from __future__ import annotations

import logging
from collections.abc import Callable

from sqlalchemy.orm import Session

from reviewhooks.ingest import lifecycle, policy
from reviewhooks.ingest.events import LifecycleAction, NormalizedTransaction, Outcome, Skip, WebhookEvent
from reviewhooks.ingest.ledger import EventLedger, RedisClaims
from reviewhooks.ingest.lookups import CustomerLookup
from reviewhooks.ingest.messaging import AuditLog, DispatchResult, MessagingTrigger, SmsQueue
from reviewhooks.ingest.normalize import normalize
from reviewhooks.ingest.phones import PhoneResolver
from reviewhooks.ingest.resolver import IntegrationResolver
from reviewhooks.models.enums import Provider, SmsStatus

logger = logging.getLogger(__name__)

DEFAULT_CUSTOMER_NAME = "Customer"

class TransactionDispatcher:
    def __init__(
        self,
        db: Session,
        ledger: EventLedger,
        messaging: MessagingTrigger,
        phones: PhoneResolver,
        resolver: IntegrationResolver | None = None,
        audit: AuditLog | None = None,
    ):
        self.db = db
        self.ledger = ledger
        self.messaging = messaging
        self.phones = phones
        self.resolver = resolver or IntegrationResolver(db)
        self.audit = audit or messaging.audit

    def _log_skip(self, event: WebhookEvent, outcome: Outcome) -> Outcome:
        if outcome.skipped:
            logger.info(
                "webhook skipped provider=%s event_id=%s type=%s reason=%s state=%s",
                event.provider.value,
                event.event_id,
                event.event_type,
                outcome.reason,
                outcome.state,
            )
        return outcome

    def process(self, event: WebhookEvent) -> Outcome:
        provider = event.provider.value

        result = normalize(event, self.ledger)

        duplicate = Outcome.skip("duplicate", "Normalized")
        if self.ledger.is_processed(provider, event.event_id):
            return self._log_skip(event, duplicate)
        if not self.ledger.claim(provider, event.event_id):
            return self._log_skip(event, duplicate)

        claimed = [event.event_id]
        reserved: list[str] = []
        try:
            # a twin that finished between the check and the claim loses here
            if not self.ledger.mark_processed(provider, event.event_id, event.event_type):
                return self._log_skip(event, duplicate)
            reserved.append(event.event_id)
            return self._log_skip(event, self._process_claimed(event, result, claimed, reserved))
        except Exception:
            self.db.rollback()
            self.ledger.unmark(provider, reserved)
            raise
        finally:
            for object_id in claimed:
                self.ledger.release(provider, object_id)

    def _skip_with_row(self, integration, tx, status: SmsStatus, skip_reason: str, reason: str, state: str) -> Outcome:
        row = self.audit.log_transaction(
            integration=integration,
            external_transaction_id=tx.external_transaction_id,
            sms_status=status,
            customer_name=tx.customer_name,
            purchase_amount=tx.purchase_amount,
            location_name=tx.location_name,
            skip_reason=skip_reason,
        )
        return Outcome.skip(reason, state, row.id)

    def _process_claimed(self, event: WebhookEvent, result, claimed: list[str], reserved: list[str]) -> Outcome:
        provider = event.provider.value
        state = "IdempotencyChecked"

        if isinstance(result, Skip):
            return Outcome.skip(result.reason, state)

        if isinstance(result, LifecycleAction):
            return lifecycle.apply(self.db, event, result, self.audit)

        if not isinstance(result, NormalizedTransaction):
            logger.warning(
                "normalizer returned %s for provider=%s event_id=%s",
                type(result).__name__,
                provider,
                event.event_id,
            )
            return Outcome.skip("unhandled_event_type", state)
        tx = result.transaction

        # a sibling event for the same purchase may be mid-flight or already done
        for alias in result.ledger_aliases:
            if not self.ledger.claim(provider, alias):
                return Outcome.skip(self._sibling_reason(event), state)
            claimed.append(alias)
            if not self.ledger.mark_processed(provider, alias, event.event_type):
                return Outcome.skip(self._sibling_reason(event), state)
            reserved.append(alias)

        resolution = self.resolver.resolve(tx, event)
        if resolution.reason == "integration_inactive":
            return self._skip_with_row(
                resolution.integration,
                tx,
                SmsStatus.skipped_integration_inactive,
                "Integration inactive",
                "integration_inactive",
                state,
            )
        if not resolution.found:
            return Outcome.skip(resolution.reason or "no_integration", state)
        integration = resolution.integration
        tx.integration_id = integration.id
        state = "IntegrationResolved"

        location = policy.find_location(integration, tx.location_id)
        if location is not None and location.location_name:
            tx.location_name = location.location_name

        if not policy.allows(integration, tx.origin):
            return self._skip_with_row(
                integration,
                tx,
                SmsStatus.skipped_trigger_disabled,
                f"{tx.origin.value.capitalize()} trigger disabled",
                policy.disabled_reason(tx.origin),
                state,
            )

        if not policy.location_allowed(integration, tx.location_id):
            return self._skip_with_row(
                integration, tx, SmsStatus.skipped_location_disabled, "Location not enabled", "location_disabled", state
            )
        state = "PolicyEvaluated"

        match = self.phones.resolve(tx, event, integration)
        if match is None:
            return self._skip_with_row(
                integration, tx, SmsStatus.skipped_no_phone, "No phone number available", "no_phone_number", state
            )
        tx.customer_phone = match.phone
        tx.customer_name = tx.customer_name or match.customer_name
        state = "PhoneResolved"

        dispatched = self._dispatch(event, integration, tx)
        row = self.audit.log_transaction(
            integration=integration,
            external_transaction_id=tx.external_transaction_id,
            sms_status=dispatched.sms_status,
            customer_name=tx.customer_name,
            customer_phone=dispatched.customer_phone or tx.customer_phone,
            purchase_amount=tx.purchase_amount,
            location_name=tx.location_name,
            skip_reason=dispatched.skip_reason,
        )
        return Outcome(
            skipped=not dispatched.sms_queued,
            reason=None if dispatched.sms_queued else dispatched.sms_status.value,
            state="Dispatched",
            sms_queued=dispatched.sms_queued,
            transaction_log_id=row.id,
        )

    @staticmethod
    def _sibling_reason(event: WebhookEvent) -> str:
        return "already_processed_via_pi" if event.provider == Provider.stripe else "already_processed"

    def _dispatch(self, event: WebhookEvent, integration, tx) -> DispatchResult:
        try:
            return self.messaging.process_transaction(
                integration=integration,
                external_transaction_id=tx.external_transaction_id,
                customer_name=tx.customer_name or DEFAULT_CUSTOMER_NAME,
                customer_phone=tx.customer_phone,
                purchase_amount=tx.purchase_amount,
                location_name=tx.location_name,
            )
        except Exception as e:
            # delivery problem for the sms side, the event itself is done
            logger.exception(
                "messaging trigger failed provider=%s event_id=%s", event.provider.value, event.event_id
            )
            return DispatchResult(False, SmsStatus.failed, f"{e.__class__.__name__}: {e}", tx.customer_phone)

def process_event(
    event: WebhookEvent,
    session_factory: Callable[[], Session],
    *,
    claims: RedisClaims | None,
    queue: SmsQueue,
    lookups: dict[Provider, CustomerLookup],
) -> Outcome | None:
    """Background entry point. Never raises."""
    try:
        with session_factory() as db:
            ledger = EventLedger(db, claims)
            dispatcher = TransactionDispatcher(
                db,
                ledger,
                MessagingTrigger(db, queue),
                PhoneResolver(lookups),
            )
            try:
                return dispatcher.process(event)
            except Exception:
                db.rollback()
                raise
    except Exception:
        logger.exception(
            "webhook processing failed provider=%s event_id=%s type=%s",
            event.provider.value,
            event.event_id,
            event.event_type,
        )
        return None
