"""Decides which merchant integration owns an event.

Chain, first identified merchant wins:

1. explicit merchant identifier on the event (stripe metadata account id,
   square merchant id, shopify shop domain)
2. a provider customer id mapped to an account (stripe only)
3. single-tenant fallback: exactly one active integration for the provider,
   only for providers listed in ``settings.single_tenant_fallback_providers``

An identifier found in step 1 or 2 ends the chain: a merchant with no
integration resolves to ``no_integration`` and an inactive one to
``integration_inactive``. Step 3 only runs for events that name no merchant,
so a tagged event is never handed to another tenant.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from reviewhooks.config import settings
from reviewhooks.ingest import store
from reviewhooks.ingest.events import Transaction, WebhookEvent
from reviewhooks.models.enums import Provider
from reviewhooks.models.integration import Integration

logger = logging.getLogger(__name__)

@dataclass
class Resolution:
    integration: Integration | None
    reason: str | None = None
    matched_by: str | None = None

    @property
    def found(self) -> bool:
        return self.integration is not None and self.reason is None

class IntegrationResolver:
    def __init__(self, db: Session, fallback_providers: list[str] | None = None):
        self.db = db
        if fallback_providers is None:
            fallback_providers = settings.single_tenant_fallback_providers
        self.fallback_providers = set(fallback_providers)


    def _explicit(self, provider: Provider, tx: Transaction) -> tuple[bool, Integration | None]:
        """(identified, integration). An identifier that matches nothing still ends the chain."""
        if provider == Provider.stripe:
            if not tx.account_ref:
                return False, None
            try:
                account_id = int(tx.account_ref)
            except ValueError:
                logger.info("non-numeric account metadata on %s", tx.external_transaction_id)
                return True, None
            return True, store.find_one(self.db, account_id=account_id, provider=provider.value)
        if not tx.merchant_ref:
            return False, None
        return True, self.find_for_merchant(provider, tx.merchant_ref)

    def _by_customer(self, provider: Provider, tx: Transaction) -> tuple[bool, Integration | None]:
        if provider != Provider.stripe or not tx.customer_id:
            return False, None
        account = store.account_for_customer(self.db, tx.customer_id)
        if account is None:
            return False, None
        return True, store.find_one(self.db, account_id=account.id, provider=provider.value)

    def _single_tenant(self, provider: Provider) -> Integration | None:
        if provider.value not in self.fallback_providers:
            return None
        candidates = store.find_all(self.db, provider=provider.value, is_active=True, limit=2)
        if len(candidates) == 1:
            return candidates[0]
        return None

    def resolve(self, tx: Transaction, event: WebhookEvent) -> Resolution:
        provider = event.provider

        for matched_by, finder in (
            ("explicit", self._explicit),
            ("customer", self._by_customer),
        ):
            identified, integration = finder(provider, tx)
            if not identified:
                continue
            if integration is None:
                logger.info(
                    "%s event_id=%s names a merchant (%s) with no %s integration",
                    provider.value,
                    event.event_id,
                    matched_by,
                    provider.value,
                )
                return Resolution(None, reason="no_integration", matched_by=matched_by)
            if not integration.is_active:
                return Resolution(integration, reason="integration_inactive", matched_by=matched_by)
            return Resolution(integration, matched_by=matched_by)

        # only events that name no merchant at all get here
        integration = self._single_tenant(provider)
        if integration is not None:
            logger.info(
                "resolved %s event_id=%s by single-tenant fallback to integration %s",
                provider.value,
                event.event_id,
                integration.id,
            )
            return Resolution(integration, matched_by="single_tenant")

        return Resolution(None, reason="no_integration")

    def find_for_merchant(self, provider: Provider, merchant_ref: str | None) -> Integration | None:
        """Integration behind a merchant id / shop domain, active or not."""
        if not merchant_ref:
            return None
        if provider == Provider.square:
            return store.find_one(self.db, merchant_id=merchant_ref, provider=provider.value)
        if provider == Provider.shopify:
            return store.find_one(self.db, shop_domain=merchant_ref, provider=provider.value)
        return None
