from reviewhooks.ingest.events import Transaction, WebhookEvent
from reviewhooks.ingest.resolver import IntegrationResolver
from reviewhooks.models.enums import Origin, Provider

def _event(provider: Provider, event_id: str = "evt_r") -> WebhookEvent:
    return WebhookEvent(provider=provider, event_id=event_id, event_type="payment", payload={})

def _tx(**hints) -> Transaction:
    return Transaction(external_transaction_id="tx_r", origin=Origin.checkout, **hints)

def test_unidentified_event_falls_back_to_the_only_tenant(db_session, make_integration):
    only = make_integration(Provider.stripe)

    resolution = IntegrationResolver(db_session).resolve(_tx(), _event(Provider.stripe))
    assert resolution.found
    assert resolution.integration.id == only.id
    assert resolution.matched_by == "single_tenant"

def test_tagged_account_without_integration_ends_the_chain(db_session, make_account, make_integration):
    make_integration(Provider.stripe)
    tagged = make_account(business_name="Tagged, no stripe")

    resolution = IntegrationResolver(db_session).resolve(_tx(account_ref=str(tagged.id)), _event(Provider.stripe))
    assert resolution.integration is None
    assert resolution.reason == "no_integration"
    assert resolution.matched_by == "explicit"

def test_non_numeric_tag_ends_the_chain(db_session, make_integration):
    make_integration(Provider.stripe)

    resolution = IntegrationResolver(db_session).resolve(_tx(account_ref="acct-abc"), _event(Provider.stripe))
    assert resolution.reason == "no_integration"
    assert resolution.matched_by == "explicit"

def test_mapped_customer_without_integration_ends_the_chain(db_session, make_account, make_integration):
    make_integration(Provider.stripe)
    make_account(business_name="Mapped, no stripe", stripe_customer_id="cus_orphan")

    resolution = IntegrationResolver(db_session).resolve(_tx(customer_id="cus_orphan"), _event(Provider.stripe))
    assert resolution.integration is None
    assert resolution.reason == "no_integration"
    assert resolution.matched_by == "customer"

def test_unmapped_customer_still_falls_back(db_session, make_integration):
    only = make_integration(Provider.stripe)

    resolution = IntegrationResolver(db_session).resolve(_tx(customer_id="cus_stranger"), _event(Provider.stripe))
    assert resolution.integration.id == only.id
    assert resolution.matched_by == "single_tenant"

def test_unknown_merchant_is_not_handed_to_another_tenant(db_session, make_integration):
    make_integration(Provider.square, merchant_id="M_KNOWN")
    resolver = IntegrationResolver(db_session, fallback_providers=["stripe", "square"])

    resolution = resolver.resolve(_tx(merchant_ref="M_UNKNOWN"), _event(Provider.square))
    assert resolution.reason == "no_integration"
    assert resolution.matched_by == "explicit"

def test_tagged_inactive_integration_is_reported(db_session, make_integration):
    inactive = make_integration(Provider.stripe, is_active=False)
    make_integration(Provider.stripe)

    resolution = IntegrationResolver(db_session).resolve(_tx(account_ref=str(inactive.account_id)), _event(Provider.stripe))
    assert resolution.integration.id == inactive.id
    assert resolution.reason == "integration_inactive"
    assert not resolution.found
