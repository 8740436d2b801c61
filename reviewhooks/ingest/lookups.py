"""Customer record lookups against the payment providers' REST APIs.

These are the last phone source and the only network calls in the pipeline.
Every call carries ``settings.customer_lookup_timeout_seconds``; any failure
surfaces as ``CustomerLookupError`` for the phone resolver to swallow.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

from reviewhooks.config import settings
from reviewhooks.ingest.errors import CustomerLookupError
from reviewhooks.models.enums import Provider
from reviewhooks.models.integration import Integration

logger = logging.getLogger(__name__)

@dataclass
class CustomerRecord:
    customer_id: str
    phone: str | None = None
    name: str | None = None

class CustomerLookup(Protocol):
    def fetch(self, customer_id: str, integration: Integration) -> CustomerRecord: ...

class _HttpLookup:
    def __init__(self, base_url: str, timeout: float | None = None, client: httpx.Client | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout if timeout is not None else settings.customer_lookup_timeout_seconds
        self._client = client

    def _get(self, path: str, headers: dict[str, str]) -> dict:
        url = f"{self.base_url}{path}"
        try:
            if self._client is not None:
                r = self._client.get(url, headers=headers, timeout=self.timeout)
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    r = client.get(url, headers=headers)
        except httpx.TimeoutException as e:
            raise CustomerLookupError(f"timeout after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise CustomerLookupError(f"{e.__class__.__name__}: {e}") from e

        if r.status_code == 404:
            raise CustomerLookupError("customer not found")
        if r.status_code >= 400:
            raise CustomerLookupError(f"http {r.status_code}")
        try:
            body = r.json()
        except ValueError as e:
            raise CustomerLookupError("invalid json from provider") from e
        if not isinstance(body, dict):
            raise CustomerLookupError("unexpected response shape")
        return body

class StripeCustomerLookup(_HttpLookup):
    def __init__(self, api_key: str | None = None, **kwargs):
        kwargs.setdefault("base_url", settings.stripe_api_base_url)
        super().__init__(**kwargs)
        self.api_key = api_key if api_key is not None else settings.STRIPE_API_KEY

    def fetch(self, customer_id: str, integration: Integration) -> CustomerRecord:
        if not self.api_key:
            raise CustomerLookupError("stripe api key not configured")
        body = self._get(f"/v1/customers/{customer_id}", {"authorization": f"Bearer {self.api_key}"})
        if body.get("deleted"):
            raise CustomerLookupError("customer deleted")
        return CustomerRecord(customer_id=customer_id, phone=body.get("phone"), name=body.get("name"))

class SquareCustomerLookup(_HttpLookup):
    def __init__(self, api_version: str | None = None, **kwargs):
        kwargs.setdefault("base_url", settings.square_api_base_url)
        super().__init__(**kwargs)
        self.api_version = api_version or settings.square_api_version

    def fetch(self, customer_id: str, integration: Integration) -> CustomerRecord:
        if not integration.access_token:
            raise CustomerLookupError("integration has no square access token")
        body = self._get(
            f"/v2/customers/{customer_id}",
            {
                "authorization": f"Bearer {integration.access_token}",
                "square-version": self.api_version,
            },
        )
        customer = body.get("customer") or {}
        name = f"{customer.get('given_name') or ''} {customer.get('family_name') or ''}".strip()
        return CustomerRecord(customer_id=customer_id, phone=customer.get("phone_number"), name=name or None)

def default_lookups() -> dict[Provider, CustomerLookup]:
    # shopify orders carry their customer inline, there is nothing to look up
    return {
        Provider.stripe: StripeCustomerLookup(),
        Provider.square: SquareCustomerLookup(),
    }
