"""Idempotency ledger for webhook events.

The ``processed_events`` unique constraint on (provider, event_id) is the
source of truth. ``is_processed`` is only a fast path; ``claim`` takes a
short-lived redis lock that keeps concurrent deliveries of one event from
racing to the database; ``mark_processed`` is the durable insert.

The dispatcher inserts the row before any side effect, so the unique insert
and not the redis claim decides which of two racing deliveries proceeds.
``unmark`` hands a row back when the run holding it crashed.
"""
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from reviewhooks.config import settings
from reviewhooks.models.processed_event import ProcessedEvent

logger = logging.getLogger(__name__)

_CLAIM_PREFIX = "webhook:claim"

class RedisClaims:
    def __init__(self, client: Any, ttl_seconds: int | None = None):
        self.client = client
        self.ttl_seconds = ttl_seconds or settings.idempotency_claim_ttl_seconds

    @staticmethod
    def _key(provider: str, event_id: str) -> str:
        return f"{_CLAIM_PREFIX}:{provider}:{event_id}"

    def acquire(self, provider: str, event_id: str) -> bool:
        try:
            return bool(self.client.set(self._key(provider, event_id), "1", nx=True, ex=self.ttl_seconds))
        except Exception:
            # fail-open if redis is down; the unique insert still guards the ledger
            logger.warning("redis unavailable for claim %s/%s", provider, event_id, exc_info=True)
            return True

    def release(self, provider: str, event_id: str) -> None:
        try:
            self.client.delete(self._key(provider, event_id))
        except Exception:
            logger.warning("failed to release claim %s/%s", provider, event_id)

class EventLedger:
    def __init__(self, db: Session, claims: RedisClaims | None = None):
        self.db = db
        self.claims = claims

    def is_processed(self, provider: str, event_id: str) -> bool:
        row = self.db.scalar(
            select(ProcessedEvent.id).where(
                ProcessedEvent.provider == provider,
                ProcessedEvent.event_id == event_id,
            )
        )
        return row is not None

    def claim(self, provider: str, event_id: str) -> bool:
        if self.claims is None:
            return True
        return self.claims.acquire(provider, event_id)

    def release(self, provider: str, event_id: str) -> None:
        if self.claims is not None:
            self.claims.release(provider, event_id)

    def mark_processed(self, provider: str, event_id: str, event_type: str | None = None) -> bool:
        """Insert the ledger row. Returns False when it already existed."""
        self.db.add(ProcessedEvent(provider=provider, event_id=event_id, event_type=event_type))
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.info("ledger row already present for %s/%s", provider, event_id)
            return False
        return True

    def unmark(self, provider: str, event_ids: list[str]) -> None:
        """Drop rows reserved by a run that crashed, so redelivery can retry it."""
        if not event_ids:
            return
        try:
            self.db.execute(
                delete(ProcessedEvent).where(
                    ProcessedEvent.provider == provider,
                    ProcessedEvent.event_id.in_(event_ids),
                )
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.warning("failed to drop ledger rows %s/%s", provider, event_ids, exc_info=True)
