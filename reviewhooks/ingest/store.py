"""Read-only integration store queries used by the resolver."""
from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from reviewhooks.models.account import Account
from reviewhooks.models.integration import Integration

def _where(criteria: dict[str, Any]):
    return [getattr(Integration, k) == v for k, v in criteria.items()]

def find_one(db: Session, **criteria: Any) -> Integration | None:
    return db.scalar(select(Integration).where(*_where(criteria)).order_by(Integration.id).limit(1))

def find_all(db: Session, *, limit: int | None = None, **criteria: Any) -> list[Integration]:
    stmt = select(Integration).where(*_where(criteria)).order_by(Integration.id)
    if limit is not None:
        stmt = stmt.limit(limit)
    return list(db.scalars(stmt))

def account_for_customer(db: Session, stripe_customer_id: str) -> Account | None:
    return db.scalar(select(Account).where(Account.stripe_customer_id == stripe_customer_id))
