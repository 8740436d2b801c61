from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from reviewhooks.db import SessionLocal
from reviewhooks.models.account import Account
from reviewhooks.models.enums import Provider
from reviewhooks.models.integration import Integration, Location

@dataclass
class SeedResult:
    account_id: int
    stripe_integration_id: int
    square_integration_id: int
    shopify_integration_id: int

SQUARE_MERCHANT_ID = "MLDEMO0001"
SHOPIFY_SHOP_DOMAIN = "demo-bakery.myshopify.com"

def get_or_create_account(db: Session, business_name: str, review_url: str) -> Account:
    a = db.scalar(select(Account).where(Account.business_name == business_name))
    if a is None:
        a = Account(business_name=business_name, review_url=review_url, stripe_customer_id="cus_demo_1")
        db.add(a)
        db.flush()
    return a

def get_or_create_integration(db: Session, account_id: int, provider: Provider, **fields) -> Integration:
    i = db.scalar(
        select(Integration).where(
            Integration.account_id == account_id,
            Integration.provider == provider.value,
        )
    )
    if i is None:
        i = Integration(account_id=account_id, provider=provider.value, consent_confirmed=True, **fields)
        db.add(i)
        db.flush()
    else:
        # re-running the seed re-enables anything a revoke turned off
        i.is_active = True
        for k, v in fields.items():
            setattr(i, k, v)
        db.flush()
    return i

def get_or_create_location(db: Session, integration_id: int, external_id: str, name: str, enabled: bool) -> Location:
    loc = db.scalar(
        select(Location).where(
            Location.integration_id == integration_id,
            Location.external_location_id == external_id,
        )
    )
    if loc is None:
        loc = Location(integration_id=integration_id, external_location_id=external_id)
        db.add(loc)
    loc.location_name = name
    loc.is_enabled = enabled
    db.flush()
    return loc

def seed() -> SeedResult:
    db = SessionLocal()
    try:
        account = get_or_create_account(db, "Demo Bakery", "https://g.page/r/demo-bakery/review")

        stripe_integration = get_or_create_integration(db, account.id, Provider.stripe)
        square_integration = get_or_create_integration(
            db,
            account.id,
            Provider.square,
            merchant_id=SQUARE_MERCHANT_ID,
            access_token="sq0atp-demo",
        )
        shopify_integration = get_or_create_integration(
            db,
            account.id,
            Provider.shopify,
            shop_domain=SHOPIFY_SHOP_DOMAIN,
            trigger_on_terminal=False,
        )

        get_or_create_location(db, square_integration.id, "LDEMO_MAIN", "Main Street", True)
        get_or_create_location(db, square_integration.id, "LDEMO_KIOSK", "Airport Kiosk", False)

        db.commit()

        return SeedResult(
            account_id=account.id,
            stripe_integration_id=stripe_integration.id,
            square_integration_id=square_integration.id,
            shopify_integration_id=shopify_integration.id,
        )
    finally:
        db.close()

if __name__ == "__main__":
    r = seed()
    print("seed complete")
    print(f"account_id={r.account_id}")
    print("integrations:")
    print(f"  stripe:  {r.stripe_integration_id}")
    print(f"  square:  {r.square_integration_id} (merchant {SQUARE_MERCHANT_ID})")
    print(f"  shopify: {r.shopify_integration_id} (shop {SHOPIFY_SHOP_DOMAIN})")
