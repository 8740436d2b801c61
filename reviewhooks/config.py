from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    log_level: str = "INFO"

    base_url: str = "http://localhost:8000"
    database_url: str = "postgresql+psycopg://app:app@db:5432/app"
    redis_url: str = "redis://redis:6379/0"

    # webhook signing secrets, unset means every delivery is rejected
    STRIPE_WEBHOOK_SECRET: str | None = None
    SQUARE_WEBHOOK_SIGNATURE_KEY: str | None = None
    SHOPIFY_API_SECRET: str | None = None

    stripe_signature_tolerance_seconds: int = 300
    # square signs the exact url it posted to; defaults to base_url + route
    square_notification_url: str | None = None

    # customer lookups
    STRIPE_API_KEY: str | None = None
    stripe_api_base_url: str = "https://api.stripe.com"
    square_api_base_url: str = "https://connect.squareup.com"
    square_api_version: str = "2024-10-17"
    customer_lookup_timeout_seconds: float = 5.0

    # resolution
    single_tenant_fallback_providers: list[str] = ["stripe"]
    metadata_account_key: str = "morestars_user_id"

    # idempotency
    idempotency_claim_ttl_seconds: int = 300

    # messaging
    sms_queue_key: str = "sms:review_requests"
    sms_allowed_regions: list[str] = ["US"]
    sms_default_region: str = "US"
    recent_contact_days: int = 30

    # rate limiting (redis)
    rate_limit_enabled: bool = True
    rate_limit_webhooks_per_min: int = 600

    def square_webhook_url(self) -> str:
        if self.square_notification_url:
            return self.square_notification_url
        return f"{self.base_url.rstrip('/')}/api/webhooks/square"

settings = Settings()
