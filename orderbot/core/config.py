from pydantic import Field, AliasChoices
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_phones(raw: str) -> frozenset[str]:
    """Parse a comma separated phone list, dropping blanks and a leading '+'."""
    return frozenset(p.strip().lstrip("+") for p in (raw or "").split(",") if p.strip())


class Settings(BaseSettings):
    # Read env from container + optionally from files
    model_config = SettingsConfigDict(
        env_file=(".env", ".env.docker"),
        extra="ignore",
        case_sensitive=False,
    )

    # App
    ENVIRONMENT: str = Field(default="dev", validation_alias=AliasChoices("ENVIRONMENT", "environment"))
    APP_NAME: str = Field(default="orderbot", validation_alias=AliasChoices("APP_NAME", "app_name"))
    LOG_LEVEL: str = Field(default="INFO", validation_alias=AliasChoices("LOG_LEVEL", "log_level"))

    # Infrastructure
    DATABASE_URL: str = Field(
        default="postgresql+asyncpg://postgres:postgres@db:5432/orderbot",
        validation_alias=AliasChoices("DATABASE_URL", "database_url"),
    )
    REDIS_URL: str = Field(
        default="redis://redis:6379/0",
        validation_alias=AliasChoices("REDIS_URL", "redis_url"),
    )
    # "memory" keeps sessions in-process; "redis" survives restarts
    SESSION_BACKEND: str = Field(default="memory", validation_alias=AliasChoices("SESSION_BACKEND", "session_backend"))
    SESSION_TTL_SECONDS: int = Field(default=24 * 60 * 60, validation_alias=AliasChoices("SESSION_TTL_SECONDS", "session_ttl_seconds"))

    # WhatsApp Meta
    WHATSAPP_VERIFY_TOKEN: str = Field(default="", validation_alias=AliasChoices("WHATSAPP_VERIFY_TOKEN", "whatsapp_verify_token"))
    WHATSAPP_ACCESS_TOKEN: str = Field(default="", validation_alias=AliasChoices("WHATSAPP_ACCESS_TOKEN", "whatsapp_access_token"))
    WHATSAPP_PHONE_NUMBER_ID: str = Field(default="", validation_alias=AliasChoices("WHATSAPP_PHONE_NUMBER_ID", "whatsapp_phone_number_id"))
    WHATSAPP_APP_SECRET: str = Field(default="", validation_alias=AliasChoices("WHATSAPP_APP_SECRET", "whatsapp_app_secret"))
    WHATSAPP_CATALOG_ID: str = Field(default="", validation_alias=AliasChoices("WHATSAPP_CATALOG_ID", "CATALOG_ID", "whatsapp_catalog_id"))
    WHATSAPP_API_VERSION: str = Field(default="v20.0", validation_alias=AliasChoices("WHATSAPP_API_VERSION", "whatsapp_api_version"))

    # Actor directories (comma separated phone numbers)
    VENDOR_PHONES: str = Field(default="", validation_alias=AliasChoices("VENDOR_PHONES", "VENDOR_PHONE_1", "vendor_phones"))
    DELIVERY_PARTNER_PHONES: str = Field(
        default="",
        validation_alias=AliasChoices("DELIVERY_PARTNER_PHONES", "DELIVERY_PARTNER_PHONE", "delivery_partner_phones"),
    )
    ADMIN_PHONES: str = Field(default="", validation_alias=AliasChoices("ADMIN_PHONES", "ADMIN_PHONE", "admin_phones"))
    VERIFIED_CUSTOMER_PHONES: str = Field(
        default="",
        validation_alias=AliasChoices("VERIFIED_CUSTOMER_PHONES", "verified_customer_phones"),
    )
    REQUIRE_VERIFIED_CUSTOMERS: bool = Field(
        default=False,
        validation_alias=AliasChoices("REQUIRE_VERIFIED_CUSTOMERS", "require_verified_customers"),
    )

    # Order policy
    VENDOR_ASSIGNMENT_POLICY: str = Field(
        default="first_available",
        validation_alias=AliasChoices("VENDOR_ASSIGNMENT_POLICY", "vendor_assignment_policy"),
    )
    VENDOR_MAX_DISTANCE_KM: float = Field(default=5.0, validation_alias=AliasChoices("VENDOR_MAX_DISTANCE_KM", "vendor_max_distance_km"))
    DELIVERY_ETA_MINUTES: int = Field(default=15, validation_alias=AliasChoices("DELIVERY_ETA_MINUTES", "delivery_eta_minutes"))
    CURRENCY_SYMBOL: str = Field(default="₹", validation_alias=AliasChoices("CURRENCY_SYMBOL", "currency_symbol"))
    SUPPORT_CONTACT: str = Field(
        default="support@yourfoodapp.com or call +91-1234567890",
        validation_alias=AliasChoices("SUPPORT_CONTACT", "support_contact"),
    )

    # Outbound notifications
    NOTIFY_MAX_ATTEMPTS: int = Field(default=3, validation_alias=AliasChoices("NOTIFY_MAX_ATTEMPTS", "notify_max_attempts"))
    NOTIFY_BACKOFF_SECONDS: float = Field(default=0.5, validation_alias=AliasChoices("NOTIFY_BACKOFF_SECONDS", "notify_backoff_seconds"))
    NOTIFY_TIMEOUT_SECONDS: float = Field(default=10.0, validation_alias=AliasChoices("NOTIFY_TIMEOUT_SECONDS", "notify_timeout_seconds"))

    # Webhook redelivery guard
    SEEN_MESSAGE_CACHE_SIZE: int = Field(default=2048, validation_alias=AliasChoices("SEEN_MESSAGE_CACHE_SIZE", "seen_message_cache_size"))

    @property
    def vendor_phones(self) -> frozenset[str]:
        return _split_phones(self.VENDOR_PHONES)

    @property
    def delivery_partner_phones(self) -> frozenset[str]:
        return _split_phones(self.DELIVERY_PARTNER_PHONES)

    @property
    def admin_phones(self) -> frozenset[str]:
        return _split_phones(self.ADMIN_PHONES)

    @property
    def verified_customer_phones(self) -> frozenset[str]:
        return _split_phones(self.VERIFIED_CUSTOMER_PHONES)


settings = Settings()
