"""Application configuration using pydantic-settings."""

from typing import Any

from pydantic import ValidationInfo, field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from services.credential_manager import CREDENTIAL_KEYS, get_credential


class KeychainSettingsSource(PydanticBaseSettingsSource):
    """Load credential fields from the OS keychain via ``keyring``.

    Only fields whose uppercase name appears in
    :data:`~services.credential_manager.CREDENTIAL_KEYS` are looked up.
    All other fields return ``None`` so the next source in the chain
    handles them.
    """

    def get_field_value(
        self, field: FieldInfo, field_name: str
    ) -> tuple[Any, str, bool]:
        env_name = field_name.upper()
        if env_name not in CREDENTIAL_KEYS:
            return None, field_name, False
        value = get_credential(env_name)
        return value, field_name, False

    def __call__(self) -> dict[str, Any]:
        d: dict[str, Any] = {}
        for field_name, field_info in self.settings_cls.model_fields.items():
            value, key, is_complex = self.get_field_value(field_info, field_name)
            if value is not None:
                d[key] = value
        return d


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            KeychainSettingsSource(settings_cls),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )

    # Database
    DATABASE_URL: str = "sqlite:///./syncpoint.db"

    # PayPal REST credentials (fallbacks for the gateway settings blob)
    PAYPAL_CLIENT_ID: str = ""
    PAYPAL_CLIENT_SECRET: str = ""

    # PayPal legacy NVP API credentials
    PAYPAL_API_USERNAME: str = ""
    PAYPAL_API_PASSWORD: str = ""
    PAYPAL_API_SIGNATURE: str = ""

    # Stripe credentials
    STRIPE_TEST_SECRET: str = ""
    STRIPE_LIVE_SECRET: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""

    # Gateway HTTP behaviour
    GATEWAY_HTTP_TIMEOUT: float = 30.0
    PAYPAL_NVP_TIMEOUT: float = 60.0
    GATEWAY_HTTP_RETRIES: int = 3

    # Sync defaults
    SYNC_PAGE_SIZE: int = 100
    SYNC_DEFAULT_DAYS: int = 30
    NVP_DEFAULT_DAYS: int = 365
    NVP_MAX_PAGES: int = 50
    SYNC_RUN_RETENTION_DAYS: int = 30
    WEBHOOK_TOLERANCE_SECONDS: int = 300

    @field_validator("LOG_LEVEL", "GATEWAY_LOG_LEVEL", mode="before")
    @classmethod
    def validate_log_level(cls, v: str, info: ValidationInfo) -> str:
        """Validate and normalize a level name to an uppercase Python logging level."""
        if info.field_name == "GATEWAY_LOG_LEVEL" and not v:
            return ""
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"{info.field_name} must be one of {valid}, got {v!r}")
        return v.upper()

    @field_validator("SYNC_PAGE_SIZE", mode="after")
    @classmethod
    def validate_page_size(cls, v: int) -> int:
        """Gateways cap page sizes at 100 records."""
        if not 1 <= v <= 100:
            raise ValueError(f"SYNC_PAGE_SIZE must be between 1 and 100, got {v}")
        return v

    # App settings
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    GATEWAY_LOG_LEVEL: str = ""
    CORS_ORIGINS: list[str] = ["http://localhost:5173"]


settings = Settings()
