"""Nexus checkout configuration via pydantic-settings."""

import warnings
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

_INSECURE_DEFAULTS = {
    "admin_api_key": "insecure-admin-key-change-me",
    "audit_hmac_key": "insecure-audit-key-change-me",
}


class NexusSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="NEXUS_")

    environment: str = "development"

    # Database
    db_url: str = "sqlite+aiosqlite:///./data/nexus.db"

    # API
    api_title: str = "Nexus Checkout"
    api_version: str = "0.1.0"
    api_prefix: str = ""
    host: str = "0.0.0.0"
    port: int = 8080
    cors_origins: list[str] = ["*"]
    admin_api_key: str = "insecure-admin-key-change-me"

    # Audit trail signing
    audit_hmac_key: str = "insecure-audit-key-change-me"

    # Public URLs used to build links in emails and provider callbacks
    public_site_url: str = "http://localhost:5173"
    auth_base_url: str = ""

    # Transactional email ("resend", "sendgrid", "console" or empty)
    email_provider: str = ""
    email_api_key: str = ""
    email_from: str = "contato@nexusautomacoes.com.br"
    email_from_name: str = "Nexus Automações"
    email_reply_to: str = ""
    email_test_to: str = ""
    support_whatsapp: str = "5548991015688"

    # AbacatePay (dynamic billing + webhook)
    abacatepay_api_key: str = ""
    abacatepay_base_url: str = "https://api.abacatepay.com"
    abacatepay_webhook_secret: str = ""

    # Kiwify (webhook only)
    kiwify_webhook_token: str = ""

    # Identity provider admin API
    identity_base_url: str = ""
    identity_service_key: str = ""

    # Outbound HTTP
    http_timeout_seconds: float = 15.0

    # Lifecycle policy
    verification_token_ttl_hours: int = 72
    access_window_days: int = 30
    trial_days: int = 7

    @property
    def site_base(self) -> str:
        return self.public_site_url.rstrip("/")

    @property
    def auth_base(self) -> str:
        return self.auth_base_url.rstrip("/")

    def validate_for_production(self) -> None:
        """Raise if insecure defaults are used in non-development environments."""
        insecure_fields = [
            field
            for field, default in _INSECURE_DEFAULTS.items()
            if getattr(self, field) == default
        ]

        if self.environment != "development" and insecure_fields:
            env_vars = ", ".join(f"NEXUS_{f.upper()}" for f in insecure_fields)
            raise RuntimeError(
                f"Insecure default values detected in '{self.environment}' environment. "
                f"Set these environment variables to secure values: {env_vars}. "
                "Generate secrets with: python -c \"import secrets; print(secrets.token_urlsafe(48))\""
            )

        if insecure_fields:
            warnings.warn(
                "Using insecure default keys: set NEXUS_ADMIN_API_KEY and "
                "NEXUS_AUDIT_HMAC_KEY for production",
                UserWarning,
                stacklevel=2,
            )


@lru_cache
def get_settings() -> NexusSettings:
    settings = NexusSettings()
    settings.validate_for_production()
    return settings
