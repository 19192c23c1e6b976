"""SharkBoot configuration via pydantic-settings."""

import warnings
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

_INSECURE_SECRET_KEY = "insecure-dev-key-change-me"


class SharkbootSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="SHARKBOOT_")

    environment: str = "development"
    secret_key: str = _INSECURE_SECRET_KEY
    log_level: str = "INFO"

    # Database
    db_url: str = "sqlite+aiosqlite:///./data/sharkboot.db"

    # API
    api_title: str = "SharkBoot"
    api_version: str = "0.1.0"
    host: str = "0.0.0.0"
    port: int = 8080
    api_prefix: str = ""
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:3000"]

    # Auth
    token_max_age: int = 7 * 24 * 3600  # seconds
    allowed_redirects: list[str] = ["http://localhost:5173"]

    # OpenAI
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    openai_beta_header: str = "assistants=v2"
    openai_default_model: str = "gpt-4o-mini"
    openai_timeout: float = 30.0
    openai_upload_timeout: float = 60.0
    vector_store_expiry_days: int = 30
    latest_messages_limit: int = 10

    # Meta Graph API
    graph_base_url: str = "https://graph.facebook.com/v23.0"
    graph_timeout: float = 10.0
    facebook_app_id: str = ""
    facebook_app_secret: str = ""
    facebook_redirect_uri: str = "http://localhost:5173/auth/facebook/callback"

    # Plan quotas (WhatsApp numbers per tenant)
    plan_limits: dict[str, int] = {
        "FREE": 1,
        "STARTER": 3,
        "PRO": 5,
        "ENTERPRISE": 20,
    }

    def plan_limit(self, plan: str | None) -> int:
        """Return the WhatsApp number quota for a plan, falling back to FREE."""
        return self.plan_limits.get((plan or "FREE").upper(), self.plan_limits["FREE"])

    def validate_for_production(self) -> None:
        """Raise if the insecure default secret is used outside development."""
        if self.secret_key != _INSECURE_SECRET_KEY:
            return

        if self.environment != "development":
            raise RuntimeError(
                f"Insecure default secret key detected in '{self.environment}' environment. "
                "Set SHARKBOOT_SECRET_KEY to a secure value. "
                "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(48))\""
            )

        warnings.warn(
            "Using insecure default secret key: set SHARKBOOT_SECRET_KEY for production",
            UserWarning,
            stacklevel=2,
        )


@lru_cache
def get_settings() -> SharkbootSettings:
    settings = SharkbootSettings()
    settings.validate_for_production()
    return settings
