from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings

# .env at the project root: app/core/config.py -> app/core -> app -> root
_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _ROOT / ".env"


class Settings(BaseSettings):
    secret_key: str = "change-me-in-production"
    database_url: str = "sqlite:///./shopcore.db"
    # Comma separated origin list; "*" in development
    cors_origins: str = "*"
    environment: str = "development"
    rate_limit_per_minute: int = 60
    rate_limit_orders_per_minute: int = 10
    # Payment methods customers may choose right now
    supported_payment_methods: str = "PIX,MERCADO_PAGO,STRIPE"
    # Base URL used for checkout back-URLs and provider notification URLs
    public_app_url: str = "http://127.0.0.1:8000"
    payment_provider_timeout_seconds: float = 10.0
    # Mercado Pago (PIX + Checkout Pro)
    mercado_pago_access_token: str = ""
    mercado_pago_webhook_secret: str = ""  # empty = x-signature is not checked
    mercado_pago_api_url: str = "https://api.mercadopago.com"
    # Stripe (card checkout sessions)
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_currency: str = "brl"
    # SMTP for order e-mails
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_from: str = "noreply@shopcore.local"
    smtp_from_name: str = "Shopcore"
    smtp_use_tls: bool = True

    model_config = {
        "env_file": _ENV_FILE if _ENV_FILE.is_file() else ".env",
        "extra": "ignore",
    }

    @field_validator("supported_payment_methods", mode="before")
    @classmethod
    def normalize_methods(cls, v: str | None) -> str:
        return ",".join(p.strip().upper() for p in (v or "").split(",") if p.strip())

    @field_validator("public_app_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: str | None) -> str:
        return (v or "").strip().rstrip("/")


settings = Settings()


def get_supported_payment_methods() -> list[str]:
    """Payment method names enabled for new orders, in configured order."""
    return [m for m in settings.supported_payment_methods.split(",") if m]


def is_mail_configured() -> bool:
    return bool((settings.smtp_host or "").strip())
