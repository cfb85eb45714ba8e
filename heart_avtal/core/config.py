from decimal import Decimal
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # ─────────── APP ───────────
    app_name: str = "Heart Avtal Contract Service"
    environment: str = "dev"
    log_level: str = "INFO"

    # ─────────── API ───────────
    api_prefix: str = "/api/v1"
    request_id_header: str = "X-Request-Id"
    actor_header: str = "X-Actor-Id"

    # ─────────── DATABASE ───────────
    database_url: str = "sqlite:///./heart_avtal.db"
    sql_echo: bool = False

    # ─────────── CONTRACT POLICY ───────────
    default_currency: str = "SEK"
    requires_platform_approval_default: bool = True
    auto_approval_threshold: Decimal = Decimal("500000")

    # Heart Avtal fees (fractions of the contract amount)
    fee_platform_rate: Decimal = Decimal("0.03")
    fee_escrow_rate: Decimal = Decimal("0.005")
    fee_payment_processing_rate: Decimal = Decimal("0.015")

    # ─────────── COLLABORATORS ───────────
    collaborator_timeout_seconds: float = 10.0
    reminder_days_before_due: int = 3


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
