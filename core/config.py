from decimal import Decimal
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="BUBBLEBOX_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Fallbacks used when app_settings has no row for the key
    delivery_fee: Decimal = Decimal("5")
    referral_referrer_bonus: Decimal = Decimal("10")
    referral_referee_bonus: Decimal = Decimal("10")

    order_number_prefix: str = "BB"
    order_number_attempts: int = 5

    share_base_url: str = "https://thebubblebox.com"


@lru_cache
def get_settings() -> Settings:
    return Settings()
