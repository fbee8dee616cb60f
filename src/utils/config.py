# reads runtime settings from the environment (and a .env file if present)
from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    """
    Runtime settings for the storefront.

    Fields:
      - db_path: sqlite file used by db.database
      - debug: verbose logging
      - user_id: shopper the terminal session belongs to
      - trial_shipping_fee: flat fee charged once per cart holding trial items
      - retry_attempts / retry_delay: order creation retry policy
      - shipping_latency: artificial delay (seconds) of the shipping estimator
    """

    db_path: str = "data/storefront.sqlite"
    debug: bool = False
    user_id: str = "user_1001"
    trial_shipping_fee: Decimal = Decimal("799")
    retry_attempts: int = 3
    retry_delay: float = 1.0
    shipping_latency: float = 0.0


def _load() -> Settings:
    defaults = Settings()
    return Settings(
        db_path=os.getenv("STOREFRONT_DB_PATH", defaults.db_path),
        debug=_env_flag("STOREFRONT_DEBUG") or _env_flag("DEBUG"),
        user_id=os.getenv("STOREFRONT_USER_ID", defaults.user_id),
        trial_shipping_fee=Decimal(
            os.getenv("STOREFRONT_TRIAL_SHIPPING_FEE", str(defaults.trial_shipping_fee))
        ),
        retry_attempts=int(
            os.getenv("STOREFRONT_RETRY_ATTEMPTS", defaults.retry_attempts)
        ),
        retry_delay=float(os.getenv("STOREFRONT_RETRY_DELAY", defaults.retry_delay)),
        shipping_latency=float(
            os.getenv("STOREFRONT_SHIPPING_LATENCY", defaults.shipping_latency)
        ),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return _load()


def reload_settings() -> Settings:
    """Drop the cached settings, re-read the environment."""
    get_settings.cache_clear()
    return get_settings()
