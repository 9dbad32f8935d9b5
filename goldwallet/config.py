import logging
import os
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional


DEFAULT_ADMIN_EMAIL = "admin@auro.com"
DEFAULT_INITIAL_PRICE = Decimal("9500")
DEFAULT_GRAMS_SCALE = 6
DEFAULT_LOCK_TIMEOUT = 5.0

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


@dataclass
class Settings:
    data_file: Optional[str] = None
    initial_price: Decimal = DEFAULT_INITIAL_PRICE
    admin_email: str = DEFAULT_ADMIN_EMAIL
    grams_scale: int = DEFAULT_GRAMS_SCALE
    lock_timeout: float = DEFAULT_LOCK_TIMEOUT
    log_level: str = "INFO"
    cors_origins: list[str] = field(default_factory=lambda: ["*"])

    @classmethod
    def from_env(cls) -> "Settings":
        origins = os.getenv("GOLD_WALLET_CORS_ORIGINS", "*")
        return cls(
            data_file=os.getenv("GOLD_WALLET_DATA_FILE") or None,
            initial_price=Decimal(os.getenv("GOLD_WALLET_INITIAL_PRICE", str(DEFAULT_INITIAL_PRICE))),
            admin_email=os.getenv("GOLD_WALLET_ADMIN_EMAIL", DEFAULT_ADMIN_EMAIL),
            grams_scale=int(os.getenv("GOLD_WALLET_GRAMS_SCALE", str(DEFAULT_GRAMS_SCALE))),
            lock_timeout=float(os.getenv("GOLD_WALLET_LOCK_TIMEOUT", str(DEFAULT_LOCK_TIMEOUT))),
            log_level=os.getenv("GOLD_WALLET_LOG_LEVEL", "INFO").upper(),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
