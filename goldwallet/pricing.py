import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional, Union
from uuid import uuid4

from .errors import InvalidInputError, PriceNotConfiguredError
from .models import GoldPrice
from .storage import InMemoryStorage

logger = logging.getLogger(__name__)

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number, field: str) -> Decimal:
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidInputError(f"{field} must be a number, got {value!r}")
    if not result.is_finite():
        raise InvalidInputError(f"{field} must be a finite number")
    return result


def check_limit(limit: Optional[int]) -> None:
    if limit is not None and limit < 0:
        raise InvalidInputError(f"limit must not be negative, got {limit}")


class PricingService:
    """Append-only gold price history; the latest record is the current price."""

    def __init__(self, storage: InMemoryStorage):
        self.storage = storage

    def get_current_price(self) -> GoldPrice:
        record = self.storage.last("prices")
        if record is None:
            raise PriceNotConfiguredError("No gold price has been set yet")
        return GoldPrice(**record)

    def set_price(self, price_per_gram: Number, admin_id: str) -> GoldPrice:
        price = to_decimal(price_per_gram, "price_per_gram")
        if price <= 0:
            raise InvalidInputError(f"Gold price must be positive, got {price}")

        record = GoldPrice(
            id=f"price-{uuid4().hex[:12]}",
            price_per_gram=price,
            updated_at=datetime.now(timezone.utc),
            updated_by=admin_id,
        )
        self.storage.upsert("prices", record.model_dump(mode="json"))
        logger.info("Gold price set to %s BDT/g by %s", price, admin_id)
        return record

    def get_price_history(self, limit: Optional[int] = None) -> list[GoldPrice]:
        check_limit(limit)
        history = [GoldPrice(**r) for r in reversed(self.storage.list_all("prices"))]
        return history[:limit] if limit is not None else history
