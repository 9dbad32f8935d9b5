import logging
from typing import Union

from .errors import InvalidInputError, PaymentMethodNotFoundError
from .models import PaymentMethod, PaymentMethodInfo
from .storage import InMemoryStorage

logger = logging.getLogger(__name__)


class PaymentMethodService:
    def __init__(self, storage: InMemoryStorage):
        self.storage = storage

    def list_payment_methods(self) -> list[PaymentMethodInfo]:
        methods = []
        for method in PaymentMethod:
            record = self.storage.get("payment_methods", method.value)
            if record:
                methods.append(PaymentMethodInfo(**record))
        return methods

    def get_payment_method(self, method: Union[PaymentMethod, str]) -> PaymentMethodInfo:
        method = self._resolve(method)
        record = self.storage.get("payment_methods", method.value)
        if not record:
            raise PaymentMethodNotFoundError(f"Payment method {method.value} not found")
        return PaymentMethodInfo(**record)

    def update_payment_method(self, method: Union[PaymentMethod, str], details: str) -> PaymentMethodInfo:
        method = self._resolve(method)
        if not details or not details.strip():
            raise InvalidInputError("Payment instructions cannot be blank")
        if self.storage.get("payment_methods", method.value) is None:
            raise PaymentMethodNotFoundError(f"Payment method {method.value} not found")

        info = PaymentMethodInfo(name=method, details=details.strip())
        self.storage.upsert("payment_methods", info.model_dump(mode="json"))
        logger.info("Updated payment instructions for %s", method.value)
        return info

    @staticmethod
    def _resolve(method: Union[PaymentMethod, str]) -> PaymentMethod:
        try:
            return PaymentMethod(method)
        except ValueError:
            raise PaymentMethodNotFoundError(f"Payment method {method} not found")
