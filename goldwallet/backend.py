import logging
from decimal import Decimal
from typing import Optional, Union

from .admin import AdminReviewService, require_admin
from .config import Settings
from .identity import IdentityService, SessionManager
from .locks import KeyedLocks
from .models import (
    AdminOverview,
    CreateTransactionRequest,
    GoldPrice,
    PaymentMethod,
    PaymentMethodInfo,
    SessionResponse,
    SettlementAction,
    Transaction,
    TransactionResponse,
    TransactionStatus,
    User,
)
from .payment_methods import PaymentMethodService
from .pricing import PricingService
from .service import SettlementService
from .storage import InMemoryStorage, JsonFileStorage

logger = logging.getLogger(__name__)


def build_storage(settings: Settings) -> InMemoryStorage:
    if settings.data_file:
        logger.info("Using JSON ledger store at %s", settings.data_file)
        return JsonFileStorage(
            settings.data_file, admin_email=settings.admin_email, initial_price=settings.initial_price,
        )
    return InMemoryStorage(admin_email=settings.admin_email, initial_price=settings.initial_price)


class GoldWalletBackend:
    """Wires the services together and exposes the operations the UI calls."""

    def __init__(self, settings: Optional[Settings] = None, storage: Optional[InMemoryStorage] = None):
        self.settings = settings or Settings()
        self.storage = storage or build_storage(self.settings)
        self.locks = KeyedLocks(timeout=self.settings.lock_timeout)
        self.pricing = PricingService(self.storage)
        self.payment_methods = PaymentMethodService(self.storage)
        self.identity = IdentityService(self.storage, self.locks)
        self.sessions = SessionManager(self.identity)
        self.settlement = SettlementService(
            self.storage, self.pricing, self.locks, grams_scale=self.settings.grams_scale,
        )
        self.admin = AdminReviewService(self.settlement, self.pricing)

    # auth

    def login(self, email: str) -> SessionResponse:
        user = self.identity.login(email)
        return SessionResponse(token=self.sessions.create_session(user), user=user)

    def register(self, name: str, email: str, phone: str) -> SessionResponse:
        user = self.identity.register(name, email, phone)
        return SessionResponse(token=self.sessions.create_session(user), user=user)

    def logout(self, token: str) -> None:
        self.sessions.end_session(token)

    def current_user(self, token: Optional[str]) -> Optional[User]:
        return self.sessions.resolve_current_user(token)

    def update_profile(self, user_id: str, name: Optional[str] = None, phone: Optional[str] = None) -> User:
        return self.identity.update_profile(user_id, name=name, phone=phone)

    # pricing

    def get_current_price(self) -> GoldPrice:
        return self.pricing.get_current_price()

    def set_price(self, price_per_gram: Union[Decimal, int, float, str], admin_id: str) -> GoldPrice:
        return self.pricing.set_price(price_per_gram, admin_id)

    def price_history(self, limit: Optional[int] = None) -> list[GoldPrice]:
        return self.pricing.get_price_history(limit)

    # payment methods

    def list_payment_methods(self) -> list[PaymentMethodInfo]:
        return self.payment_methods.list_payment_methods()

    def update_payment_method(self, method: Union[PaymentMethod, str], details: str) -> PaymentMethodInfo:
        return self.payment_methods.update_payment_method(method, details)

    # transactions

    def create_transaction(self, request: CreateTransactionRequest) -> TransactionResponse:
        return self.settlement.create_transaction(request)

    def process_transaction(self, txn_id: str, action: Union[SettlementAction, str]) -> TransactionResponse:
        return self.settlement.process_transaction(txn_id, action)

    def list_transactions(self, user_id: Optional[str] = None,
                          status: Optional[TransactionStatus] = None,
                          limit: Optional[int] = None) -> list[Transaction]:
        return self.settlement.list_transactions(user_id=user_id, status=status, limit=limit)

    # admin

    def admin_overview(self, admin: User, recent_limit: int = 10) -> AdminOverview:
        require_admin(admin)
        return self.admin.overview(recent_limit)
