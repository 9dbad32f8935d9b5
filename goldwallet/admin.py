from typing import Optional

from .errors import PermissionDeniedError
from .models import AdminOverview, Transaction, TransactionResponse, TransactionStatus, User
from .pricing import PricingService
from .service import SettlementService


def require_admin(user: Optional[User]) -> User:
    if user is None or not user.is_admin:
        raise PermissionDeniedError("Admin privileges required")
    return user


class AdminReviewService:
    """Admin approval queue. All state changes go through SettlementService."""

    def __init__(self, settlement: SettlementService, pricing: PricingService):
        self.settlement = settlement
        self.pricing = pricing

    def list_pending(self) -> list[Transaction]:
        return self.settlement.list_transactions(status=TransactionStatus.PENDING)

    def approve(self, txn_id: str) -> TransactionResponse:
        return self.settlement.approve(txn_id)

    def reject(self, txn_id: str) -> TransactionResponse:
        return self.settlement.reject(txn_id)

    def overview(self, recent_limit: int = 10) -> AdminOverview:
        return AdminOverview(
            current_price=self.pricing.get_current_price(),
            pending_count=len(self.list_pending()),
            recent_transactions=self.settlement.list_transactions(limit=recent_limit),
        )
