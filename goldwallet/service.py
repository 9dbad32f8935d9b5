import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, Union
from uuid import uuid4

from .errors import (
    InsufficientBalanceError,
    InvalidInputError,
    InvalidStateTransitionError,
    TransactionNotFoundError,
    UserNotFoundError,
)
from .locks import KeyedLocks
from .models import (
    CreateTransactionRequest,
    SettlementAction,
    Transaction,
    TransactionResponse,
    TransactionStatus,
    TransactionType,
    User,
)
from .pricing import PricingService, check_limit, to_decimal
from .storage import InMemoryStorage

logger = logging.getLogger(__name__)


class SettlementService:
    """Creates buy/sell requests and settles them.

    SELL reserves gold eagerly: the grams leave the balance when the request
    is created and come back only if an admin rejects it. BUY credits nothing
    until an admin approves the payment proof.
    """

    def __init__(self, storage: InMemoryStorage, pricing: PricingService,
                 locks: Optional[KeyedLocks] = None, grams_scale: int = 6):
        self.storage = storage
        self.pricing = pricing
        self.locks = locks or KeyedLocks()
        self.quantum = Decimal(1).scaleb(-grams_scale)

    def compute_grams(self, amount_bdt: Decimal, price_per_gram: Decimal) -> Decimal:
        return self._to_grams(amount_bdt / price_per_gram)

    def _to_grams(self, value: Decimal) -> Decimal:
        try:
            return value.quantize(self.quantum, rounding=ROUND_HALF_UP)
        except InvalidOperation:
            raise InvalidInputError(f"Gold amount {value} is out of range")

    def create_transaction(self, request: CreateTransactionRequest) -> TransactionResponse:
        amount = to_decimal(request.amount_bdt, "amount_bdt")
        if amount <= 0:
            raise InvalidInputError(f"Amount must be positive, got {amount}")

        payout_details = (request.payout_details or "").strip() or None
        proof_reference = (request.proof_reference or "").strip() or None
        if request.type == TransactionType.SELL and not payout_details:
            raise InvalidInputError("Payout details are required to sell gold")
        if request.type == TransactionType.BUY and not proof_reference:
            logger.warning("BUY request from %s has no payment proof attached", request.user_id)

        price = self.pricing.get_current_price()
        grams = self.compute_grams(amount, price.price_per_gram)
        if grams <= 0:
            raise InvalidInputError(f"Amount {amount} BDT is too small to buy any gold at {price.price_per_gram}")

        txn = Transaction(
            id=f"txn-{uuid4().hex[:12]}",
            user_id=request.user_id,
            type=request.type,
            amount_bdt=amount,
            gold_price_at_moment=price.price_per_gram,
            gold_grams=grams,
            method=request.method,
            status=TransactionStatus.PENDING,
            created_at=datetime.now(timezone.utc),
            proof_reference=proof_reference if request.type == TransactionType.BUY else None,
            payout_details=payout_details if request.type == TransactionType.SELL else None,
        )

        with self.locks.user(request.user_id):
            user = self._get_user(request.user_id)
            balance = user.gold_balance
            with self.storage.unit_of_work() as uow:
                if txn.type == TransactionType.SELL:
                    if balance < grams:
                        raise InsufficientBalanceError(
                            f"Insufficient gold balance: have {balance} g, need {grams} g",
                            available=balance, requested=grams,
                        )
                    balance = self._to_grams(balance - grams)
                    updated = user.model_copy(update={"gold_balance": balance})
                    uow.put("users", updated.model_dump(mode="json"), expected_version=user.version)
                uow.put("transactions", txn.model_dump(mode="json"))

        logger.info(
            "Created %s %s for user %s: %s BDT = %s g at %s",
            txn.type.value, txn.id, txn.user_id, amount, grams, price.price_per_gram,
        )
        return TransactionResponse(
            transaction=txn,
            gold_balance=balance,
            message=f"{txn.type.value} request submitted for approval",
        )

    def process_transaction(self, txn_id: str, action: Union[SettlementAction, str]) -> TransactionResponse:
        try:
            action = SettlementAction(action)
        except ValueError:
            raise InvalidInputError(f"Unknown action {action}")
        self.get_transaction(txn_id)

        try:
            with self.locks.transaction(txn_id):
                txn = self.get_transaction(txn_id)
                if not txn.can_process():
                    logger.warning(
                        "Rejected %s on %s: already %s (possible double submit)",
                        action.value, txn_id, txn.status.value,
                    )
                    raise InvalidStateTransitionError(
                        f"Cannot {action.value.lower()} transaction in {txn.status.value} state"
                    )

                with self.locks.user(txn.user_id):
                    user = self._get_user(txn.user_id)
                    delta = self._settlement_delta(txn, action)
                    new_status = TransactionStatus.SUCCESS if action == SettlementAction.APPROVE else TransactionStatus.FAILED
                    settled = txn.model_copy(update={
                        "status": new_status,
                        "processed_at": datetime.now(timezone.utc),
                    })
                    balance = self._to_grams(user.gold_balance + delta)
                    with self.storage.unit_of_work() as uow:
                        if delta:
                            updated = user.model_copy(update={"gold_balance": balance})
                            uow.put("users", updated.model_dump(mode="json"), expected_version=user.version)
                        uow.put("transactions", settled.model_dump(mode="json"))
        finally:
            self._release_settled_claim(txn_id)

        logger.info(
            "Transaction %s %s -> %s, balance change %s g for user %s",
            txn_id, txn.type.value, new_status.value, delta, txn.user_id,
        )
        return TransactionResponse(
            transaction=settled,
            gold_balance=balance,
            message=f"Transaction {'approved' if action == SettlementAction.APPROVE else 'rejected'}",
        )

    def approve(self, txn_id: str) -> TransactionResponse:
        return self.process_transaction(txn_id, SettlementAction.APPROVE)

    def reject(self, txn_id: str) -> TransactionResponse:
        return self.process_transaction(txn_id, SettlementAction.REJECT)

    def _release_settled_claim(self, txn_id: str) -> None:
        # a settled transaction never changes again, so its claim lock can go
        record = self.storage.get("transactions", txn_id)
        if record and record["status"] != TransactionStatus.PENDING.value:
            self.locks.forget_transaction(txn_id)

    @staticmethod
    def _settlement_delta(txn: Transaction, action: SettlementAction) -> Decimal:
        # approve BUY credits, reject SELL refunds the reservation; the rest are no-ops
        if action == SettlementAction.APPROVE and txn.type == TransactionType.BUY:
            return txn.gold_grams
        if action == SettlementAction.REJECT and txn.type == TransactionType.SELL:
            return txn.gold_grams
        return Decimal("0")

    def get_transaction(self, txn_id: str) -> Transaction:
        record = self.storage.get("transactions", txn_id)
        if not record:
            raise TransactionNotFoundError(f"Transaction {txn_id} not found")
        return Transaction(**record)

    def list_transactions(self, user_id: Optional[str] = None,
                          status: Optional[TransactionStatus] = None,
                          limit: Optional[int] = None) -> list[Transaction]:
        check_limit(limit)
        if status is not None:
            try:
                status = TransactionStatus(status)
            except ValueError:
                raise InvalidInputError(f"Unknown transaction status {status}")

        def matches(r: dict) -> bool:
            if user_id is not None and r["user_id"] != user_id:
                return False
            if status is not None and r["status"] != status.value:
                return False
            return True

        txns = [Transaction(**r) for r in reversed(self.storage.list_where("transactions", matches))]
        return txns[:limit] if limit is not None else txns

    def get_balance(self, user_id: str) -> Decimal:
        return self._get_user(user_id).gold_balance

    def get_pending_reservation(self, user_id: str) -> Decimal:
        pending_sells = [
            t for t in self.list_transactions(user_id=user_id, status=TransactionStatus.PENDING)
            if t.type == TransactionType.SELL
        ]
        return sum((t.gold_grams for t in pending_sells), Decimal("0"))

    def _get_user(self, user_id: str) -> User:
        record = self.storage.get("users", user_id)
        if not record:
            raise UserNotFoundError(f"User {user_id} not found")
        return User(**record)
