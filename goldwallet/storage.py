import json
import logging
import os
import tempfile
import threading
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Optional

from .errors import ConcurrencyConflictError
from .models import GoldPrice, PaymentMethod, PaymentMethodInfo, User, UserRole

logger = logging.getLogger(__name__)

COLLECTIONS = ("users", "prices", "payment_methods", "transactions")

DEFAULT_ADMIN_ID = "admin-1"
INITIAL_PRICE_ID = "price-1"

DEFAULT_PAYMENT_INSTRUCTIONS = {
    PaymentMethod.BKASH: "Send Money to Personal: 01700000000\nReference: Your Phone Number",
    PaymentMethod.NAGAD: "Send Money to Merchant: 01800000000\nCounter: 1",
    PaymentMethod.ROCKET: "Send Money to: 01900000000-8",
    PaymentMethod.BANK: "City Bank\nA/C: 123456789\nAuro Gold Ltd.",
}

Predicate = Callable[[dict], bool]


class UnitOfWork:
    """Writes staged here land together on commit, or not at all."""

    def __init__(self, storage: "InMemoryStorage"):
        self.storage = storage
        self._writes: list[tuple[str, dict, Optional[int]]] = []

    def put(self, collection: str, record: dict, expected_version: Optional[int] = None) -> dict:
        record = dict(record)
        if expected_version is not None:
            record["version"] = expected_version + 1
        self._writes.append((collection, record, expected_version))
        return record

    def commit(self) -> None:
        if self._writes:
            self.storage._apply(self._writes)
        self._writes = []

    def discard(self) -> None:
        self._writes = []


class InMemoryStorage:
    def __init__(self, seed: bool = True, admin_email: str = "admin@auro.com",
                 initial_price: Decimal = Decimal("9500")):
        self.users: dict[str, dict] = {}
        self.prices: dict[str, dict] = {}
        self.payment_methods: dict[str, dict] = {}
        self.transactions: dict[str, dict] = {}
        self._lock = threading.RLock()
        if seed:
            self.seed_defaults(admin_email, initial_price)

    def seed_defaults(self, admin_email: str, initial_price: Decimal) -> None:
        now = datetime.now(timezone.utc)
        with self.unit_of_work() as uow:
            if not any(u.get("role") == UserRole.ADMIN.value for u in self.users.values()):
                admin = User(
                    id=DEFAULT_ADMIN_ID, name="System Admin", email=admin_email,
                    phone="01700000000", role=UserRole.ADMIN, created_at=now,
                )
                uow.put("users", admin.model_dump(mode="json"))
            if not self.prices:
                price = GoldPrice(
                    id=INITIAL_PRICE_ID, price_per_gram=initial_price,
                    updated_at=now, updated_by=DEFAULT_ADMIN_ID,
                )
                uow.put("prices", price.model_dump(mode="json"))
            for method, details in DEFAULT_PAYMENT_INSTRUCTIONS.items():
                if method.value not in self.payment_methods:
                    info = PaymentMethodInfo(name=method, details=details)
                    uow.put("payment_methods", info.model_dump(mode="json"))

    def _collection(self, name: str) -> dict[str, dict]:
        if name not in COLLECTIONS:
            raise KeyError(f"Unknown collection {name}")
        return getattr(self, name)

    @staticmethod
    def _key(collection: str, record: dict) -> str:
        return record["name"] if collection == "payment_methods" else record["id"]

    def get(self, collection: str, key: str) -> Optional[dict]:
        with self._lock:
            record = self._collection(collection).get(key)
            return dict(record) if record is not None else None

    def list_all(self, collection: str) -> list[dict]:
        with self._lock:
            return [dict(r) for r in self._collection(collection).values()]

    def list_where(self, collection: str, predicate: Predicate) -> list[dict]:
        return [r for r in self.list_all(collection) if predicate(r)]

    def last(self, collection: str) -> Optional[dict]:
        with self._lock:
            records = self._collection(collection)
            if not records:
                return None
            return dict(next(reversed(records.values())))

    def upsert(self, collection: str, record: dict) -> dict:
        with self.unit_of_work() as uow:
            stored = uow.put(collection, record)
        return stored

    def unit_of_work(self) -> "_UnitOfWorkContext":
        return _UnitOfWorkContext(self)

    def _apply(self, writes: list[tuple[str, dict, Optional[int]]]) -> None:
        with self._lock:
            for collection, record, expected_version in writes:
                if expected_version is None:
                    continue
                current = self._collection(collection).get(self._key(collection, record))
                current_version = current.get("version", 0) if current else None
                if current_version != expected_version:
                    raise ConcurrencyConflictError(
                        f"{collection} record {self._key(collection, record)} changed "
                        f"(expected version {expected_version}, found {current_version})"
                    )
            previous = []
            for collection, record, _ in writes:
                records = self._collection(collection)
                key = self._key(collection, record)
                previous.append((records, key, records.get(key)))
                records[key] = record
            try:
                self._after_commit()
            except Exception:
                for records, key, old in reversed(previous):
                    if old is None:
                        records.pop(key, None)
                    else:
                        records[key] = old
                raise

    def _after_commit(self) -> None:
        pass


class _UnitOfWorkContext:
    def __init__(self, storage: InMemoryStorage):
        self.uow = UnitOfWork(storage)

    def __enter__(self) -> UnitOfWork:
        return self.uow

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            self.uow.commit()
        else:
            self.uow.discard()
        return False


class JsonFileStorage(InMemoryStorage):
    """InMemoryStorage that mirrors every committed write to a JSON file."""

    def __init__(self, path: str, seed: bool = True, admin_email: str = "admin@auro.com",
                 initial_price: Decimal = Decimal("9500")):
        self.path = path
        super().__init__(seed=False)
        self._load()
        if seed:
            self.seed_defaults(admin_email, initial_price)

    def _load(self) -> None:
        if not os.path.exists(self.path):
            return
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        for name in COLLECTIONS:
            getattr(self, name).update(data.get(name, {}))
        logger.info("Loaded ledger store from %s (%d users, %d transactions)",
                    self.path, len(self.users), len(self.transactions))

    def _after_commit(self) -> None:
        snapshot = {name: getattr(self, name) for name in COLLECTIONS}
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".goldwallet-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(snapshot, f, indent=2, default=str)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
