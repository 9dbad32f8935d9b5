import logging
import threading
from contextlib import contextmanager
from typing import Iterator

from .errors import ConcurrencyConflictError

logger = logging.getLogger(__name__)


class KeyedLocks:
    """Registry of per-key mutexes.

    Each key (``user:<id>``, ``txn:<id>``) gets its own lock, so work on
    different users never contends. Acquisition is bounded by ``timeout``.
    """

    def __init__(self, timeout: float = 5.0):
        self.timeout = timeout
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, key: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    def forget(self, key: str) -> None:
        # only safe for keys whose guarded state can no longer change
        with self._registry_lock:
            self._locks.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._locks

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        lock = self._lock_for(key)
        if not lock.acquire(timeout=self.timeout):
            logger.warning("Timed out after %.1fs waiting for lock %s", self.timeout, key)
            raise ConcurrencyConflictError(f"Resource {key} is busy, retry the operation")
        try:
            yield
        finally:
            lock.release()

    def user(self, user_id: str):
        return self.hold(f"user:{user_id}")

    def transaction(self, txn_id: str):
        return self.hold(f"txn:{txn_id}")

    def forget_transaction(self, txn_id: str) -> None:
        self.forget(f"txn:{txn_id}")
