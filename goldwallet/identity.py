import logging
import secrets
import threading
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from .errors import InvalidInputError, UserAlreadyExistsError, UserNotFoundError
from .locks import KeyedLocks
from .models import User, UserRole
from .storage import InMemoryStorage

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class IdentityService:
    """Users are identified by email alone; there are no passwords."""

    def __init__(self, storage: InMemoryStorage, locks: KeyedLocks):
        self.storage = storage
        self.locks = locks
        self._register_lock = threading.Lock()

    def get_user(self, user_id: str) -> User:
        record = self.storage.get("users", user_id)
        if not record:
            raise UserNotFoundError(f"User {user_id} not found")
        return User(**record)

    def find_by_email(self, email: str) -> Optional[User]:
        email = normalize_email(email)
        matches = self.storage.list_where("users", lambda u: normalize_email(u["email"]) == email)
        return User(**matches[0]) if matches else None

    def login(self, email: str) -> User:
        user = self.find_by_email(email)
        if not user:
            raise UserNotFoundError(f"No user registered with email {email}")
        return user

    def register(self, name: str, email: str, phone: str) -> User:
        name, phone = (name or "").strip(), (phone or "").strip()
        email = normalize_email(email)
        if not name or not email or not phone:
            raise InvalidInputError("Name, email and phone are required")
        if "@" not in email:
            raise InvalidInputError(f"Invalid email address {email}")

        with self._register_lock:
            if self.find_by_email(email):
                raise UserAlreadyExistsError(f"Email {email} already exists")
            user = User(
                id=f"user-{uuid4().hex[:12]}",
                name=name,
                email=email,
                phone=phone,
                role=UserRole.USER,
                created_at=datetime.now(timezone.utc),
            )
            self.storage.upsert("users", user.model_dump(mode="json"))

        logger.info("Registered user %s (%s)", user.id, email)
        return user

    def update_profile(self, user_id: str, name: Optional[str] = None, phone: Optional[str] = None) -> User:
        with self.locks.user(user_id):
            user = self.get_user(user_id)
            changes = {}
            if name is not None:
                if not name.strip():
                    raise InvalidInputError("Name cannot be blank")
                changes["name"] = name.strip()
            if phone is not None:
                if not phone.strip():
                    raise InvalidInputError("Phone cannot be blank")
                changes["phone"] = phone.strip()
            if not changes:
                return user

            updated = user.model_copy(update=changes)
            with self.storage.unit_of_work() as uow:
                stored = uow.put("users", updated.model_dump(mode="json"), expected_version=user.version)
        logger.info("Updated profile for user %s: %s", user_id, ", ".join(sorted(changes)))
        return User(**stored)


class SessionManager:
    """Maps opaque tokens to user ids.

    Only the id is kept; the user record is re-read on every resolve so
    balances and profile fields are never stale.
    """

    def __init__(self, identity: IdentityService):
        self.identity = identity
        self._sessions: dict[str, str] = {}
        self._lock = threading.Lock()

    def create_session(self, user: User) -> str:
        token = secrets.token_urlsafe(32)
        with self._lock:
            self._sessions[token] = user.id
        return token

    def resolve_current_user(self, token: Optional[str]) -> Optional[User]:
        if not token:
            return None
        with self._lock:
            user_id = self._sessions.get(token)
        if user_id is None:
            return None
        try:
            return self.identity.get_user(user_id)
        except UserNotFoundError:
            return None

    def end_session(self, token: str) -> None:
        with self._lock:
            self._sessions.pop(token, None)
