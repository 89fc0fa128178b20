"""
Credential store and its read-through user lookup cache.

UserStore talks to the database. CachedUserStore wraps a UserStore with the same
interface and a process-wide UserCache keyed by lowercased email, so call sites
do not know whether caching is present. Any save/delete through the wrapper evicts
the user's entry; absence is never cached.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

from app.models import UserAccount

logger = logging.getLogger(__name__)


def cache_key(email: str) -> str:
    return email.strip().lower()


def _cache_keys(account: UserAccount) -> set[str]:
    """Keys to evict for a write: the current email and, if it changed, the loaded one."""
    keys = {cache_key(account.email)}
    for previous in inspect(account).attrs.email.history.deleted:
        if previous:
            keys.add(cache_key(previous))
    return keys


# Session.info key holding (cache, email) pairs to evict again once the transaction ends.
_PENDING_EVICTIONS = "user_cache_pending_evictions"


@event.listens_for(Session, "after_commit")
@event.listens_for(Session, "after_rollback")
def _evict_pending(session: Session) -> None:
    # A read between flush and commit can re-cache the old row; evict once more here.
    for cache, key in session.info.pop(_PENDING_EVICTIONS, ()):
        cache.evict(key)


@dataclass(frozen=True)
class CachedUser:
    """
    Immutable snapshot of a UserAccount, safe to share between requests.

    Exposes the same attributes the auth path reads from the ORM model.
    """

    id: int
    email: str
    password_hash: str
    role: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_account(cls, account: UserAccount) -> CachedUser:
        return cls(
            id=account.id,
            email=account.email,
            password_hash=account.password_hash,
            role=account.role,
            created_at=account.created_at,
            updated_at=account.updated_at,
        )


class UserStore:
    """Database-backed credential store."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def find_by_email(self, email: str) -> CachedUser | None:
        account = self.get_account(email)
        return CachedUser.from_account(account) if account is not None else None

    def get_account(self, email: str) -> UserAccount | None:
        """Return the session-bound ORM row (for writes)."""
        return (
            self.session.query(UserAccount)
            .filter(UserAccount.email == cache_key(email))
            .first()
        )

    def exists_by_email(self, email: str) -> bool:
        return self.get_account(email) is not None

    def save(self, account: UserAccount) -> UserAccount:
        account.email = cache_key(account.email)
        self.session.add(account)
        self.session.flush()
        return account

    def delete(self, account: UserAccount) -> None:
        self.session.delete(account)
        self.session.flush()


class UserCache:
    """Process-wide email -> CachedUser map. No TTL; entries leave only by eviction."""

    def __init__(self) -> None:
        self._entries: dict[str, CachedUser] = {}
        self._lock = threading.Lock()

    def get(self, email: str) -> CachedUser | None:
        with self._lock:
            return self._entries.get(cache_key(email))

    def put(self, user: CachedUser) -> None:
        with self._lock:
            self._entries[cache_key(user.email)] = user

    def evict(self, email: str) -> None:
        with self._lock:
            self._entries.pop(cache_key(email), None)

    def clear(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class CachedUserStore:
    """UserStore with cache-aside reads and evict-on-write."""

    def __init__(self, store: UserStore, cache: UserCache) -> None:
        self.store = store
        self.cache = cache

    def find_by_email(self, email: str) -> CachedUser | None:
        cached = self.cache.get(email)
        if cached is not None:
            return cached
        user = self.store.find_by_email(email)
        if user is not None:
            self.cache.put(user)
            logger.debug("User cached after miss: %s", cache_key(email))
        return user

    def get_account(self, email: str) -> UserAccount | None:
        return self.store.get_account(email)

    def exists_by_email(self, email: str) -> bool:
        return self.find_by_email(email) is not None

    def save(self, account: UserAccount) -> UserAccount:
        keys = _cache_keys(account)
        try:
            return self.store.save(account)
        finally:
            self._evict_keys(keys)

    def delete(self, account: UserAccount) -> None:
        keys = _cache_keys(account)
        try:
            self.store.delete(account)
        finally:
            self._evict_keys(keys)

    def _evict_keys(self, keys: set[str]) -> None:
        pending = self.store.session.info.setdefault(_PENDING_EVICTIONS, set())
        for key in keys:
            self.cache.evict(key)
            pending.add((self.cache, key))

    def evict(self, email: str) -> None:
        logger.info("Evicting cached user entry")
        self.cache.evict(email)

    def evict_all(self) -> int:
        count = self.cache.clear()
        logger.info("Evicted all cached users: entries=%s", count)
        return count
