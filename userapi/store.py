"""Thread-safe in-memory storage for user records."""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional

from .models import User

logger = logging.getLogger("userapi.store")

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 100
MAX_PAGE_SIZE = 1000


class StoreError(RuntimeError):
    """Raised when the store detects that its own state is inconsistent."""


def _normalise_email(email: Optional[str]) -> Optional[str]:
    if email is None:
        return None
    cleaned = email.strip()
    return cleaned or None


def normalise_paging(page: Optional[int], size: Optional[int]) -> tuple[int, int]:
    """Apply the listing defaults and the page size ceiling."""

    if page is None or page < 1:
        page = DEFAULT_PAGE
    if size is None or size < 1:
        size = DEFAULT_PAGE_SIZE
    if size > MAX_PAGE_SIZE:
        size = MAX_PAGE_SIZE
    return page, size


class InMemoryUserStore:
    """CRUD over user records guarded by a single lock.

    Identifiers are allocated sequentially starting at 1 and are never
    handed out twice, even after the record that used them is deleted.
    """

    def __init__(self) -> None:
        self._users: Dict[int, User] = {}
        self._last_id = 0
        self._lock = threading.Lock()

    def get_all(self, page: Optional[int] = None, size: Optional[int] = None) -> List[User]:
        page, size = normalise_paging(page, size)
        skip = (page - 1) * size
        with self._lock:
            snapshot = sorted(self._users.values(), key=lambda user: user.id)
        return snapshot[skip : skip + size]

    def get_by_id(self, user_id: int) -> Optional[User]:
        with self._lock:
            return self._users.get(user_id)

    def add(self, name: str, email: Optional[str] = None) -> User:
        with self._lock:
            self._last_id += 1
            user_id = self._last_id
            if user_id in self._users:
                raise StoreError(f"Allocated user id {user_id} is already in use")
            user = User(id=user_id, name=name, email=_normalise_email(email))
            self._users[user_id] = user
        logger.debug("Stored user %s", user_id)
        return user

    def update(self, user_id: int, name: str, email: Optional[str] = None) -> bool:
        with self._lock:
            if user_id not in self._users:
                return False
            self._users[user_id] = User(id=user_id, name=name, email=_normalise_email(email))
        logger.debug("Replaced user %s", user_id)
        return True

    def delete(self, user_id: int) -> bool:
        with self._lock:
            removed = self._users.pop(user_id, None)
        if removed is None:
            return False
        logger.debug("Deleted user %s", user_id)
        return True

    def count(self) -> int:
        with self._lock:
            return len(self._users)


__all__ = [
    "DEFAULT_PAGE",
    "DEFAULT_PAGE_SIZE",
    "InMemoryUserStore",
    "MAX_PAGE_SIZE",
    "StoreError",
    "normalise_paging",
]
