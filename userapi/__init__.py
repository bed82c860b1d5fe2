"""In-memory user directory service with bearer token authentication."""

from __future__ import annotations

from typing import Any

from .models import AuthenticatedContext, User
from .security import TokenRegistry
from .store import InMemoryUserStore, StoreError


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the HTTP application."""

    from .api import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "AuthenticatedContext",
    "InMemoryUserStore",
    "StoreError",
    "TokenRegistry",
    "User",
    "create_app",
]
