"""Domain models shared by the store, the pipeline and the HTTP handlers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class User:
    """Represents a user record held by the in-memory store."""

    id: int
    name: str
    email: Optional[str]


@dataclass(frozen=True)
class AuthenticatedContext:
    """Per-request proof that a valid bearer token was presented."""

    token: str
    authenticated_at: datetime


__all__ = ["AuthenticatedContext", "User"]
