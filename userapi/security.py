"""Bearer token registry and header parsing helpers."""
from __future__ import annotations

import logging
import os
import secrets
import threading
from typing import Iterable, List, Mapping, Optional, Set

logger = logging.getLogger("userapi.security")

DEMO_TOKENS = ("token_demo123", "token_test456", "token_admin789")

_TOKEN_PREFIX = "token_"
_BEARER_PREFIX = "bearer "


class TokenRegistry:
    """Process-wide set of bearer tokens accepted by the authentication stage."""

    def __init__(self, tokens: Iterable[str] = DEMO_TOKENS):
        self._tokens: Set[str] = {token.strip() for token in tokens if token and token.strip()}
        self._lock = threading.Lock()

    def is_valid(self, token: Optional[str]) -> bool:
        if not token:
            return False
        with self._lock:
            return token in self._tokens

    def issue(self) -> str:
        with self._lock:
            token = _generate_token()
            while token in self._tokens:
                token = _generate_token()
            self._tokens.add(token)
        logger.info("Issued token %s...", token[: len(_TOKEN_PREFIX) + 4])
        return token

    def __len__(self) -> int:
        with self._lock:
            return len(self._tokens)


def _generate_token() -> str:
    return _TOKEN_PREFIX + secrets.token_hex(16)


def extract_bearer_token(header: Optional[str]) -> Optional[str]:
    """Return the candidate token carried by an ``Authorization`` header value.

    Both ``Bearer <token>`` and a bare ``<token>`` are accepted. ``None`` is
    returned when the header is missing or blank.
    """

    if header is None or not header.strip():
        return None
    if header[: len(_BEARER_PREFIX)].lower() == _BEARER_PREFIX:
        return header[len(_BEARER_PREFIX) :].strip()
    return header.strip()


def load_tokens_from_env(environ: Optional[Mapping[str, str]] = None) -> List[str]:
    env = os.environ if environ is None else environ
    raw = env.get("USERAPI_TOKENS", "")
    return [token.strip() for token in raw.split(",") if token.strip()]


__all__ = ["DEMO_TOKENS", "TokenRegistry", "extract_bearer_token", "load_tokens_from_env"]
