from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest

from userapi.security import DEMO_TOKENS, TokenRegistry, extract_bearer_token, load_tokens_from_env


def test_demo_tokens_are_seeded() -> None:
    registry = TokenRegistry()
    for token in DEMO_TOKENS:
        assert registry.is_valid(token)


def test_unknown_and_empty_tokens_are_rejected() -> None:
    registry = TokenRegistry()
    assert not registry.is_valid("token_unknown")
    assert not registry.is_valid("")
    assert not registry.is_valid(None)


def test_membership_is_exact() -> None:
    registry = TokenRegistry()
    assert not registry.is_valid("TOKEN_DEMO123")
    assert not registry.is_valid("token_demo123 ")


def test_issue_returns_new_valid_unique_tokens() -> None:
    registry = TokenRegistry()
    issued = {registry.issue() for _ in range(50)}

    assert len(issued) == 50
    assert all(token.startswith("token_") for token in issued)
    assert all(registry.is_valid(token) for token in issued)
    assert all(registry.is_valid(token) for token in DEMO_TOKENS)
    assert len(registry) == len(DEMO_TOKENS) + 50


def test_concurrent_issue_produces_distinct_tokens() -> None:
    registry = TokenRegistry(())
    with ThreadPoolExecutor(max_workers=8) as pool:
        tokens = list(pool.map(lambda _: registry.issue(), range(200)))

    assert len(set(tokens)) == 200
    assert len(registry) == 200


@pytest.mark.parametrize(
    ("header", "expected"),
    [
        (None, None),
        ("", None),
        ("   ", None),
        ("Bearer token_demo123", "token_demo123"),
        ("bearer   token_demo123  ", "token_demo123"),
        ("BEARER token_demo123", "token_demo123"),
        ("token_demo123", "token_demo123"),
        ("  token_demo123  ", "token_demo123"),
        ("Bearer ", ""),
        ("Basic abc", "Basic abc"),
    ],
)
def test_extract_bearer_token(header, expected) -> None:
    assert extract_bearer_token(header) == expected


def test_load_tokens_from_env() -> None:
    assert load_tokens_from_env({"USERAPI_TOKENS": " alpha, ,beta "}) == ["alpha", "beta"]
    assert load_tokens_from_env({}) == []
