from __future__ import annotations

import httpx
import pytest
from fastapi.testclient import TestClient

from userapi.api import create_app
from userapi.client import UserDirectoryClient, UserDirectoryError
from userapi.models import User


@pytest.fixture()
def http_client():
    with TestClient(create_app()) as client:
        yield client


def test_login_then_crud_round_trip(http_client: TestClient) -> None:
    api = UserDirectoryClient("http://testserver", http_client=http_client)
    token = api.login()
    assert token.startswith("token_")
    assert api.token == token

    created = api.create_user("Ada", "ada@example.com")
    assert created == User(id=1, name="Ada", email="ada@example.com")
    assert api.get_user(1) == created
    assert api.list_users(page=1, size=10) == [created]

    assert api.update_user(1, "Ada Lovelace") is True
    assert api.get_user(1) == User(id=1, name="Ada Lovelace", email=None)

    assert api.delete_user(1) is True
    assert api.delete_user(1) is False
    assert api.update_user(1, "Ghost") is False
    assert api.get_user(1) is None


def test_missing_token_surfaces_401(http_client: TestClient) -> None:
    api = UserDirectoryClient("http://testserver", http_client=http_client)

    with pytest.raises(UserDirectoryError) as excinfo:
        api.list_users()

    assert excinfo.value.status_code == 401
    assert "Use /auth/login" in excinfo.value.message


def test_validation_reason_is_reported(http_client: TestClient) -> None:
    api = UserDirectoryClient("http://testserver", "token_demo123", http_client=http_client)

    with pytest.raises(UserDirectoryError) as excinfo:
        api.create_user("Ada", "not-an-email")

    assert excinfo.value.status_code == 400
    assert excinfo.value.message == "Email is invalid"


def test_health_does_not_need_a_token(http_client: TestClient) -> None:
    api = UserDirectoryClient("http://testserver", http_client=http_client)
    assert api.health() == {"status": "ok", "users": 0}


def test_plain_text_errors_are_reported() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="upstream unavailable")

    transport_client = httpx.Client(transport=httpx.MockTransport(handler))
    api = UserDirectoryClient("http://directory.local/", "token", http_client=transport_client)

    with pytest.raises(UserDirectoryError) as excinfo:
        api.health()

    assert excinfo.value.status_code == 502
    assert excinfo.value.message == "upstream unavailable"


def test_empty_base_url_is_rejected() -> None:
    with pytest.raises(ValueError):
        UserDirectoryClient("  ")
