"""HTTP client for the user directory API."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx

from .models import User


class UserDirectoryError(RuntimeError):
    """Raised when the API answers with an unexpected status code."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def _normalize_base_url(base_url: str) -> str:
    cleaned = (base_url or "").strip()
    if not cleaned:
        raise ValueError("API base URL must not be empty")
    return cleaned.rstrip("/")


def _extract_error_message(payload: object, default: str) -> str:
    if isinstance(payload, dict):
        for key in ("message", "Error", "error", "detail"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    if isinstance(payload, str) and payload.strip():
        return payload.strip()
    return default


def _user_from_payload(payload: object) -> User:
    if not isinstance(payload, dict):
        raise UserDirectoryError(200, "API returned an unexpected user payload")
    try:
        return User(
            id=int(payload["id"]),
            name=str(payload["name"]),
            email=payload.get("email"),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise UserDirectoryError(200, "API user payload was missing required fields") from exc


class UserDirectoryClient:
    """Thin wrapper over the JSON API.

    ``http_client`` may be any :class:`httpx.Client`, which lets tests pass a
    FastAPI ``TestClient`` and talk to an in-process application.
    """

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:8000",
        token: Optional[str] = None,
        *,
        timeout: float = 10.0,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self._base_url = _normalize_base_url(base_url)
        self.token = token.strip() if token else None
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(timeout=timeout)

    def close(self) -> None:
        if self._owns_client:
            self._http.close()

    def __enter__(self) -> "UserDirectoryClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _headers(self) -> Dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = f"{self._base_url}{path}"
        try:
            return self._http.request(method, url, headers=self._headers(), **kwargs)
        except httpx.RequestError as exc:  # pragma: no cover - network failure
            raise UserDirectoryError(0, f"Failed to contact user directory API: {exc}") from exc

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.status_code < 400:
            return
        default = f"User directory API request failed with status {response.status_code}"
        try:
            parsed = response.json()
        except ValueError:
            parsed = response.text
        raise UserDirectoryError(response.status_code, _extract_error_message(parsed, default))

    def login(self, *, remember: bool = True) -> str:
        """Request a new token; by default it is used for later calls."""

        response = self._request("POST", "/auth/login")
        self._raise_for_status(response)
        token = str(response.json()["token"])
        if remember:
            self.token = token
        return token

    def health(self) -> Dict[str, Any]:
        response = self._request("GET", "/health")
        self._raise_for_status(response)
        return response.json()

    def list_users(self, page: Optional[int] = None, size: Optional[int] = None) -> List[User]:
        params: Dict[str, int] = {}
        if page is not None:
            params["page"] = page
        if size is not None:
            params["size"] = size
        response = self._request("GET", "/users", params=params)
        self._raise_for_status(response)
        payload = response.json()
        if not isinstance(payload, list):
            raise UserDirectoryError(response.status_code, "API returned an unexpected listing payload")
        return [_user_from_payload(item) for item in payload]

    def get_user(self, user_id: int) -> Optional[User]:
        response = self._request("GET", f"/users/{user_id}")
        if response.status_code == 404:
            return None
        self._raise_for_status(response)
        return _user_from_payload(response.json())

    def create_user(self, name: str, email: Optional[str] = None) -> User:
        response = self._request("POST", "/users", json={"name": name, "email": email})
        self._raise_for_status(response)
        return _user_from_payload(response.json())

    def update_user(self, user_id: int, name: str, email: Optional[str] = None) -> bool:
        response = self._request("PUT", f"/users/{user_id}", json={"name": name, "email": email})
        if response.status_code == 404:
            return False
        self._raise_for_status(response)
        return True

    def delete_user(self, user_id: int) -> bool:
        response = self._request("DELETE", f"/users/{user_id}")
        if response.status_code == 404:
            return False
        self._raise_for_status(response)
        return True


__all__ = ["UserDirectoryClient", "UserDirectoryError"]
