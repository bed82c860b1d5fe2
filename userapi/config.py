"""Configuration management for the user directory service."""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

import yaml

from .security import DEMO_TOKENS, load_tokens_from_env

DEFAULT_PUBLIC_PATHS = ("/swagger", "/auth/login", "/health")
_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


def _env_flag(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _as_tuple(value: object, key: str) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        raise ValueError(f"'{key}' must be a list of strings")
    cleaned = []
    for item in value:
        text = str(item).strip()
        if text:
            cleaned.append(text)
    return tuple(cleaned)


def _parse_port(value: object) -> int:
    try:
        port = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid port: {value!r}") from exc
    if not 1 <= port <= 65535:
        raise ValueError(f"Port must be between 1 and 65535, got {port}")
    return port


def _parse_log_level(value: object) -> str:
    level = str(value).strip().upper()
    if level not in _LOG_LEVELS:
        raise ValueError(f"Unknown log level: {value!r}")
    return level


@dataclass(frozen=True)
class ServiceSettings:
    """Runtime settings for the HTTP service."""

    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"
    tokens: Tuple[str, ...] = DEMO_TOKENS
    public_paths: Tuple[str, ...] = DEFAULT_PUBLIC_PATHS
    expose_error_details: bool = True
    docs_enabled: bool = True

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "ServiceSettings":
        """Create :class:`ServiceSettings` from raw YAML data."""
        defaults = ServiceSettings()

        tokens = defaults.tokens
        if "tokens" in data:
            tokens = tuple(dict.fromkeys(DEMO_TOKENS + _as_tuple(data["tokens"], "tokens")))

        public_paths = defaults.public_paths
        if "public_paths" in data:
            public_paths = _as_tuple(data["public_paths"], "public_paths")

        return ServiceSettings(
            host=str(data.get("host", defaults.host)).strip() or defaults.host,
            port=_parse_port(data.get("port", defaults.port)),
            log_level=_parse_log_level(data.get("log_level", defaults.log_level)),
            tokens=tokens,
            public_paths=public_paths,
            expose_error_details=bool(data.get("expose_error_details", defaults.expose_error_details)),
            docs_enabled=bool(data.get("docs_enabled", defaults.docs_enabled)),
        )

    def with_env_overrides(self, environ: Optional[Mapping[str, str]] = None) -> "ServiceSettings":
        """Return a copy with ``USERAPI_*`` environment variables applied."""
        env = os.environ if environ is None else environ
        updates: Dict[str, object] = {}

        host = env.get("USERAPI_HOST")
        if host and host.strip():
            updates["host"] = host.strip()
        port = env.get("USERAPI_PORT")
        if port and port.strip():
            updates["port"] = _parse_port(port)
        level = env.get("USERAPI_LOG_LEVEL")
        if level and level.strip():
            updates["log_level"] = _parse_log_level(level)
        if "USERAPI_EXPOSE_ERRORS" in env:
            updates["expose_error_details"] = _env_flag(env.get("USERAPI_EXPOSE_ERRORS"))

        extra_tokens = tuple(load_tokens_from_env(env))
        if extra_tokens:
            updates["tokens"] = tuple(dict.fromkeys(self.tokens + extra_tokens))

        return replace(self, **updates) if updates else self


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the configuration file."""
    if env_value:
        candidate = Path(env_value).expanduser().resolve(strict=False)
    else:
        candidate = (Path(__file__).resolve().parent.parent / "config" / "service.yaml").resolve(strict=False)
    return candidate


def load_settings(config_path: Optional[Path] = None, *, apply_env: bool = True) -> ServiceSettings:
    """Load settings from YAML and the environment.

    An explicitly requested file must exist; the default location is optional.
    """
    explicit = config_path is not None or bool(os.getenv("USERAPI_CONFIG"))
    path = config_path or resolve_config_path(os.getenv("USERAPI_CONFIG"))

    raw: Dict[str, object] = {}
    if path.exists():
        with path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Configuration file {path} must contain a mapping")
        raw = loaded
    elif explicit:
        raise FileNotFoundError(f"Configuration file not found: {path}")

    settings = ServiceSettings.from_dict(raw)
    if apply_env:
        settings = settings.with_env_overrides()
    return settings


__all__ = [
    "DEFAULT_PUBLIC_PATHS",
    "ServiceSettings",
    "load_settings",
    "resolve_config_path",
]
