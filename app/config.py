"""Configuration management for the user directory service."""
from __future__ import annotations

import logging
import os
import secrets
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

logger = logging.getLogger("crudapp.config")

DEFAULT_MONGODB_URI = "mongodb://localhost:27017"
DEFAULT_DATABASE = "crudapp"
DEFAULT_COLLECTION = "users"
DEFAULT_STORE_TIMEOUT = 10.0
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8080

_ENVIRONMENT_KEYS = {
    "mongodb_uri": "MONGODB_URI",
    "database_name": "MONGODB_DATABASE",
    "collection_name": "MONGODB_COLLECTION",
    "store_timeout": "CRUDAPP_STORE_TIMEOUT",
    "session_secret": "CRUDAPP_SESSION_SECRET",
    "host": "CRUDAPP_HOST",
    "port": "CRUDAPP_PORT",
}


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the web service and its MongoDB connection."""

    mongodb_uri: str = DEFAULT_MONGODB_URI
    database_name: str = DEFAULT_DATABASE
    collection_name: str = DEFAULT_COLLECTION
    store_timeout: float = DEFAULT_STORE_TIMEOUT
    session_secret: Optional[str] = field(default=None, repr=False)
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT

    @staticmethod
    def from_dict(data: Mapping[str, object]) -> "Settings":
        """Create :class:`Settings` from raw mapping data, applying defaults."""

        unknown = set(data) - set(_ENVIRONMENT_KEYS)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

        def _text(key: str, default: str) -> str:
            value = data.get(key)
            if value is None:
                return default
            cleaned = str(value).strip()
            if not cleaned:
                raise ValueError(f"Configuration value '{key}' must not be empty")
            return cleaned

        try:
            store_timeout = float(data.get("store_timeout", DEFAULT_STORE_TIMEOUT))  # type: ignore[arg-type]
        except (TypeError, ValueError) as exc:
            raise ValueError("Configuration value 'store_timeout' must be a number") from exc
        if store_timeout <= 0:
            raise ValueError("Configuration value 'store_timeout' must be positive")

        try:
            port = int(data.get("port", DEFAULT_PORT))  # type: ignore[arg-type]
        except (TypeError, ValueError) as exc:
            raise ValueError("Configuration value 'port' must be an integer") from exc
        if not 0 < port < 65536:
            raise ValueError("Configuration value 'port' must be between 1 and 65535")

        secret = data.get("session_secret")

        return Settings(
            mongodb_uri=_expand_credentials(_text("mongodb_uri", DEFAULT_MONGODB_URI)),
            database_name=_text("database_name", DEFAULT_DATABASE),
            collection_name=_text("collection_name", DEFAULT_COLLECTION),
            store_timeout=store_timeout,
            session_secret=str(secret) if secret else None,
            host=_text("host", DEFAULT_HOST),
            port=port,
        )

    def resolved_session_secret(self) -> str:
        if self.session_secret:
            return self.session_secret
        logger.warning(
            "CRUDAPP_SESSION_SECRET is not set; flash messages will not survive a restart "
            "and are dropped when requests reach a different worker process"
        )
        return secrets.token_urlsafe(32)


def _expand_credentials(uri: str) -> str:
    """Substitute ``${MONGODB_USER}`` and ``${MONGODB_PASSWORD}`` placeholders."""

    uri = uri.replace("${MONGODB_USER}", os.getenv("MONGODB_USER", ""))
    return uri.replace("${MONGODB_PASSWORD}", os.getenv("MONGODB_PASSWORD", ""))


def resolve_config_path(env_value: Optional[str]) -> Optional[Path]:
    """Resolve the path to the optional YAML configuration file."""
    if not env_value:
        return None
    return Path(env_value).expanduser().resolve(strict=False)


def load_settings(
    config_path: Optional[Path] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Load settings from an optional YAML file overridden by environment variables."""

    env = os.environ if environ is None else environ
    if config_path is None:
        config_path = resolve_config_path(env.get("CRUDAPP_CONFIG"))

    raw: Dict[str, object] = {}
    if config_path is not None:
        with config_path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Configuration file {config_path} must contain a mapping")
        raw.update(loaded)

    for key, env_name in _ENVIRONMENT_KEYS.items():
        value = env.get(env_name)
        if value is not None and value != "":
            raw[key] = value

    return Settings.from_dict(raw)


__all__ = ["Settings", "load_settings", "resolve_config_path"]
