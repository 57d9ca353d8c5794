from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from dotenv import find_dotenv, load_dotenv

DEFAULT_CONFIG_PATH = "nhrigs-conf.json"
DEFAULT_API_HOST = "https://api2.nicehash.com"
DEFAULT_BIND_HOST = "0.0.0.0"
DEFAULT_PORT = 3000
DEFAULT_TIMEOUT = 10  # seconds
DEFAULT_LANG = "ja"

# config file key -> environment variable
_ENV_KEYS = {
    "api_key": "NICEHASH_API_KEY",
    "api_secret": "NICEHASH_API_SECRET",
    "org_id": "NICEHASH_ORG_ID",
    "host": "NHRIGS_HOST",
    "port": "PORT",
    "timeout": "NHRIGS_TIMEOUT",
    "lang": "NHRIGS_LANG",
}


class ConfigError(ValueError):
    """Raised when a required setting is missing or malformed."""


@dataclass(frozen=True)
class Credentials:
    """NiceHash API credentials. The secret is kept out of repr()."""

    api_key: str
    api_secret: str = field(repr=False)
    organization_id: str

    def __post_init__(self) -> None:
        for name, env_key in (
            ("api_key", "NICEHASH_API_KEY"),
            ("api_secret", "NICEHASH_API_SECRET"),
            ("organization_id", "NICEHASH_ORG_ID"),
        ):
            if not getattr(self, name):
                raise ConfigError(f"{env_key} is not set")


@dataclass(frozen=True)
class AppConfig:
    credentials: Credentials
    api_host: str = DEFAULT_API_HOST
    host: str = DEFAULT_BIND_HOST
    port: int = DEFAULT_PORT
    timeout: float = DEFAULT_TIMEOUT
    lang: str = DEFAULT_LANG


def load_conf_file(path: str = DEFAULT_CONFIG_PATH) -> dict:
    """Load the JSON configuration file if it exists, else return {}."""

    if not path or not os.path.exists(path):
        return {}
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except ValueError as exc:
            raise ConfigError(f"Failed to parse config file {path}: {exc}")
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")
    return data


def _to_number(key: str, value: Any, cast):
    try:
        return cast(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid value for {key}: {value!r}")


def load_config(
    path: str = DEFAULT_CONFIG_PATH,
    env: Optional[Mapping[str, str]] = None,
    env_file: Optional[str] = None,
    **overrides: Any,
) -> AppConfig:
    """
    Build the process configuration once at start-up.
    Priority, highest first:
      - keyword overrides (CLI flags); None values are ignored
      - environment variables (see _ENV_KEYS), after loading .env
      - JSON config file
    Raises ConfigError when a credential is missing.
    """

    if env is None:
        load_dotenv(env_file or find_dotenv(usecwd=True))
        env = os.environ

    conf = load_conf_file(path)
    merged: dict = {}
    for key, env_key in _ENV_KEYS.items():
        value = overrides.get(key)
        if value is None:
            value = env.get(env_key)
        if value is None or value == "":
            value = conf.get(key)
        if value is not None and value != "":
            merged[key] = value

    credentials = Credentials(
        api_key=merged.get("api_key", ""),
        api_secret=merged.get("api_secret", ""),
        organization_id=merged.get("org_id", ""),
    )
    return AppConfig(
        credentials=credentials,
        api_host=overrides.get("api_host") or conf.get("api_host") or DEFAULT_API_HOST,
        host=merged.get("host", DEFAULT_BIND_HOST),
        port=_to_number("port", merged.get("port", DEFAULT_PORT), int),
        timeout=_to_number("timeout", merged.get("timeout", DEFAULT_TIMEOUT), float),
        lang=merged.get("lang", DEFAULT_LANG),
    )


__all__ = [
    "AppConfig",
    "ConfigError",
    "Credentials",
    "DEFAULT_API_HOST",
    "DEFAULT_CONFIG_PATH",
    "DEFAULT_LANG",
    "DEFAULT_PORT",
    "DEFAULT_TIMEOUT",
    "load_conf_file",
    "load_config",
]
