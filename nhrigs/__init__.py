"""NiceHash mining rig status page and API client."""

from .config import AppConfig, ConfigError, Credentials, load_config
from .core import (
    APP_NAME,
    APP_VERSION,
    RIGS_ENDPOINT,
    USER_AGENT,
    RemoteAPIError,
    build_auth_headers,
    create_signature,
    generate_nonce,
    get_rigs,
    now_ms,
    send_request_and_receive,
)
from .report import build_report

__all__ = [
    "APP_NAME",
    "APP_VERSION",
    "RIGS_ENDPOINT",
    "USER_AGENT",
    "AppConfig",
    "ConfigError",
    "Credentials",
    "RemoteAPIError",
    "build_auth_headers",
    "build_report",
    "create_signature",
    "generate_nonce",
    "get_rigs",
    "load_config",
    "now_ms",
    "send_request_and_receive",
]
