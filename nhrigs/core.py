from __future__ import annotations

import base64
import json
import logging
import time
from importlib import import_module, util
from typing import Any, Callable, Dict, Mapping, Optional, Union
from urllib.parse import quote, urlencode

import requests

from .config import DEFAULT_LANG, DEFAULT_TIMEOUT, AppConfig, Credentials

APP_NAME = "nhrigs"
APP_VERSION = "1.0.0"
USER_AGENT = f"{APP_NAME}/{APP_VERSION} (+https://github.com/iamtakagi/nhrigs)"

RIGS_ENDPOINT = "/main/api/v2/mining/rigs2"
NONCE_BYTES = 16

logger = logging.getLogger(__name__)


class MissingCryptoBackend(ImportError):
    """Raised when no PyCryptodome distribution is available."""


class RemoteAPIError(RuntimeError):
    """The NiceHash API call failed (network, HTTP status or payload)."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _load_crypto():
    for package in ("Cryptodome", "Crypto"):
        if util.find_spec(package) is not None:
            return (
                import_module(f"{package}.Hash.HMAC"),
                import_module(f"{package}.Hash.SHA256"),
                import_module(f"{package}.Random").get_random_bytes,
            )
    raise MissingCryptoBackend(
        "HMAC-SHA256 not available. Install pycryptodome or pycryptodomex:\n"
        "  pip install pycryptodome\n"
        "  # or\n"
        "  pip install pycryptodomex"
    )


HMAC, SHA256, get_random_bytes = _load_crypto()


def now_ms() -> int:
    """Return current unix timestamp in milliseconds."""

    return int(time.time() * 1000)


def generate_nonce() -> str:
    """Return a fresh base64 nonce built from 16 random bytes."""

    return base64.b64encode(get_random_bytes(NONCE_BYTES)).decode("ascii")


def encode_query(query: Union[str, Mapping[str, Any]]) -> str:
    """
    Form-encode a query mapping in its own iteration order.
    Sequence values become repeated keys; spaces are encoded as %20.
    Strings are returned unchanged.
    """

    if isinstance(query, str):
        return query
    return urlencode(list(query.items()), doseq=True, quote_via=quote)


def encode_body(body: Any) -> str:
    """Return body as-is when it is a string, else compact JSON."""

    if isinstance(body, str):
        return body
    return json.dumps(body, separators=(",", ":"), ensure_ascii=False)


def create_signature(
    method: str,
    endpoint: str,
    timestamp_ms: int,
    nonce: str,
    credentials: Credentials,
    query: Optional[Union[str, Mapping[str, Any]]] = None,
    body: Optional[Any] = None,
) -> str:
    """
    X-Auth token for one NiceHash request:
      message = key \\0 time \\0 nonce \\0 \\0 org \\0 \\0 METHOD \\0 endpoint \\0
                [query] [\\0 body]
      token   = key ":" hex(HMAC-SHA256(secret, message))
    """

    message = (
        f"{credentials.api_key}\0{timestamp_ms}\0{nonce}\0\0"
        f"{credentials.organization_id}\0\0{method.upper()}\0{endpoint}\0"
    )
    if query:
        message += encode_query(query)
    if body:
        message += "\0" + encode_body(body)

    mac = HMAC.new(credentials.api_secret.encode("utf-8"), digestmod=SHA256)
    mac.update(message.encode("utf-8"))
    return f"{credentials.api_key}:{mac.hexdigest()}"


def build_auth_headers(
    credentials: Credentials,
    method: str,
    endpoint: str,
    timestamp_ms: int,
    nonce: str,
    query: Optional[Union[str, Mapping[str, Any]]] = None,
    body: Optional[Any] = None,
    lang: str = DEFAULT_LANG,
) -> Dict[str, str]:
    """Header set expected by the NiceHash API for a signed call."""

    return {
        "X-Time": str(timestamp_ms),
        "X-Nonce": nonce,
        "X-Organization-Id": credentials.organization_id,
        "X-Request-Id": nonce,
        "X-User-Agent": USER_AGENT,
        "X-User-Lang": lang,
        "X-Auth": create_signature(method, endpoint, timestamp_ms, nonce, credentials, query=query, body=body),
    }


def send_request_and_receive(
    url: str,
    headers: Mapping[str, str],
    timeout: float = DEFAULT_TIMEOUT,
    session: Optional[requests.Session] = None,
) -> dict:
    """
    GET url and return the parsed JSON body.
    Any failure (network, non-2xx, non-JSON) raises RemoteAPIError;
    the message carries the URL and status only, never the headers.
    """

    http = session if session is not None else requests
    try:
        resp = http.get(url, headers=dict(headers), timeout=timeout)
    except requests.RequestException as exc:
        raise RemoteAPIError(f"Request to {url} failed: {exc.__class__.__name__}") from exc

    if not 200 <= resp.status_code < 300:
        raise RemoteAPIError(f"{url} returned HTTP {resp.status_code}", status_code=resp.status_code)
    try:
        data = resp.json()
    except ValueError as exc:
        raise RemoteAPIError(f"{url} returned malformed JSON", status_code=resp.status_code) from exc
    if not isinstance(data, dict):
        raise RemoteAPIError(f"{url} returned unexpected payload type {type(data).__name__}", status_code=resp.status_code)
    return data


def get_rigs(
    config: AppConfig,
    nonce_source: Callable[[], str] = generate_nonce,
    clock: Callable[[], int] = now_ms,
    session: Optional[requests.Session] = None,
) -> dict:
    """Fetch mining rig status (rigs2) with a freshly signed request."""

    timestamp = clock()
    nonce = nonce_source()
    headers = build_auth_headers(config.credentials, "GET", RIGS_ENDPOINT, timestamp, nonce, lang=config.lang)
    url = config.api_host.rstrip("/") + RIGS_ENDPOINT
    logger.debug("GET %s (request id %s)", url, nonce)
    data = send_request_and_receive(url, headers, timeout=config.timeout, session=session)
    logger.debug("Received %d rigs", len(data.get("miningRigs") or []))
    return data


__all__ = [
    "APP_NAME",
    "APP_VERSION",
    "RIGS_ENDPOINT",
    "USER_AGENT",
    "RemoteAPIError",
    "build_auth_headers",
    "create_signature",
    "encode_body",
    "encode_query",
    "generate_nonce",
    "get_rigs",
    "now_ms",
    "send_request_and_receive",
]
