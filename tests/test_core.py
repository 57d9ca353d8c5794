import base64
import re

import pytest
import requests

from nhrigs import core
from nhrigs.config import AppConfig, Credentials
from nhrigs.core import (
    RIGS_ENDPOINT,
    USER_AGENT,
    RemoteAPIError,
    build_auth_headers,
    create_signature,
    encode_body,
    encode_query,
    generate_nonce,
    get_rigs,
    send_request_and_receive,
)

CREDS = Credentials(api_key="K", api_secret="S", organization_id="O")
GOLDEN = "K:dea0e6179a44d9e05da6154a77d3b1319ad99788b9d8a37a0ca141f13491e7de"


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self._text = text

    def json(self):
        if self._text is not None:
            raise ValueError("not json")
        return self._payload


class FakeSession:
    def __init__(self, response=None, exc=None):
        self.response = response
        self.exc = exc
        self.calls = []

    def get(self, url, headers=None, timeout=None):
        self.calls.append({"url": url, "headers": headers, "timeout": timeout})
        if self.exc is not None:
            raise self.exc
        return self.response


def test_create_signature_golden_vector():
    assert create_signature("GET", "/x", 1000, "n", CREDS) == GOLDEN


def test_create_signature_deterministic_and_method_case_insensitive():
    first = create_signature("get", "/x", 1000, "n", CREDS)
    second = create_signature("GET", "/x", 1000, "n", CREDS)
    assert first == second == GOLDEN


def test_create_signature_with_query_and_body():
    token = create_signature("post", "/x", 1000, "n", CREDS, query={"a": 1, "b": "two"}, body={"x": 1})
    assert token == "K:2253c81c3271118e397d2bdd04619217f2efa313cbef4bf8278449aa3bc81477"
    # pre-encoded forms sign identically
    assert create_signature("POST", "/x", 1000, "n", CREDS, query="a=1&b=two", body='{"x":1}') == token


@pytest.mark.parametrize(
    "kwargs",
    [
        {"method": "POST"},
        {"endpoint": "/y"},
        {"timestamp_ms": 1001},
        {"nonce": "m"},
        {"credentials": Credentials(api_key="K", api_secret="S2", organization_id="O")},
        {"credentials": Credentials(api_key="K", api_secret="S", organization_id="P")},
    ],
)
def test_create_signature_changes_with_each_input(kwargs):
    args = {"method": "GET", "endpoint": "/x", "timestamp_ms": 1000, "nonce": "n", "credentials": CREDS}
    args.update(kwargs)
    assert create_signature(**args) != GOLDEN


def test_create_signature_other_secret_vector():
    creds = Credentials(api_key="K", api_secret="S2", organization_id="O")
    token = create_signature("GET", "/x", 1000, "n", creds)
    assert token == "K:5a7fbcd617615ccfab581f8c8596280030635bd9cb7761525447430533a89c4b"


def test_token_format():
    token = create_signature("GET", RIGS_ENDPOINT, 1700000000000, generate_nonce(), CREDS)
    assert re.match(r"^[^:]+:[0-9a-f]{64}$", token)


def test_empty_query_and_body_are_ignored():
    assert create_signature("GET", "/x", 1000, "n", CREDS, query="", body="") == GOLDEN
    assert create_signature("GET", "/x", 1000, "n", CREDS, query={}, body=None) == GOLDEN


def test_encode_query_keeps_mapping_order():
    assert encode_query({"b": 2, "a": "x y"}) == "b=2&a=x%20y"
    assert encode_query({"id": [1, 2]}) == "id=1&id=2"
    assert encode_query("raw=1") == "raw=1"


def test_encode_body_compact_json():
    assert encode_body({"a": [1, 2], "b": "ü"}) == '{"a":[1,2],"b":"ü"}'
    assert encode_body("raw") == "raw"


def test_generate_nonce_is_16_random_bytes():
    first, second = generate_nonce(), generate_nonce()
    assert len(base64.b64decode(first)) == 16
    assert first != second


def test_build_auth_headers():
    headers = build_auth_headers(CREDS, "GET", "/x", 1000, "n")
    assert headers == {
        "X-Time": "1000",
        "X-Nonce": "n",
        "X-Organization-Id": "O",
        "X-Request-Id": "n",
        "X-User-Agent": USER_AGENT,
        "X-User-Lang": "ja",
        "X-Auth": GOLDEN,
    }


def test_get_rigs_signs_request_with_injected_nonce_and_clock():
    config = AppConfig(credentials=CREDS, api_host="https://api.example/", timeout=3)
    session = FakeSession(FakeResponse(payload={"miningRigs": []}))

    data = get_rigs(config, nonce_source=lambda: "n", clock=lambda: 1000, session=session)

    assert data == {"miningRigs": []}
    assert len(session.calls) == 1
    call = session.calls[0]
    assert call["url"] == "https://api.example" + RIGS_ENDPOINT
    assert call["timeout"] == 3
    assert call["headers"]["X-Auth"] == create_signature("GET", RIGS_ENDPOINT, 1000, "n", CREDS)
    assert call["headers"]["X-Request-Id"] == "n"


def test_get_rigs_uses_fresh_nonce_per_call():
    config = AppConfig(credentials=CREDS)
    session = FakeSession(FakeResponse(payload={}))
    get_rigs(config, session=session)
    get_rigs(config, session=session)
    nonces = [c["headers"]["X-Nonce"] for c in session.calls]
    assert nonces[0] != nonces[1]


def test_send_request_non_2xx_raises():
    session = FakeSession(FakeResponse(status_code=401, payload={"error": "x"}))
    with pytest.raises(RemoteAPIError) as excinfo:
        send_request_and_receive("https://api.example/x", {"X-Auth": GOLDEN}, session=session)
    assert excinfo.value.status_code == 401
    assert GOLDEN not in str(excinfo.value)


def test_send_request_network_failure_raises():
    session = FakeSession(exc=requests.ConnectionError("boom"))
    with pytest.raises(RemoteAPIError):
        send_request_and_receive("https://api.example/x", {}, session=session)


def test_send_request_malformed_json_raises():
    session = FakeSession(FakeResponse(text="<html>"))
    with pytest.raises(RemoteAPIError):
        send_request_and_receive("https://api.example/x", {}, session=session)


def test_send_request_uses_requests_by_default(monkeypatch):
    captured = {}

    def fake_get(url, headers=None, timeout=None):
        captured["url"] = url
        captured["timeout"] = timeout
        return FakeResponse(payload={"ok": True})

    monkeypatch.setattr(core.requests, "get", fake_get)
    assert send_request_and_receive("https://api.example/x", {}, timeout=7) == {"ok": True}
    assert captured == {"url": "https://api.example/x", "timeout": 7}
