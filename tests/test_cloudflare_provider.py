"""Unit tests for CloudflareProvider.

Requests go through the Cloudflare SDK into an ``httpx.MockTransport`` so the
exact URLs, headers and bodies on the wire can be checked.
"""

import json
from typing import Callable, List

import httpx
import pytest

from cf_ddns.errors import ProviderAPIError, TransportError, UnknownProviderError
from cf_ddns.models.models import DnsRecord
from cf_ddns.provider.cloudflare import (
    CloudflareProvider,
    auth_headers,
    is_global_api_key,
)

EMAIL = "ops@example.com"
TOKEN = "abc.def.ghi"
GLOBAL_KEY = "0123456789abcdef0123456789abcdef01234"
# Hex, but 39 characters long, so not a Global API Key
LONG_HEX = "0123456789abcdef0123456789abcdef0123456"
ZONE = "023e105f4ecef8ad9ca31a8372d0c353"
BASE = "https://api.cloudflare.com/client/v4"

RECORD_JSON = {
    "id": "372e67954025e0ba6aaa6d586b9e0b59",
    "name": "a.example.com",
    "type": "A",
    "content": "203.0.113.1",
    "proxied": True,
    "ttl": 120,
    "zone_id": ZONE,
}


def envelope(result=None, success: bool = True, errors=None) -> dict:
    return {
        "success": success,
        "errors": errors or [],
        "messages": [],
        "result": result,
    }


class Recorder:
    """Mock transport handler that records requests and replays responses."""

    def __init__(self, respond: Callable[[httpx.Request], httpx.Response]):
        self.respond = respond
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.respond(request)


def make_provider(recorder: Recorder, credential: str = TOKEN) -> CloudflareProvider:
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(recorder), trust_env=False
    )
    return CloudflareProvider(EMAIL, credential, ZONE, http_client=client)


def json_response(status: int, body: dict) -> Callable[[httpx.Request], httpx.Response]:
    return lambda request: httpx.Response(status, json=body)


class TestAuthSelection:
    """Tests for choosing between Global API Key and API Token headers."""

    def test_is_global_api_key(self) -> None:
        assert is_global_api_key(GLOBAL_KEY) is True
        assert is_global_api_key(GLOBAL_KEY.upper()) is True
        assert is_global_api_key(TOKEN) is False
        assert is_global_api_key(GLOBAL_KEY[:-1]) is False
        assert is_global_api_key(GLOBAL_KEY + "0") is False
        assert is_global_api_key("g" * 37) is False

    @pytest.mark.asyncio
    async def test_global_key_sends_x_auth_key(self) -> None:
        recorder = Recorder(json_response(200, envelope([])))
        provider = make_provider(recorder, GLOBAL_KEY)

        await provider.get_record("a.example.com")

        headers = recorder.requests[0].headers
        assert headers["X-Auth-Email"] == EMAIL
        assert headers["X-Auth-Key"] == GLOBAL_KEY
        assert "Authorization" not in headers
        assert provider.auth_mode == "global-api-key"

    @pytest.mark.asyncio
    async def test_token_sends_bearer_authorization(self) -> None:
        recorder = Recorder(json_response(200, envelope([])))
        provider = make_provider(recorder, TOKEN)

        await provider.get_record("a.example.com")

        headers = recorder.requests[0].headers
        assert headers["Authorization"] == f"Bearer {TOKEN}"
        assert headers["X-Auth-Email"] == EMAIL
        assert "X-Auth-Key" not in headers
        assert provider.auth_mode == "api-token"

    def test_auth_headers(self) -> None:
        assert auth_headers(EMAIL, GLOBAL_KEY) == {
            "X-Auth-Email": EMAIL,
            "X-Auth-Key": GLOBAL_KEY,
        }
        assert auth_headers(EMAIL, TOKEN) == {
            "X-Auth-Email": EMAIL,
            "Authorization": f"Bearer {TOKEN}",
        }

    @pytest.mark.asyncio
    async def test_39_char_hex_credential_is_sent_as_bearer(self) -> None:
        recorder = Recorder(json_response(200, envelope([])))
        provider = make_provider(recorder, LONG_HEX)

        await provider.get_record("a.example.com")

        headers = recorder.requests[0].headers
        assert is_global_api_key(LONG_HEX) is False
        assert headers["Authorization"] == f"Bearer {LONG_HEX}"
        assert "X-Auth-Key" not in headers
        assert provider.auth_mode == "api-token"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "credential, expected",
        [
            (TOKEN, {"x-auth-email": EMAIL, "authorization": f"Bearer {TOKEN}"}),
            (GLOBAL_KEY, {"x-auth-email": EMAIL, "x-auth-key": GLOBAL_KEY}),
        ],
    )
    async def test_environment_credentials_are_ignored(
        self, monkeypatch: pytest.MonkeyPatch, credential: str, expected: dict
    ) -> None:
        monkeypatch.setenv("CLOUDFLARE_API_KEY", "f" * 37)
        monkeypatch.setenv("CLOUDFLARE_API_TOKEN", "env-token")
        monkeypatch.setenv("CLOUDFLARE_EMAIL", "env@example.com")
        monkeypatch.setenv("CLOUDFLARE_API_USER_SERVICE_KEY", "v1.0-env")
        monkeypatch.setenv(
            "CLOUDFLARE_CUSTOM_HEADERS", "X-Auth-Key: from-env\nAuthorization: Bearer from-env"
        )
        recorder = Recorder(json_response(200, envelope([])))
        provider = make_provider(recorder, credential)

        await provider.get_record("a.example.com")

        headers = recorder.requests[0].headers
        sent = {
            name: headers[name]
            for name in (
                "x-auth-email",
                "x-auth-key",
                "authorization",
                "x-auth-user-service-key",
            )
            if name in headers
        }
        assert sent == expected


class TestGetRecord:
    """Tests for looking up a record by name."""

    @pytest.mark.asyncio
    async def test_get_record_queries_by_type_and_name(self) -> None:
        recorder = Recorder(json_response(200, envelope([RECORD_JSON])))
        provider = make_provider(recorder)

        record = await provider.get_record("a.example.com")

        request = recorder.requests[0]
        assert request.method == "GET"
        assert str(request.url).startswith(f"{BASE}/zones/{ZONE}/dns_records")
        assert request.url.params["type"] == "A"
        assert request.url.params["name"] == "a.example.com"
        assert record == DnsRecord(
            id=RECORD_JSON["id"],
            name="a.example.com",
            content="203.0.113.1",
            proxied=True,
            ttl=120,
        )

    @pytest.mark.asyncio
    async def test_get_record_returns_first_match(self) -> None:
        second = dict(RECORD_JSON, id="second", content="198.51.100.2")
        recorder = Recorder(json_response(200, envelope([RECORD_JSON, second])))

        record = await make_provider(recorder).get_record("a.example.com")

        assert record is not None
        assert record.id == RECORD_JSON["id"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("result", [[], None])
    async def test_get_record_returns_none_when_missing(self, result) -> None:
        recorder = Recorder(json_response(200, envelope(result)))

        assert await make_provider(recorder).get_record("gone.example.com") is None

    @pytest.mark.asyncio
    async def test_unsuccessful_envelope_raises_api_error(self) -> None:
        body = envelope(
            None, success=False, errors=[{"code": 9109, "message": "Invalid access token"}]
        )
        recorder = Recorder(json_response(200, body))

        with pytest.raises(ProviderAPIError) as excinfo:
            await make_provider(recorder).get_record("a.example.com")

        assert excinfo.value.code == 9109
        assert excinfo.value.message == "Invalid access token"
        assert "Invalid access token" in str(excinfo.value)
        assert "9109" in str(excinfo.value)

    @pytest.mark.asyncio
    async def test_error_status_with_envelope_raises_api_error(self) -> None:
        body = envelope(
            None,
            success=False,
            errors=[
                {"code": 10000, "message": "Authentication error"},
                {"code": 10001, "message": "ignored"},
            ],
        )
        recorder = Recorder(json_response(403, body))

        with pytest.raises(ProviderAPIError) as excinfo:
            await make_provider(recorder).get_record("a.example.com")

        assert excinfo.value.code == 10000
        assert excinfo.value.message == "Authentication error"
        assert len(recorder.requests) == 1

    @pytest.mark.asyncio
    async def test_unsuccessful_envelope_without_errors_is_unknown(self) -> None:
        recorder = Recorder(json_response(200, envelope(None, success=False)))

        with pytest.raises(UnknownProviderError):
            await make_provider(recorder).get_record("a.example.com")

    @pytest.mark.asyncio
    async def test_connection_failure_raises_transport_error(self) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused", request=request)

        recorder = Recorder(refuse)

        with pytest.raises(TransportError):
            await make_provider(recorder).get_record("a.example.com")

        assert len(recorder.requests) == 1

    @pytest.mark.asyncio
    async def test_non_json_body_raises_transport_error(self) -> None:
        recorder = Recorder(lambda request: httpx.Response(200, text="<html>oops</html>"))

        with pytest.raises(TransportError):
            await make_provider(recorder).get_record("a.example.com")

    @pytest.mark.asyncio
    async def test_server_error_without_envelope_raises_transport_error(self) -> None:
        recorder = Recorder(lambda request: httpx.Response(502, text="Bad Gateway"))

        with pytest.raises(TransportError) as excinfo:
            await make_provider(recorder).get_record("a.example.com")

        assert "502" in str(excinfo.value)
        assert len(recorder.requests) == 1

    @pytest.mark.asyncio
    async def test_malformed_record_raises_transport_error(self) -> None:
        broken = {"id": "x", "name": "a.example.com"}
        recorder = Recorder(json_response(200, envelope([broken])))

        with pytest.raises(TransportError):
            await make_provider(recorder).get_record("a.example.com")


class TestUpdateRecord:
    """Tests for replacing a record's content."""

    @pytest.mark.asyncio
    async def test_update_preserves_name_proxied_and_ttl(self) -> None:
        recorder = Recorder(json_response(200, envelope(dict(RECORD_JSON, content="203.0.113.7"))))
        provider = make_provider(recorder)
        record = DnsRecord(
            id=RECORD_JSON["id"],
            name="a.example.com",
            content="203.0.113.1",
            proxied=True,
            ttl=120,
        )

        await provider.update_record(record, "203.0.113.7")

        request = recorder.requests[0]
        assert request.method == "PUT"
        assert str(request.url) == f"{BASE}/zones/{ZONE}/dns_records/{record.id}"
        assert json.loads(request.content) == {
            "type": "A",
            "name": "a.example.com",
            "content": "203.0.113.7",
            "proxied": True,
            "ttl": 120,
        }

    @pytest.mark.asyncio
    async def test_update_failure_raises_api_error(self) -> None:
        body = envelope(
            None, success=False, errors=[{"code": 81057, "message": "Record already exists."}]
        )
        recorder = Recorder(json_response(400, body))
        record = DnsRecord("id1", "a.example.com", "203.0.113.1", False, 1)

        with pytest.raises(ProviderAPIError) as excinfo:
            await make_provider(recorder).update_record(record, "203.0.113.7")

        assert excinfo.value.code == 81057
