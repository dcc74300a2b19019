"""
Cloudflare provider module for CF-DDNS.

This module is responsible for interfacing with the Cloudflare API to read and
update A records in a single zone.
"""

import logging
from typing import Any, Dict, List, Optional

import cloudflare
import httpx
from pydantic import BaseModel, Field, ValidationError

from cf_ddns.errors import (
    ProviderAPIError,
    ProviderError,
    TransportError,
    UnknownProviderError,
)
from cf_ddns.models.models import DnsRecord

API_BASE_URL = "https://api.cloudflare.com/client/v4"
GLOBAL_API_KEY_LENGTH = 37
HEX_DIGITS = frozenset("0123456789abcdefABCDEF")
CREDENTIAL_HEADERS = (
    "X-Auth-Email",
    "X-Auth-Key",
    "Authorization",
    "X-Auth-User-Service-Key",
)


class ResponseMessage(BaseModel):
    code: int = 0
    message: str = ""


class ResponseEnvelope(BaseModel):
    """The ``{success, errors, result}`` wrapper around every API reply."""

    success: bool
    errors: List[ResponseMessage] = Field(default_factory=list)
    result: Any = None


class RecordPayload(BaseModel):
    id: str
    name: str
    content: str
    proxied: bool = False
    ttl: int

    def to_record(self) -> DnsRecord:
        return DnsRecord(
            id=self.id,
            name=self.name,
            content=self.content,
            proxied=self.proxied,
            ttl=self.ttl,
        )


def is_global_api_key(credential: str) -> bool:
    """
    Check whether a credential looks like a legacy Global API Key.

    Args:
        credential: API key or API token

    Returns:
        bool: True for 37 hex digits, False for anything else
    """
    return len(credential) == GLOBAL_API_KEY_LENGTH and all(
        c in HEX_DIGITS for c in credential
    )


def auth_headers(auth_email: str, auth_credential: str) -> Dict[str, str]:
    """
    Build the authentication headers for a credential.

    Args:
        auth_email: Cloudflare account email
        auth_credential: Global API Key or API Token

    Returns:
        Dict[str, str]: ``X-Auth-Email`` plus either ``X-Auth-Key`` or a
        Bearer ``Authorization`` header
    """
    if is_global_api_key(auth_credential):
        return {"X-Auth-Email": auth_email, "X-Auth-Key": auth_credential}
    return {"X-Auth-Email": auth_email, "Authorization": f"Bearer {auth_credential}"}


class ConfiguredAuthCloudflare(cloudflare.AsyncCloudflare):
    """
    AsyncCloudflare client that sends exactly the credential headers it was
    built with.

    The stock client fills missing credentials from ``CLOUDFLARE_API_KEY``,
    ``CLOUDFLARE_API_TOKEN`` and ``CLOUDFLARE_EMAIL``; those are ignored here.
    """

    def __init__(self, *, credential_headers: Dict[str, str], **kwargs: Any):
        self._credential_headers = dict(credential_headers)
        super().__init__(**kwargs)
        self.api_token = None
        self.api_key = None
        self.api_email = None
        self.user_service_key = None

    @property
    def auth_headers(self) -> Dict[str, str]:
        return dict(self._credential_headers)

    @property
    def default_headers(self) -> Dict[str, Any]:
        headers = dict(super().default_headers)
        for name in CREDENTIAL_HEADERS:
            headers[name] = self._credential_headers.get(name, cloudflare.Omit())
        return headers


class CloudflareProvider:
    """
    Provider that interfaces with the Cloudflare API.
    """

    def __init__(
        self,
        auth_email: str,
        auth_credential: str,
        zone_id: str,
        http_client: Optional[httpx.AsyncClient] = None,
        base_url: str = API_BASE_URL,
        timeout: float = 10.0,
    ):
        """
        Initialize a CloudflareProvider.

        Args:
            auth_email: Cloudflare account email
            auth_credential: Global API Key or API Token
            zone_id: Zone holding the managed records
            http_client: Optional httpx client handed to the SDK
            base_url: API base URL
            timeout: Request timeout in seconds
        """
        self.auth_email = auth_email
        self.auth_credential = auth_credential
        self.zone_id = zone_id
        self.logger = logging.getLogger("cf-ddns.provider.cloudflare")

        self.auth_mode = (
            "global-api-key" if is_global_api_key(auth_credential) else "api-token"
        )
        headers = auth_headers(auth_email, auth_credential)

        # Retries are left to the next reconciliation cycle
        client_args: Dict[str, Any] = {
            "base_url": base_url,
            "max_retries": 0,
            "timeout": timeout,
            "default_headers": headers,
        }
        if http_client is not None:
            client_args["http_client"] = http_client

        self.cf = ConfiguredAuthCloudflare(credential_headers=headers, **client_args)
        self.logger.debug(f"Using {self.auth_mode} authentication")

    async def get_record(self, record_name: str) -> Optional[DnsRecord]:
        """
        Look up the A record with the given name.

        Args:
            record_name: Fully qualified record name

        Returns:
            Optional[DnsRecord]: First matching record, or None if there is none

        Raises:
            ProviderError: If the request or the API call fails
        """
        self.logger.debug(f"Fetching DNS record for {record_name}")
        envelope = await self._request(
            "get",
            f"/zones/{self.zone_id}/dns_records",
            params={"type": "A", "name": record_name},
        )

        records = envelope.result or []
        if not isinstance(records, list):
            raise TransportError(f"unexpected result type {type(records).__name__}")
        if not records:
            return None

        try:
            return RecordPayload.model_validate(records[0]).to_record()
        except ValidationError as e:
            raise TransportError(f"malformed DNS record: {e}", e) from e

    async def update_record(self, record: DnsRecord, new_ip: str) -> None:
        """
        Replace a record's content, keeping its name, proxied flag and TTL.

        Args:
            record: Record as returned by ``get_record``
            new_ip: New IPv4 address

        Raises:
            ProviderError: If the request or the API call fails
        """
        self.logger.debug(f"Updating DNS record {record.name} with IP {new_ip}")
        await self._request(
            "put",
            f"/zones/{self.zone_id}/dns_records/{record.id}",
            body=record.update_payload(new_ip),
        )

    async def close(self) -> None:
        await self.cf.close()

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, str]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> ResponseEnvelope:
        try:
            if method == "get":
                response = await self.cf.get(
                    path, cast_to=httpx.Response, options={"params": params or {}}
                )
            else:
                response = await self.cf.put(path, cast_to=httpx.Response, body=body)
            payload = response.json()
        # Non-2xx replies still carry the envelope
        except cloudflare.APIStatusError as e:
            self.logger.debug(f"Cloudflare returned HTTP {e.status_code} for {path}")
            raise self._status_error(e) from e
        except cloudflare.APITimeoutError as e:
            raise TransportError("timeout", e) from e
        except cloudflare.APIConnectionError as e:
            raise TransportError(str(e), e) from e
        except ValueError as e:
            raise TransportError(f"invalid JSON response: {e}", e) from e

        envelope = self._parse_envelope(payload)
        if not envelope.success:
            raise self._envelope_error(envelope)
        return envelope

    @staticmethod
    def _parse_envelope(payload: Any) -> ResponseEnvelope:
        try:
            return ResponseEnvelope.model_validate(payload)
        except ValidationError as e:
            raise TransportError(f"malformed response envelope: {e}", e) from e

    @staticmethod
    def _envelope_error(envelope: ResponseEnvelope) -> ProviderError:
        if envelope.errors:
            first = envelope.errors[0]
            return ProviderAPIError(first.message, first.code)
        return UnknownProviderError()

    def _status_error(self, error: "cloudflare.APIStatusError") -> ProviderError:
        if isinstance(error.body, dict):
            try:
                envelope = ResponseEnvelope.model_validate(error.body)
            except ValidationError:
                envelope = None
            if envelope is not None and not envelope.success:
                return self._envelope_error(envelope)
        return TransportError(f"HTTP {error.status_code}", error)
