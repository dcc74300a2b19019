"""
Exception types for CF-DDNS.

Provider methods raise these; the reconciler and controller catch and log them.
"""

from typing import Optional


class CfDdnsError(Exception):
    """Base class for all CF-DDNS errors."""


class ConfigError(CfDdnsError):
    """
    Raised when startup configuration is missing or invalid.

    Fatal: the process exits before the reconciliation loop starts.
    """


class IpParseError(CfDdnsError):
    """Raised when an IP echo response does not contain an address."""


class ProviderError(CfDdnsError):
    """Base class for failures talking to the DNS provider."""


class ProviderAPIError(ProviderError):
    """
    The provider answered with ``success: false``.

    Carries the first error message and its numeric code from the envelope.
    """

    def __init__(self, message: str, code: int):
        super().__init__(message, code)
        self.message = message
        self.code = code

    def __str__(self) -> str:
        return f"Cloudflare API error: {self.message} (code: {self.code})"


class UnknownProviderError(ProviderError):
    """The provider reported failure without any error details."""

    def __str__(self) -> str:
        return "Unknown provider error"


class TransportError(ProviderError):
    """Connection, TLS, timeout or body-decode failure."""

    def __init__(self, cause: str, original: Optional[BaseException] = None):
        super().__init__(cause)
        self.cause = cause
        self.original = original

    def __str__(self) -> str:
        return f"Request error: {self.cause}"
