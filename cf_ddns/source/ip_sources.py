"""
IP source module for CF-DDNS.

This module is responsible for asking public IP echo services for the host's
external IPv4 address.
"""

import asyncio
import ipaddress
import logging
from typing import Callable, List

import httpx

from cf_ddns.errors import IpParseError
from cf_ddns.models.models import IpSourceResult

DEFAULT_TIMEOUT = 2.0


def is_valid_ipv4(ip: str) -> bool:
    """
    Check whether a string is a dotted-quad IPv4 address.

    Args:
        ip: Candidate address

    Returns:
        bool: True if ``ip`` is four decimal octets in [0, 255]
    """
    if not isinstance(ip, str) or ip != ip.strip():
        return False
    try:
        ipaddress.IPv4Address(ip)
    except ValueError:
        return False
    return True


def parse_plain(body: str) -> str:
    """The whole trimmed body is the address."""
    return body.strip()


def parse_cloudflare_trace(body: str) -> str:
    """
    Extract the address from a ``/cdn-cgi/trace`` listing.

    Args:
        body: Newline separated ``key=value`` pairs

    Returns:
        str: Value of the ``ip`` key

    Raises:
        IpParseError: If no ``ip=`` line is present
    """
    for line in body.strip().splitlines():
        line = line.strip()
        if line.startswith("ip="):
            return line[len("ip="):].strip()
    raise IpParseError("parse")


class IpSource:
    """
    A single IP echo endpoint.
    """

    def __init__(
        self,
        name: str,
        url: str,
        parser: Callable[[str], str] = parse_plain,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """
        Initialize an IpSource.

        Args:
            name: Short name used in logs
            url: Endpoint to GET
            parser: Turns the response body into an address string
            timeout: Hard wall-clock limit for the whole request in seconds
        """
        self.name = name
        self.url = url
        self.parser = parser
        self.timeout = timeout
        self.logger = logging.getLogger("cf-ddns.source")

    async def fetch(self, client: httpx.AsyncClient) -> IpSourceResult:
        """
        Ask the endpoint for the public address. Never raises for network
        or parse problems.

        Args:
            client: Shared HTTP client

        Returns:
            IpSourceResult: OK, INVALID or FAILURE
        """
        try:
            body = await asyncio.wait_for(self._get(client), self.timeout)
        except asyncio.TimeoutError:
            return IpSourceResult.failure(self.name, "timeout")
        except httpx.TimeoutException:
            return IpSourceResult.failure(self.name, "timeout")
        except httpx.HTTPStatusError as e:
            return IpSourceResult.failure(
                self.name, f"HTTP {e.response.status_code}"
            )
        except httpx.HTTPError as e:
            return IpSourceResult.failure(self.name, f"{type(e).__name__}: {e}")

        try:
            ip = self.parser(body)
        except IpParseError:
            return IpSourceResult.failure(self.name, "parse")

        if is_valid_ipv4(ip):
            return IpSourceResult.ok(self.name, ip)
        return IpSourceResult.invalid(self.name, ip)

    async def _get(self, client: httpx.AsyncClient) -> str:
        response = await client.get(self.url, timeout=self.timeout)
        response.raise_for_status()
        return response.text.strip()

    def __repr__(self) -> str:
        return f"IpSource({self.name!r}, {self.url!r})"


def default_sources(timeout: float = DEFAULT_TIMEOUT) -> List[IpSource]:
    """
    Echo services run by independent operators.

    Args:
        timeout: Per-request timeout in seconds

    Returns:
        List[IpSource]: Sources in a fixed order
    """
    return [
        IpSource("ipify", "https://api4.ipify.org", timeout=timeout),
        IpSource("icanhazip", "https://ipv4.icanhazip.com", timeout=timeout),
        IpSource("ipinfo", "https://ipinfo.io/ip", timeout=timeout),
        IpSource("seeip", "https://ipv4.seeip.org", timeout=timeout),
        IpSource("ipapi.co", "https://ipapi.co/ip", timeout=timeout),
        IpSource("myip.wtf", "https://myip.wtf/text", timeout=timeout),
        IpSource(
            "cloudflare",
            "https://cloudflare.com/cdn-cgi/trace",
            parser=parse_cloudflare_trace,
            timeout=timeout,
        ),
        IpSource("ifconfig.me", "https://ifconfig.me/ip", timeout=timeout),
        IpSource("ip.me", "https://ip.me", timeout=timeout),
    ]
