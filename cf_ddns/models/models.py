"""
Data models for CF-DDNS.
"""

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


class Outcome(enum.Enum):
    """Outcome of a single IP echo request."""

    OK = "ok"
    INVALID = "invalid"
    FAILURE = "failure"


@dataclass(frozen=True)
class IpSourceResult:
    """
    Result of asking one IP echo service for the public address.

    ``value`` holds the IPv4 for OK, the raw body for INVALID, and the
    failure cause for FAILURE.
    """

    source_name: str
    outcome: Outcome
    value: str

    @classmethod
    def ok(cls, source_name: str, ip: str) -> "IpSourceResult":
        return cls(source_name, Outcome.OK, ip)

    @classmethod
    def invalid(cls, source_name: str, raw: str) -> "IpSourceResult":
        return cls(source_name, Outcome.INVALID, raw)

    @classmethod
    def failure(cls, source_name: str, cause: str) -> "IpSourceResult":
        return cls(source_name, Outcome.FAILURE, cause)

    @property
    def ip(self) -> Optional[str]:
        return self.value if self.outcome is Outcome.OK else None


@dataclass(frozen=True)
class DnsRecord:
    """
    An A record as stored by the provider.

    ``proxied`` and ``ttl`` are carried so updates can write them back unchanged.
    """

    id: str
    name: str
    content: str
    proxied: bool
    ttl: int
    record_type: str = "A"

    def update_payload(self, new_ip: str) -> Dict[str, Any]:
        """
        Build the body for replacing this record's content.

        Args:
            new_ip: Address to write

        Returns:
            Dict[str, Any]: JSON body with only ``content`` changed
        """
        return {
            "type": self.record_type,
            "name": self.name,
            "content": new_ip,
            "proxied": self.proxied,
            "ttl": self.ttl,
        }


@dataclass
class ReconcileSummary:
    """
    Record names grouped by what happened to them during one reconcile pass.
    """

    updated: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    def has_failures(self) -> bool:
        return bool(self.missing or self.failed)


@dataclass
class CycleReport:
    """
    Outcome of a single scheduler cycle.

    ``ip`` and ``summary`` are None when no consensus was reached.
    """

    started_at: float
    duration: float
    ip: Optional[str] = None
    summary: Optional[ReconcileSummary] = None

    @property
    def resolved(self) -> bool:
        return self.ip is not None

    def to_dict(self) -> Dict[str, Any]:
        summary = self.summary
        return {
            "started_at": self.started_at,
            "duration": round(self.duration, 3),
            "ip": self.ip,
            "updated": list(summary.updated) if summary else [],
            "unchanged": list(summary.unchanged) if summary else [],
            "missing": list(summary.missing) if summary else [],
            "failed": list(summary.failed) if summary else [],
        }
