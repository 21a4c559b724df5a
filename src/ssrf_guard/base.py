"""
Base data structures for SSRF validation.
"""

import ipaddress
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from config import DNS_TIMEOUT_MS, MAX_DNS_TIMEOUT_MS
from utils.constants import DEFAULT_PORTS

logger = logging.getLogger('urlgate.ssrf')

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


class Classification(Enum):
    """Why an address range is off limits."""
    LOOPBACK = "loopback"
    PRIVATE = "private"
    LINK_LOCAL = "link_local"
    CLOUD_METADATA = "cloud_metadata"
    RESERVED = "reserved"
    MULTICAST = "multicast"
    TEST_NET = "test_net"
    BROADCAST = "broadcast"


class BlockCategory(Enum):
    """Stable reason categories callers can branch on."""
    MALFORMED_URL = "MalformedURL"
    DISALLOWED_PROTOCOL = "DisallowedProtocol"
    BLOCKED_HOSTNAME_PATTERN = "BlockedHostnamePattern"
    PRIVATE_OR_RESERVED_IP = "PrivateOrReservedIPAddress"
    DNS_RESOLUTION_FAILURE = "DNSResolutionFailure"
    RESOLVES_TO_PRIVATE_IP = "HostnameResolvesToPrivateIP"
    INTERNAL_ERROR = "InternalError"


class Verdict(Enum):
    """Outcome of a single validation phase."""
    PASS = "pass"
    BLOCKED = "blocked"
    UNDETERMINED = "undetermined"


def format_reason(category: BlockCategory, detail: Optional[str] = None) -> str:
    """Render a category and optional detail as e.g. 'HostnameResolvesToPrivateIP(10.0.0.5)'."""
    if detail:
        return f"{category.value}({detail})"
    return category.value


@dataclass(frozen=True)
class PhaseResult:
    """
    Tri-state result returned by every validation phase.

    Attributes:
        verdict: pass, blocked or undetermined
        category: Block category when verdict is BLOCKED
        detail: Extra context for the reason string (classification, address)
    """
    verdict: Verdict
    category: Optional[BlockCategory] = None
    detail: Optional[str] = None

    @classmethod
    def passed(cls) -> 'PhaseResult':
        return cls(Verdict.PASS)

    @classmethod
    def undetermined(cls) -> 'PhaseResult':
        return cls(Verdict.UNDETERMINED)

    @classmethod
    def blocked(cls, category: BlockCategory, detail: Optional[str] = None) -> 'PhaseResult':
        return cls(Verdict.BLOCKED, category, detail)

    @property
    def is_blocked(self) -> bool:
        return self.verdict is Verdict.BLOCKED

    @property
    def reason(self) -> Optional[str]:
        if self.category is None:
            return None
        return format_reason(self.category, self.detail)


@dataclass(frozen=True)
class CIDRRange:
    """
    An IPv4 or IPv6 network stored as integers for bit-mask matching.

    Attributes:
        family: 4 or 6
        base: Network base address as an integer
        prefix_length: Number of leading bits that must match
        classification: Why addresses in this range are blocked
    """
    family: int
    base: int
    prefix_length: int
    classification: Classification

    @property
    def bits(self) -> int:
        return 32 if self.family == 4 else 128

    @property
    def mask(self) -> int:
        """Top-prefix_length-bits-set mask of the family's width."""
        width = self.bits
        return ((1 << width) - 1) ^ ((1 << (width - self.prefix_length)) - 1)

    def contains(self, address: IPAddress) -> bool:
        if address.version != self.family:
            return False
        mask = self.mask
        return (int(address) & mask) == (self.base & mask)

    @classmethod
    def from_cidr(cls, cidr: str, classification: Classification) -> 'CIDRRange':
        """Build from 'address/prefix' notation. Host bits in the base are ignored."""
        network = ipaddress.ip_network(cidr.strip(), strict=False)
        return cls(
            family=network.version,
            base=int(network.network_address),
            prefix_length=network.prefixlen,
            classification=classification,
        )

    def __str__(self) -> str:
        address = ipaddress.ip_address(self.base) if self.family == 4 else ipaddress.IPv6Address(self.base)
        return f"{address}/{self.prefix_length}"


@dataclass(frozen=True)
class HostnameRule:
    """Textual hostname block: exact value or domain suffix (value starts with '.')."""
    kind: str  # "exact" or "suffix"
    value: str

    def matches(self, hostname: str) -> bool:
        if self.kind == 'exact':
            return hostname == self.value
        return hostname.endswith(self.value)

    @classmethod
    def parse(cls, text: str) -> Optional['HostnameRule']:
        """Parse a configured entry: '.corp' or '*.corp' is a suffix rule, anything else exact."""
        value = text.strip().lower()
        if value.startswith('*.'):
            value = value[1:]
        value = value.rstrip('.')
        if not value:
            return None
        if value.startswith('.'):
            return cls('suffix', value)
        return cls('exact', value)


@dataclass(frozen=True)
class NormalizedURL:
    """
    Canonical form of a validated URL.

    hostname is lower-cased, IDNA-encoded and free of a trailing dot;
    path, query and userinfo keep their original casing.
    """
    scheme: str
    hostname: str
    port: Optional[int]
    path: str
    query: str = ''
    fragment: str = ''
    userinfo: str = ''

    @property
    def is_ip_literal(self) -> bool:
        try:
            ipaddress.ip_address(self.hostname)
        except ValueError:
            return False
        return True

    @property
    def effective_port(self) -> int:
        return self.port if self.port is not None else DEFAULT_PORTS.get(self.scheme, 80)

    @property
    def netloc(self) -> str:
        host = f"[{self.hostname}]" if ':' in self.hostname else self.hostname
        if self.port is not None and self.port != DEFAULT_PORTS.get(self.scheme):
            host = f"{host}:{self.port}"
        if self.userinfo:
            return f"{self.userinfo}@{host}"
        return host

    def geturl(self) -> str:
        """Rebuild the URL the caller should fetch."""
        url = f"{self.scheme}://{self.netloc}{self.path or '/'}"
        if self.query:
            url += f"?{self.query}"
        if self.fragment:
            url += f"#{self.fragment}"
        return url

    def __str__(self) -> str:
        return self.geturl()


@dataclass(frozen=True)
class Decision:
    """
    Result of a validation call. The only type crossing the module boundary.

    Attributes:
        safe: True only when every phase passed
        reason: Categorized reason string when blocked
        category: Block category when blocked
        url: Normalized URL, set only when safe
        resolved_addresses: Addresses checked in the DNS layer (empty when skipped)
    """
    safe: bool
    reason: Optional[str] = None
    category: Optional[BlockCategory] = None
    url: Optional[NormalizedURL] = None
    resolved_addresses: Tuple[str, ...] = ()

    @property
    def normalized_url(self) -> Optional[str]:
        return self.url.geturl() if self.url is not None else None

    @classmethod
    def allow(cls, url: NormalizedURL, addresses: Tuple[str, ...] = ()) -> 'Decision':
        return cls(safe=True, url=url, resolved_addresses=addresses)

    @classmethod
    def block(cls, category: BlockCategory, detail: Optional[str] = None) -> 'Decision':
        return cls(safe=False, reason=format_reason(category, detail), category=category)

    @classmethod
    def from_phase(cls, result: PhaseResult) -> 'Decision':
        return cls.block(result.category, result.detail)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'safe': self.safe,
            'reason': self.reason,
            'category': self.category.value if self.category else None,
            'normalizedUrl': self.normalized_url,
            'resolvedAddresses': list(self.resolved_addresses),
        }


def _parse_timeout_ms(raw: Optional[str]) -> int:
    if raw is None or not raw.strip():
        return DNS_TIMEOUT_MS
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Invalid SSRF_DNS_TIMEOUT_MS {raw!r}, using {DNS_TIMEOUT_MS}ms")
        return DNS_TIMEOUT_MS
    if value <= 0:
        logger.warning(f"Non-positive SSRF_DNS_TIMEOUT_MS {value}, using {DNS_TIMEOUT_MS}ms")
        return DNS_TIMEOUT_MS
    return min(value, MAX_DNS_TIMEOUT_MS)


def _parse_range_entry(entry: str) -> Optional[CIDRRange]:
    cidr, _, label = entry.partition('=')
    try:
        classification = Classification(label.strip().lower()) if label.strip() else Classification.RESERVED
        return CIDRRange.from_cidr(cidr, classification)
    except ValueError as e:
        logger.warning(f"Skipping invalid blocked range {entry!r}: {e}")
        return None


@dataclass(frozen=True)
class GuardConfig:
    """
    Validator configuration.

    Environment variables (read by from_env):
        SSRF_DNS_TIMEOUT_MS: DNS resolution timeout. Default: 3000
        SSRF_EXTRA_BLOCKED_HOSTNAMES: Comma-separated hostnames; '.corp' or '*.corp' blocks a suffix
        SSRF_EXTRA_BLOCKED_RANGES: Comma-separated CIDRs, optionally 'cidr=classification'
    """
    dns_timeout_ms: int = DNS_TIMEOUT_MS
    extra_blocked_hostnames: Tuple[str, ...] = ()
    extra_blocked_ranges: Tuple[CIDRRange, ...] = field(default_factory=tuple)

    @property
    def dns_timeout(self) -> float:
        """DNS timeout in seconds."""
        return self.dns_timeout_ms / 1000.0

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'GuardConfig':
        env = os.environ if environ is None else environ

        hostnames = tuple(
            h.strip() for h in env.get('SSRF_EXTRA_BLOCKED_HOSTNAMES', '').split(',') if h.strip()
        )

        ranges = []
        for entry in env.get('SSRF_EXTRA_BLOCKED_RANGES', '').split(','):
            if not entry.strip():
                continue
            parsed = _parse_range_entry(entry)
            if parsed is not None:
                ranges.append(parsed)

        return cls(
            dns_timeout_ms=_parse_timeout_ms(env.get('SSRF_DNS_TIMEOUT_MS')),
            extra_blocked_hostnames=hostnames,
            extra_blocked_ranges=tuple(ranges),
        )
