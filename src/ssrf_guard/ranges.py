"""
Address range table for SSRF protection.

Classifies a single IP address against the IANA special-purpose registries
using integer bit-masking. When several ranges contain an address the
longest prefix wins, so 169.254.169.254 reports cloud_metadata rather than
link_local.
"""
import ipaddress
import logging
from typing import Iterable, List, Optional, Tuple

from .base import CIDRRange, Classification, IPAddress

logger = logging.getLogger('urlgate.ssrf')

_C = Classification

DEFAULT_RANGES: Tuple[Tuple[str, Classification], ...] = (
    # IPv4
    ('0.0.0.0/8', _C.RESERVED),             # "this network"
    ('10.0.0.0/8', _C.PRIVATE),             # RFC 1918
    ('100.64.0.0/10', _C.PRIVATE),          # carrier-grade NAT
    ('127.0.0.0/8', _C.LOOPBACK),
    ('169.254.0.0/16', _C.LINK_LOCAL),
    ('169.254.169.254/32', _C.CLOUD_METADATA),  # AWS, GCP, Azure IMDS
    ('169.254.170.2/32', _C.CLOUD_METADATA),    # AWS ECS task metadata
    ('168.63.129.16/32', _C.CLOUD_METADATA),    # Azure wire server
    ('172.16.0.0/12', _C.PRIVATE),          # RFC 1918
    ('192.0.0.0/24', _C.RESERVED),          # IETF protocol assignments
    ('192.0.2.0/24', _C.TEST_NET),          # TEST-NET-1
    ('192.88.99.0/24', _C.RESERVED),        # deprecated 6to4 relay anycast
    ('192.168.0.0/16', _C.PRIVATE),         # RFC 1918
    ('198.18.0.0/15', _C.TEST_NET),         # benchmarking
    ('198.51.100.0/24', _C.TEST_NET),       # TEST-NET-2
    ('203.0.113.0/24', _C.TEST_NET),        # TEST-NET-3
    ('224.0.0.0/4', _C.MULTICAST),
    ('240.0.0.0/4', _C.RESERVED),
    ('255.255.255.255/32', _C.BROADCAST),
    # IPv6
    ('::/128', _C.RESERVED),                # unspecified
    ('::1/128', _C.LOOPBACK),
    ('::/96', _C.RESERVED),                 # deprecated IPv4-compatible
    ('64:ff9b:1::/48', _C.RESERVED),        # local-use NAT64 (RFC 8215)
    ('100::/64', _C.RESERVED),              # discard-only
    ('2001::/23', _C.RESERVED),             # IETF protocol assignments
    ('2001:db8::/32', _C.TEST_NET),         # documentation
    ('fc00::/7', _C.PRIVATE),               # unique local
    ('fd00:ec2::254/128', _C.CLOUD_METADATA),   # AWS IMDS over IPv6
    ('fe80::/10', _C.LINK_LOCAL),
    ('fec0::/10', _C.RESERVED),             # deprecated site-local
    ('ff00::/8', _C.MULTICAST),
)

_NAT64_PREFIX = CIDRRange.from_cidr('64:ff9b::/96', Classification.RESERVED)


def embedded_ipv4(address: IPAddress) -> Optional[ipaddress.IPv4Address]:
    """Return the IPv4 address tunnelled inside an IPv6 address, if any.

    Covers IPv4-mapped (::ffff:0:0/96), NAT64 (64:ff9b::/96) and 6to4 (2002::/16).
    """
    if address.version != 6:
        return None
    if address.ipv4_mapped is not None:
        return address.ipv4_mapped
    if _NAT64_PREFIX.contains(address):
        return ipaddress.IPv4Address(int(address) & 0xFFFFFFFF)
    return address.sixtofour


class AddressRangeTable:
    """Read-only table of blocked CIDR ranges."""

    def __init__(self, ranges: Iterable[CIDRRange]):
        # Longest prefix first so the first hit is the most specific
        self._ranges: Tuple[CIDRRange, ...] = tuple(
            sorted(ranges, key=lambda r: r.prefix_length, reverse=True)
        )

    @classmethod
    def default(cls, extra: Iterable[CIDRRange] = ()) -> 'AddressRangeTable':
        ranges: List[CIDRRange] = [CIDRRange.from_cidr(cidr, c) for cidr, c in DEFAULT_RANGES]
        ranges.extend(extra)
        return cls(ranges)

    def __len__(self) -> int:
        return len(self._ranges)

    def __iter__(self):
        return iter(self._ranges)

    def match(self, address: IPAddress) -> Optional[CIDRRange]:
        """Most specific range containing the address, or None."""
        for cidr in self._ranges:
            if cidr.contains(address):
                return cidr
        return None

    def classify(self, address: IPAddress) -> Optional[Classification]:
        """Classify an address; None means undetermined at this layer, not safe.

        An IPv6 address carrying an embedded IPv4 address is classified by the
        IPv6 table first and then by the embedded address.
        """
        hit = self.match(address)
        if hit is not None:
            return hit.classification

        inner = embedded_ipv4(address)
        if inner is not None:
            hit = self.match(inner)
            if hit is not None:
                logger.debug(f"{address} embeds blocked IPv4 {inner} ({hit})")
                return hit.classification
        return None

    def is_blocked(self, address: IPAddress) -> bool:
        return self.classify(address) is not None
