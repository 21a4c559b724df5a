"""
SSRF guard for outbound URL fetches.

Decides whether a client-supplied URL is safe to fetch from inside a
trusted network: protocol gate, hostname rules, IP range classification
and a DNS rebinding check.
"""

import logging

logger = logging.getLogger('urlgate.ssrf')

# Export main classes
from .base import (
    BlockCategory, CIDRRange, Classification, Decision, GuardConfig,
    HostnameRule, NormalizedURL,
)
from .ranges import AddressRangeTable
from .resolver import DNSResolver, DNSResolutionError
from .validator import (
    URLValidator, get_validator, reset_validator, validate_async, validate_sync,
)

__all__ = [
    'AddressRangeTable',
    'BlockCategory',
    'CIDRRange',
    'Classification',
    'Decision',
    'DNSResolver',
    'DNSResolutionError',
    'GuardConfig',
    'HostnameRule',
    'NormalizedURL',
    'URLValidator',
    'get_validator',
    'reset_validator',
    'validate_async',
    'validate_sync',
]
