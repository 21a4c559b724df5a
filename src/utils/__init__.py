"""Shared utility functions for URL Gate.

This module provides common utilities used across the codebase:
- url: Raising wrapper around the SSRF validator (import utils.url directly)
- constants: Allowed schemes and blocked hostname sets
"""

from utils.constants import (
    ALLOWED_URL_SCHEMES, KNOWN_DANGEROUS_SCHEMES, DEFAULT_PORTS,
    BLOCKED_HOSTNAMES, BLOCKED_HOSTNAME_SUFFIXES,
)

__all__ = [
    'ALLOWED_URL_SCHEMES',
    'KNOWN_DANGEROUS_SCHEMES',
    'DEFAULT_PORTS',
    'BLOCKED_HOSTNAMES',
    'BLOCKED_HOSTNAME_SUFFIXES',
]
