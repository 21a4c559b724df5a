"""URL parsing, canonicalization and the protocol gate.

Parsing is deliberately stricter than browsers: anything two URL parsers
could disagree on (backslashes, whitespace, percent-encoded hosts, zone ids)
is rejected as malformed instead of being interpreted.
"""
import ipaddress
import logging
import re
from typing import Optional
from urllib.parse import urlsplit

from config import MAX_URL_LENGTH
from utils.constants import ALLOWED_URL_SCHEMES, KNOWN_DANGEROUS_SCHEMES

from .base import BlockCategory, NormalizedURL, PhaseResult

logger = logging.getLogger('urlgate.ssrf')

_SCHEME_RE = re.compile(r'^([A-Za-z][A-Za-z0-9+.\-]*):')
_HOSTNAME_RE = re.compile(r'^[a-z0-9_.\-]+$')
_NUMERIC_LABEL_RE = re.compile(r'^(0x[0-9a-f]*|[0-9]+)$')
_MAX_LABEL_LENGTH = 63
_MAX_HOSTNAME_LENGTH = 253


class MalformedURLError(ValueError):
    """Raised when input cannot be parsed into a NormalizedURL."""
    pass


def split_scheme(raw_url: Optional[str]) -> str:
    """Return the lower-cased scheme of a raw URL.

    Raises:
        MalformedURLError: If the input is empty or has no syntactically valid scheme.
    """
    if not isinstance(raw_url, str) or not raw_url.strip():
        raise MalformedURLError("Empty URL")
    match = _SCHEME_RE.match(raw_url.strip())
    if not match:
        raise MalformedURLError("Missing URL scheme")
    return match.group(1).lower()


def check_protocol(scheme: str) -> PhaseResult:
    """Pass http and https, block every other scheme."""
    if scheme in ALLOWED_URL_SCHEMES:
        return PhaseResult.passed()
    if scheme in KNOWN_DANGEROUS_SCHEMES:
        logger.warning(f"Blocked dangerous URL scheme: {scheme!r}")
    else:
        logger.info(f"Blocked unsupported URL scheme: {scheme!r}")
    return PhaseResult.blocked(BlockCategory.DISALLOWED_PROTOCOL, scheme)


def _parse_ipv4_number(part: str) -> Optional[int]:
    if part.startswith('0x'):
        digits = part[2:]
        return int(digits, 16) if digits else 0
    if len(part) > 1 and part.startswith('0'):
        if not all(c in '01234567' for c in part):
            return None
        return int(part, 8)
    return int(part) if part.isdigit() else None


def parse_legacy_ipv4(host: str) -> ipaddress.IPv4Address:
    """Parse an IPv4 host the way browsers do.

    Accepts one to four dot-separated parts in decimal, 0x hex or
    leading-zero octal. The last part fills the remaining bytes, so
    '127.1' is 127.0.0.1 and '2130706433' is 127.0.0.1.

    Raises:
        MalformedURLError: If the host ends in a number but is not a valid address.
    """
    parts = host.split('.')
    if len(parts) > 4 or any(not p or not _NUMERIC_LABEL_RE.match(p) for p in parts):
        raise MalformedURLError(f"Invalid IPv4 host: {host!r}")

    numbers = []
    for part in parts:
        number = _parse_ipv4_number(part)
        if number is None:
            raise MalformedURLError(f"Invalid IPv4 host: {host!r}")
        numbers.append(number)

    *leading, last = numbers
    if any(n > 255 for n in leading) or last >= 256 ** (5 - len(numbers)):
        raise MalformedURLError(f"IPv4 host out of range: {host!r}")

    value = last
    for i, n in enumerate(leading):
        value += n << (8 * (3 - i))
    return ipaddress.IPv4Address(value)


def _normalize_hostname(raw_host: str, bracketed: bool) -> str:
    if '%' in raw_host:
        raise MalformedURLError("Percent-encoded or scoped host")

    if bracketed:
        try:
            return ipaddress.IPv6Address(raw_host).compressed
        except ValueError:
            raise MalformedURLError(f"Invalid IPv6 host: {raw_host!r}")

    host = raw_host
    if not host.isascii():
        try:
            host = host.encode('idna').decode('ascii')
        except UnicodeError:
            raise MalformedURLError("Invalid internationalized hostname")
    host = host.lower().rstrip('.')

    if not host or not _HOSTNAME_RE.match(host):
        raise MalformedURLError(f"Invalid hostname: {raw_host!r}")
    if '' in host.split('.'):
        raise MalformedURLError(f"Empty label in hostname: {raw_host!r}")
    if len(host) > _MAX_HOSTNAME_LENGTH or any(len(label) > _MAX_LABEL_LENGTH for label in host.split('.')):
        raise MalformedURLError("Hostname exceeds DNS length limits")

    if _NUMERIC_LABEL_RE.match(host.split('.')[-1]):
        return str(parse_legacy_ipv4(host))
    return host


def normalize_url(raw_url: Optional[str]) -> NormalizedURL:
    """Parse and canonicalize a raw URL.

    Args:
        raw_url: URL as supplied by the client.

    Returns:
        NormalizedURL with a canonical hostname.

    Raises:
        MalformedURLError: If the URL cannot be parsed or has no usable host.
    """
    scheme = split_scheme(raw_url)
    url = raw_url.strip()

    if len(url) > MAX_URL_LENGTH:
        raise MalformedURLError("URL too long")
    if any(ord(c) < 0x21 or ord(c) == 0x7f or c == '\\' for c in url):
        raise MalformedURLError("URL contains whitespace, control characters or backslashes")
    if not url[len(scheme) + 1:].startswith('//'):
        raise MalformedURLError("URL has no authority component")

    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError as e:
        raise MalformedURLError(f"Unparseable URL: {e}")

    if port is not None and not 1 <= port <= 65535:
        raise MalformedURLError(f"Invalid port: {port}")

    userinfo, _, host_port = parts.netloc.rpartition('@')
    raw_host = parts.hostname
    if not raw_host:
        raise MalformedURLError("Missing hostname in URL")

    return NormalizedURL(
        scheme=scheme,
        hostname=_normalize_hostname(raw_host, host_port.startswith('[')),
        port=port,
        path=parts.path or '/',
        query=parts.query,
        fragment=parts.fragment,
        userinfo=userinfo,
    )
