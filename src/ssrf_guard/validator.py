"""
SSRF Validator - Two-layer URL validation.

Layer 1 (validate_sync) parses the URL, gates the protocol and matches the
hostname against textual rules and, for literal IPs, the address range
table. It performs no I/O.

Layer 2 (validate_async) runs Layer 1, then resolves the hostname and
classifies every returned address, which catches DNS rebinding: a benign
looking name that points into a private range.

Every phase returns a PhaseResult. Only a URL for which no phase blocked and
the final phase passed is reported safe; errors and timeouts block.
"""
import asyncio
import logging
import threading
from typing import Optional, Tuple

from .base import (
    BlockCategory, Decision, GuardConfig, NormalizedURL, PhaseResult, Verdict,
)
from .hostnames import HostnamePatternMatcher, default_rules
from .normalizer import MalformedURLError, check_protocol, normalize_url, split_scheme
from .ranges import AddressRangeTable
from .resolver import DNSResolutionError, DNSResolver

logger = logging.getLogger('urlgate.ssrf')


class URLValidator:
    """Validates URLs before they are fetched from inside the network.

    Holds only immutable tables, so one instance can serve concurrent calls.
    """

    def __init__(self, config: Optional[GuardConfig] = None,
                 resolver: Optional[DNSResolver] = None):
        self.config = config or GuardConfig()
        self.resolver = resolver or DNSResolver()
        self.table = AddressRangeTable.default(self.config.extra_blocked_ranges)
        self.matcher = HostnamePatternMatcher(
            default_rules(self.config.extra_blocked_hostnames), self.table
        )

    def _layer_one(self, raw_url: Optional[str]) -> Tuple[Optional[NormalizedURL], PhaseResult]:
        """Run the no-I/O phases. Returns the normalized URL (None when blocked early)."""
        try:
            scheme = split_scheme(raw_url)
        except MalformedURLError as e:
            logger.info(f"Rejected malformed URL: {e}")
            return None, PhaseResult.blocked(BlockCategory.MALFORMED_URL)

        protocol = check_protocol(scheme)
        if protocol.is_blocked:
            return None, protocol

        try:
            url = normalize_url(raw_url)
        except MalformedURLError as e:
            logger.info(f"Rejected malformed URL: {e}")
            return None, PhaseResult.blocked(BlockCategory.MALFORMED_URL)

        return url, self.matcher.check(url.hostname)

    def validate_sync(self, raw_url: Optional[str]) -> Decision:
        """Layer 1 only: cheap pre-filter without network access.

        A URL whose hostname still needs DNS is reported safe here; callers
        about to fetch must use validate_async.
        """
        try:
            url, result = self._layer_one(raw_url)
        except Exception:
            logger.exception("Unexpected error during URL validation")
            return Decision.block(BlockCategory.INTERNAL_ERROR)

        if result.is_blocked:
            return Decision.from_phase(result)
        return Decision.allow(url)

    async def _layer_two(self, url: NormalizedURL, timeout: float) -> Tuple[PhaseResult, Tuple[str, ...]]:
        try:
            addresses = await self.resolver.resolve(url.hostname, timeout, port=url.effective_port)
        except DNSResolutionError:
            return PhaseResult.blocked(BlockCategory.DNS_RESOLUTION_FAILURE), ()

        resolved = tuple(str(a) for a in addresses)
        for address in addresses:
            classification = self.table.classify(address)
            if classification is not None:
                logger.warning(
                    f"Hostname {url.hostname!r} resolves to blocked address "
                    f"{address} ({classification.value})",
                    extra={'hostname': url.hostname,
                           'category': BlockCategory.RESOLVES_TO_PRIVATE_IP.value},
                )
                return PhaseResult.blocked(BlockCategory.RESOLVES_TO_PRIVATE_IP, str(address)), resolved
        return PhaseResult.passed(), resolved

    async def validate_async(self, raw_url: Optional[str], timeout: Optional[float] = None) -> Decision:
        """Full two-layer validation. Call this before any outbound request.

        Args:
            raw_url: URL as supplied by the client.
            timeout: DNS timeout in seconds; defaults to the configured value.

        Returns:
            Decision; when safe, decision.normalized_url is the URL to fetch.

        Raises:
            asyncio.CancelledError: If the calling task is cancelled mid-lookup.
        """
        if timeout is None:
            timeout = self.config.dns_timeout
        try:
            url, result = self._layer_one(raw_url)
            if result.is_blocked:
                return Decision.from_phase(result)
            if result.verdict is Verdict.PASS:
                # Literal public IP, nothing to resolve
                return Decision.allow(url)

            result, resolved = await self._layer_two(url, timeout)
            if result.verdict is not Verdict.PASS:
                return Decision.from_phase(result)

            logger.debug(f"URL passed SSRF validation: {url}")
            return Decision.allow(url, resolved)
        except asyncio.CancelledError:
            logger.info("URL validation cancelled by caller")
            raise
        except Exception:
            logger.exception("Unexpected error during URL validation")
            return Decision.block(BlockCategory.INTERNAL_ERROR)


_default_validator: Optional[URLValidator] = None
_default_lock = threading.Lock()


def get_validator() -> URLValidator:
    """Process-wide validator configured from the environment."""
    global _default_validator
    if _default_validator is None:
        with _default_lock:
            if _default_validator is None:
                _default_validator = URLValidator(GuardConfig.from_env())
    return _default_validator


def reset_validator() -> None:
    """Drop the cached validator so the next call re-reads the environment."""
    global _default_validator
    with _default_lock:
        _default_validator = None


def validate_sync(raw_url: Optional[str]) -> Decision:
    """Layer 1 validation with the default validator."""
    return get_validator().validate_sync(raw_url)


async def validate_async(raw_url: Optional[str], timeout: Optional[float] = None) -> Decision:
    """Full validation with the default validator."""
    return await get_validator().validate_async(raw_url, timeout)
