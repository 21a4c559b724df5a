"""SSRF protection: raising URL validation for blocking callers.

Wraps the two-layer validator in ssrf_guard for code that runs outside an
event loop (Flask views, requests-based fetchers) and prefers an exception
to a Decision value.
"""
import asyncio
import logging
from typing import Optional

from ssrf_guard import BlockCategory, Decision, get_validator

logger = logging.getLogger(__name__)


class SSRFError(ValueError):
    """Raised when a URL fails SSRF validation."""

    def __init__(self, decision: Decision):
        self.decision = decision
        self.category: Optional[BlockCategory] = decision.category
        self.reason: str = decision.reason or BlockCategory.INTERNAL_ERROR.value
        super().__init__(self.reason)


def check_url(url: str, timeout: Optional[float] = None) -> Decision:
    """Run full validation from synchronous code and return the Decision."""
    return asyncio.run(get_validator().validate_async(url, timeout))


def validate_url(url: str, timeout: Optional[float] = None) -> str:
    """Validate a URL for safe outbound requests.

    Checks scheme, hostname and every resolved IP address against the
    blocklists to prevent SSRF attacks.

    Args:
        url: The URL to validate.
        timeout: DNS timeout in seconds (default from configuration).

    Returns:
        The normalized URL; fetch this, not the input.

    Raises:
        SSRFError: If the URL fails any validation check.
    """
    decision = check_url(url, timeout)
    if not decision.safe:
        raise SSRFError(decision)

    logger.debug(f"URL passed SSRF validation: {decision.normalized_url}")
    return decision.normalized_url
