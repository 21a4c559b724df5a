"""
Hostname pattern matching for SSRF protection.

Blocks well-known internal hostnames without touching DNS, and classifies
literal IP hosts against the address range table immediately.
"""
import ipaddress
import logging
from typing import Iterable, List, Optional, Tuple

from utils.constants import BLOCKED_HOSTNAMES, BLOCKED_HOSTNAME_SUFFIXES

from .base import BlockCategory, HostnameRule, IPAddress, PhaseResult
from .ranges import AddressRangeTable

logger = logging.getLogger('urlgate.ssrf')


def default_rules(extra: Iterable[str] = ()) -> List[HostnameRule]:
    """Built-in exact and suffix rules followed by configured extras."""
    rules = [HostnameRule('exact', h) for h in BLOCKED_HOSTNAMES]
    rules.extend(HostnameRule('suffix', s) for s in BLOCKED_HOSTNAME_SUFFIXES)
    for entry in extra:
        rule = HostnameRule.parse(entry)
        if rule is None:
            logger.warning(f"Skipping invalid blocked hostname {entry!r}")
            continue
        rules.append(rule)
    return rules


def parse_ip_literal(hostname: str) -> Optional[IPAddress]:
    """Return the address if hostname is an IPv4 or IPv6 literal, else None."""
    try:
        return ipaddress.ip_address(hostname)
    except ValueError:
        return None


class HostnamePatternMatcher:
    """First-match-wins hostname rules: exact, then suffix, then literal IP."""

    def __init__(self, rules: Iterable[HostnameRule], table: AddressRangeTable):
        rules = list(rules)
        # Exact rules are always evaluated before suffix rules
        self._exact: Tuple[HostnameRule, ...] = tuple(r for r in rules if r.kind == 'exact')
        self._suffix: Tuple[HostnameRule, ...] = tuple(r for r in rules if r.kind == 'suffix')
        self._table = table

    @property
    def rules(self) -> Tuple[HostnameRule, ...]:
        return self._exact + self._suffix

    def match_rule(self, hostname: str) -> Optional[HostnameRule]:
        for rule in self.rules:
            if rule.matches(hostname):
                return rule
        return None

    def check(self, hostname: str) -> PhaseResult:
        """Evaluate a lower-cased hostname.

        Returns:
            BLOCKED for a rule hit or a literal IP in a blocked range,
            PASS for a literal IP outside every range (no DNS needed),
            UNDETERMINED for any other name (decided after DNS).
        """
        rule = self.match_rule(hostname)
        if rule is not None:
            logger.info(f"Blocked hostname {hostname!r} ({rule.kind} match on {rule.value!r})",
                        extra={'hostname': hostname,
                               'category': BlockCategory.BLOCKED_HOSTNAME_PATTERN.value})
            return PhaseResult.blocked(BlockCategory.BLOCKED_HOSTNAME_PATTERN)

        address = parse_ip_literal(hostname)
        if address is None:
            return PhaseResult.undetermined()

        classification = self._table.classify(address)
        if classification is not None:
            logger.info(f"Blocked literal IP {address} ({classification.value})")
            return PhaseResult.blocked(BlockCategory.PRIVATE_OR_RESERVED_IP, classification.value)
        return PhaseResult.passed()
