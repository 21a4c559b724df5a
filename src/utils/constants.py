"""Shared constants for URL validation.

Centralizes the scheme and hostname sets consulted by ssrf_guard and the
link checker.
"""

# SSRF protection: allowed URL schemes for outbound requests
ALLOWED_URL_SCHEMES = frozenset({'http', 'https'})

# Schemes seen in SSRF payloads. Anything outside ALLOWED_URL_SCHEMES is
# already rejected; this set only picks the log level.
KNOWN_DANGEROUS_SCHEMES = frozenset({
    'file', 'ftp', 'gopher', 'dict', 'data', 'php', 'expect', 'jar',
    'ldap', 'sftp', 'tftp', 'netdoc',
})

DEFAULT_PORTS = {'http': 80, 'https': 443}

# Hostnames blocked by exact match (lower-case, no trailing dot)
BLOCKED_HOSTNAMES = (
    'localhost',
    'localhost.localdomain',
    'ip6-localhost',
    'ip6-loopback',
    'metadata.google.internal',  # GCP metadata
    'metadata',
    'instance-data',             # AWS metadata alias
)

# Hostnames blocked by suffix match
BLOCKED_HOSTNAME_SUFFIXES = (
    '.local',       # mDNS
    '.internal',
    '.localhost',   # RFC 6761
)
