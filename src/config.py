"""Centralized configuration constants.

All timeouts and limits should be defined here
for easy tuning and consistency across the codebase.
"""

# ============================================================
# DNS Resolution
# ============================================================
DNS_TIMEOUT_MS = 3000           # Fail closed if resolution takes longer
MAX_DNS_TIMEOUT_MS = 30000      # Upper bound accepted from the environment

# ============================================================
# Link Health Checks
# ============================================================
LINK_CHECK_TIMEOUT = 5.0        # Seconds per HEAD request
LINK_CHECK_MAX_URLS = 50        # URLs accepted per check-health request
LINK_CHECK_USER_AGENT = 'URLGate-LinkChecker/1.0'
MAX_REDIRECT_HOPS = 5           # Each hop is re-validated before it is followed

# ============================================================
# API
# ============================================================
MAX_URL_LENGTH = 8192           # Longer input is rejected before parsing
DEFAULT_CORS_ORIGINS = 'http://localhost:5173,http://localhost:3000'
