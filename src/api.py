"""REST API for URL validation and link health checks."""
import logging
import time
from flask import Blueprint, jsonify, request
from functools import wraps

from config import LINK_CHECK_MAX_URLS, MAX_DNS_TIMEOUT_MS

logger = logging.getLogger('urlgate.api')

# Track server start time for uptime calculation
_start_time = time.time()

api = Blueprint('api', __name__, url_prefix='/api/v1')


def get_link_checker():
    """Get link checker instance."""
    from link_checker import LinkChecker
    return LinkChecker()


def log_request(f):
    """Decorator to log API requests with detailed info (IP, user-agent, response time)."""
    @wraps(f)
    def decorated(*args, **kwargs):
        start_time = time.time()
        client_ip = request.headers.get('X-Forwarded-For', request.remote_addr)
        user_agent = request.headers.get('User-Agent', 'Unknown')[:100]

        try:
            result = f(*args, **kwargs)
            elapsed = (time.time() - start_time) * 1000  # ms
            status = result.status_code if hasattr(result, 'status_code') else 200
            logger.info(f"{request.method} {request.path} {status} {elapsed:.0f}ms [{client_ip}] [{user_agent}]")
            return result
        except Exception as e:
            elapsed = (time.time() - start_time) * 1000
            logger.error(f"{request.method} {request.path} ERROR {elapsed:.0f}ms [{client_ip}] - {e}")
            raise
    return decorated


def json_response(data, status=200):
    """Create JSON response with proper headers."""
    response = jsonify(data)
    response.status_code = status
    return response


def error_response(message, status=400, details=None):
    """Create error response."""
    data = {'error': message, 'status': status}
    if details:
        data['details'] = details
    return json_response(data, status)


def decision_response(decision):
    """Map a validation decision to the caller contract: 403 on block, 200 on safe."""
    if not decision.safe:
        return error_response(f"Security validation failed: {decision.reason}", 403,
                              details=decision.to_dict())
    return json_response(decision.to_dict())


def _get_url_field(data):
    if not data or 'url' not in data:
        return None, error_response('url is required', 400)
    url = data['url']
    if not isinstance(url, str) or not url.strip():
        return None, error_response('url must be a non-empty string', 400)
    return url, None


# ========== Validation Endpoints ==========

@api.route('/validate', methods=['POST'])
@log_request
def validate():
    """Full validation including DNS resolution. Call before fetching."""
    from utils.url import check_url

    data = request.get_json(silent=True)
    url, error = _get_url_field(data)
    if error:
        return error

    timeout = None
    timeout_ms = data.get('timeoutMs')
    if timeout_ms is not None:
        if isinstance(timeout_ms, bool) or not isinstance(timeout_ms, (int, float)) or timeout_ms <= 0:
            return error_response('timeoutMs must be a positive number', 400)
        timeout = min(timeout_ms, MAX_DNS_TIMEOUT_MS) / 1000.0

    decision = check_url(url, timeout)
    if not decision.safe:
        logger.warning(f"Blocked URL {url[:200]!r}: {decision.reason}")
    return decision_response(decision)


@api.route('/validate/quick', methods=['POST'])
@log_request
def validate_quick():
    """Protocol and hostname checks only, no DNS. A pre-filter, not a fetch gate."""
    from ssrf_guard import validate_sync

    url, error = _get_url_field(request.get_json(silent=True))
    if error:
        return error

    return decision_response(validate_sync(url))


# ========== Link Endpoints ==========

@api.route('/links/check-health', methods=['POST'])
@log_request
def check_links_health():
    """Check reachability of a batch of URLs with SSRF protection."""
    data = request.get_json(silent=True)
    if not data or 'urls' not in data:
        return error_response('urls is required', 400)

    urls = data['urls']
    if not isinstance(urls, list) or not all(isinstance(u, str) for u in urls):
        return error_response('urls must be a list of strings', 400)
    if not urls:
        return error_response('urls cannot be empty', 400)
    if len(urls) > LINK_CHECK_MAX_URLS:
        return error_response(f'At most {LINK_CHECK_MAX_URLS} urls per request', 400)

    checker = get_link_checker()
    results = checker.check_urls(urls)

    summary = {}
    for result in results:
        summary[result.status] = summary.get(result.status, 0) + 1

    return json_response({
        'results': [r.to_dict() for r in results],
        'summary': summary,
    })


# ========== System Endpoints ==========

@api.route('/system/status', methods=['GET'])
@log_request
def get_system_status():
    """Get validator configuration and uptime."""
    from ssrf_guard import get_validator

    validator = get_validator()
    return json_response({
        'status': 'running',
        'version': _get_version(),
        'uptime': int(time.time() - _start_time),
        'validator': {
            'dnsTimeoutMs': validator.config.dns_timeout_ms,
            'blockedRanges': len(validator.table),
            'hostnameRules': len(validator.matcher.rules),
        },
    })


def _get_version():
    """Get application version."""
    try:
        from version import __version__
        return __version__
    except ImportError:
        return 'unknown'
