"""Link health checks with SSRF protection.

Every URL is validated before a request is made, and every redirect target
is validated again before it is reported as safe or followed. Redirects are
never followed by requests itself.
"""
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin

import requests

from config import LINK_CHECK_TIMEOUT, LINK_CHECK_USER_AGENT, MAX_REDIRECT_HOPS
from utils.url import check_url

logger = logging.getLogger('urlgate.links')


@dataclass
class LinkHealthResult:
    """Outcome of checking a single URL."""
    url: str
    status: str  # ok, redirect, broken, timeout, error, blocked
    response_time_ms: int
    checked_at: str
    status_code: Optional[int] = None
    redirect_url: Optional[str] = None
    redirect_safe: Optional[bool] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data = {
            'url': self.url,
            'status': self.status,
            'responseTimeMs': self.response_time_ms,
            'checkedAt': self.checked_at,
        }
        if self.status_code is not None:
            data['statusCode'] = self.status_code
        if self.redirect_url is not None:
            data['redirectUrl'] = self.redirect_url
            data['redirectSafe'] = self.redirect_safe
        if self.error:
            data['error'] = self.error
        return data


class LinkChecker:
    def __init__(self, timeout: float = LINK_CHECK_TIMEOUT, follow_redirects: bool = False,
                 max_hops: int = MAX_REDIRECT_HOPS, session: Optional[requests.Session] = None):
        self.timeout = timeout
        self.follow_redirects = follow_redirects
        self.max_hops = max_hops
        self.session = session or requests.Session()

    def _result(self, url: str, status: str, start_time: float, **kwargs) -> LinkHealthResult:
        return LinkHealthResult(
            url=url,
            status=status,
            response_time_ms=int((time.time() - start_time) * 1000),
            checked_at=datetime.now(timezone.utc).isoformat(),
            **kwargs
        )

    def check_url(self, url: str) -> LinkHealthResult:
        """Check a single URL with HEAD, validating it and each redirect hop first."""
        start_time = time.time()

        decision = check_url(url)
        if not decision.safe:
            logger.info(f"Blocked link check for {url!r}: {decision.reason}")
            return self._result(url, 'blocked', start_time,
                                error=f"SSRF protection blocked request: {decision.reason}")

        # TODO: requests resolves the host again; a transport adapter pinned to
        # decision.resolved_addresses would close the rebinding window.
        target = decision.normalized_url
        hops = 0
        while True:
            try:
                response = self.session.head(
                    target,
                    timeout=self.timeout,
                    allow_redirects=False,
                    headers={'User-Agent': LINK_CHECK_USER_AGENT},
                )
            except requests.exceptions.Timeout:
                return self._result(url, 'timeout', start_time,
                                    error=f"Request timed out after {self.timeout}s")
            except requests.RequestException as e:
                logger.warning(f"Link check failed for {target}: {e}")
                return self._result(url, 'error', start_time, error=str(e))

            status_code = response.status_code

            if 300 <= status_code < 400:
                location = response.headers.get('Location')
                if not location:
                    return self._result(url, 'broken', start_time, status_code=status_code,
                                        error='Redirect without Location header')

                redirect_url = urljoin(target, location)
                hop = check_url(redirect_url)
                if not hop.safe:
                    logger.warning(f"Redirect from {target} to {redirect_url!r} blocked: {hop.reason}")
                    if self.follow_redirects:
                        return self._result(url, 'blocked', start_time, status_code=status_code,
                                            redirect_url=redirect_url, redirect_safe=False,
                                            error=f"SSRF protection blocked redirect: {hop.reason}")
                    return self._result(url, 'redirect', start_time, status_code=status_code,
                                        redirect_url=redirect_url, redirect_safe=False)

                if not self.follow_redirects:
                    return self._result(url, 'redirect', start_time, status_code=status_code,
                                        redirect_url=hop.normalized_url, redirect_safe=True)

                hops += 1
                if hops > self.max_hops:
                    return self._result(url, 'error', start_time, status_code=status_code,
                                        error=f"Too many redirects (>{self.max_hops})")
                target = hop.normalized_url
                continue

            if 200 <= status_code < 300:
                return self._result(url, 'ok', start_time, status_code=status_code)
            return self._result(url, 'broken', start_time, status_code=status_code)

    def check_urls(self, urls: List[str]) -> List[LinkHealthResult]:
        """Check several URLs in order."""
        results = []
        for url in urls:
            results.append(self.check_url(url))
        ok = sum(1 for r in results if r.status == 'ok')
        logger.info(f"Checked {len(results)} links: {ok} ok")
        return results
