"""Tests for SSRF URL validation (src/utils/url.py)."""
import sys
import os
import socket
import time
from unittest.mock import patch

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

from ssrf_guard import BlockCategory
from utils.url import validate_url, check_url, SSRFError


class TestValidSchemes:
    """Valid URL schemes should pass."""

    def test_http_allowed(self):
        with patch('ssrf_guard.resolver.socket.getaddrinfo', return_value=[
            (socket.AF_INET, socket.SOCK_STREAM, 6, '', ('93.184.216.34', 80))
        ]):
            result = validate_url('http://example.com/feed.xml')
            assert result == 'http://example.com/feed.xml'

    def test_https_allowed(self):
        with patch('ssrf_guard.resolver.socket.getaddrinfo', return_value=[
            (socket.AF_INET, socket.SOCK_STREAM, 6, '', ('93.184.216.34', 443))
        ]):
            result = validate_url('https://example.com/feed.xml')
            assert result == 'https://example.com/feed.xml'


class TestBlockedSchemes:
    """Non-http(s) schemes must be blocked."""

    def test_file_scheme_blocked(self):
        with pytest.raises(SSRFError, match="DisallowedProtocol"):
            validate_url('file:///etc/passwd')

    def test_ftp_scheme_blocked(self):
        with pytest.raises(SSRFError, match="DisallowedProtocol"):
            validate_url('ftp://internal.server/data')

    def test_gopher_scheme_blocked(self):
        with pytest.raises(SSRFError, match="DisallowedProtocol"):
            validate_url('gopher://evil.com/')

    def test_empty_scheme_malformed(self):
        with pytest.raises(SSRFError, match="MalformedURL"):
            validate_url('://no-scheme.com')


class TestBlockedHosts:
    """Private, reserved, and loopback hosts must be blocked."""

    def test_localhost_blocked_without_dns(self):
        with patch('ssrf_guard.resolver.socket.getaddrinfo') as mock_dns:
            with pytest.raises(SSRFError, match="BlockedHostnamePattern"):
                validate_url('http://localhost/admin')
            mock_dns.assert_not_called()

    def test_127_0_0_1_blocked(self):
        with pytest.raises(SSRFError, match=r"PrivateOrReservedIPAddress\(loopback\)"):
            validate_url('http://127.0.0.1/')

    def test_10_x_blocked(self):
        with pytest.raises(SSRFError, match=r"PrivateOrReservedIPAddress\(private\)"):
            validate_url('http://10.0.0.1/')

    def test_172_16_x_blocked(self):
        with pytest.raises(SSRFError, match=r"PrivateOrReservedIPAddress\(private\)"):
            validate_url('http://172.16.0.1/')

    def test_192_168_x_blocked(self):
        with pytest.raises(SSRFError, match=r"PrivateOrReservedIPAddress\(private\)"):
            validate_url('http://192.168.1.1/')

    def test_ipv6_loopback_blocked(self):
        with pytest.raises(SSRFError, match=r"PrivateOrReservedIPAddress\(loopback\)"):
            validate_url('http://[::1]/')

    def test_cloud_metadata_169_blocked(self):
        with pytest.raises(SSRFError, match=r"PrivateOrReservedIPAddress\(cloud_metadata\)"):
            validate_url('http://169.254.169.254/latest/meta-data/')

    def test_azure_metadata_blocked(self):
        with pytest.raises(SSRFError, match=r"PrivateOrReservedIPAddress\(cloud_metadata\)"):
            validate_url('http://168.63.129.16/')

    def test_hostname_resolving_to_private_blocked(self):
        with patch('ssrf_guard.resolver.socket.getaddrinfo', return_value=[
            (socket.AF_INET, socket.SOCK_STREAM, 6, '', ('192.168.1.1', 80))
        ]):
            with pytest.raises(SSRFError) as exc_info:
                validate_url('http://innocent-looking.example/')
        assert exc_info.value.category is BlockCategory.RESOLVES_TO_PRIVATE_IP
        assert exc_info.value.reason == 'HostnameResolvesToPrivateIP(192.168.1.1)'


class TestPorts:
    """Any port is allowed; the host decides."""

    def test_non_default_port_kept(self):
        with patch('ssrf_guard.resolver.socket.getaddrinfo', return_value=[
            (socket.AF_INET, socket.SOCK_STREAM, 6, '', ('93.184.216.34', 8080))
        ]):
            assert validate_url('http://example.com:8080/') == 'http://example.com:8080/'

    def test_default_port_passed_to_resolver(self):
        with patch('ssrf_guard.resolver.socket.getaddrinfo', return_value=[
            (socket.AF_INET, socket.SOCK_STREAM, 6, '', ('93.184.216.34', 443))
        ]) as mock_dns:
            validate_url('https://example.com/feed')
        assert mock_dns.call_args[0][:2] == ('example.com', 443)


class TestEdgeCases:
    """Edge cases and malformed input."""

    def test_empty_url_raises(self):
        with pytest.raises(SSRFError, match="MalformedURL"):
            validate_url('')

    def test_none_url_raises(self):
        with pytest.raises(SSRFError, match="MalformedURL"):
            validate_url(None)

    def test_whitespace_only_raises(self):
        with pytest.raises(SSRFError, match="MalformedURL"):
            validate_url('   ')

    def test_missing_hostname_raises(self):
        with pytest.raises(SSRFError, match="MalformedURL"):
            validate_url('http://')

    def test_unresolvable_hostname_raises(self):
        with patch('ssrf_guard.resolver.socket.getaddrinfo', side_effect=socket.gaierror('not found')):
            with pytest.raises(SSRFError, match="DNSResolutionFailure"):
                validate_url('http://this-host-does-not-exist-xyz.example/')

    def test_url_is_stripped(self):
        """Leading/trailing whitespace should be stripped."""
        with patch('ssrf_guard.resolver.socket.getaddrinfo', return_value=[
            (socket.AF_INET, socket.SOCK_STREAM, 6, '', ('93.184.216.34', 443))
        ]):
            result = validate_url('  https://example.com/feed  ')
            assert result == 'https://example.com/feed'

    def test_ssrf_error_is_value_error(self):
        """SSRFError should be a subclass of ValueError."""
        assert issubclass(SSRFError, ValueError)

    def test_check_url_returns_decision(self):
        decision = check_url('file:///etc/passwd')
        assert not decision.safe
        assert decision.category is BlockCategory.DISALLOWED_PROTOCOL

    def test_slow_resolver_does_not_stall_caller(self):
        """The DNS timeout holds in wall-clock time for blocking callers."""
        def slow_getaddrinfo(*args, **kwargs):
            time.sleep(1.0)
            return []

        started = time.monotonic()
        with patch('ssrf_guard.resolver.socket.getaddrinfo', side_effect=slow_getaddrinfo):
            decision = check_url('https://slow.example/', timeout=0.1)
        assert decision.category is BlockCategory.DNS_RESOLUTION_FAILURE
        assert time.monotonic() - started < 0.8

    def test_overlong_label_is_malformed(self):
        with patch('ssrf_guard.resolver.socket.getaddrinfo') as mock_dns:
            decision = check_url('http://' + 'a' * 64 + '.example.com/')
        assert decision.category is BlockCategory.MALFORMED_URL
        mock_dns.assert_not_called()
