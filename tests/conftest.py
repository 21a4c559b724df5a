"""Shared pytest fixtures for URL Gate tests."""
import asyncio
import os
import socket
import sys
import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from ssrf_guard import DNSResolver, GuardConfig, URLValidator, reset_validator


def make_addrinfo(*ips, port=80):
    """Build getaddrinfo-style tuples for the given addresses."""
    infos = []
    for ip in ips:
        if ':' in ip:
            infos.append((socket.AF_INET6, socket.SOCK_STREAM, 6, '', (ip, port, 0, 0)))
        else:
            infos.append((socket.AF_INET, socket.SOCK_STREAM, 6, '', (ip, port)))
    return infos


class StaticResolver(DNSResolver):
    """Resolver answering from a fixed table instead of the network."""

    def __init__(self, answers=None, error=None, delay=0.0):
        self.answers = answers or {}
        self.error = error
        self.delay = delay
        self.calls = []

    async def _getaddrinfo(self, hostname, port):
        self.calls.append(hostname)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if hostname not in self.answers:
            raise socket.gaierror(socket.EAI_NONAME, 'Name or service not known')
        return make_addrinfo(*self.answers[hostname], port=port)


# Public answers plus a few hostile ones for rebinding scenarios
DNS_ANSWERS = {
    'example.com': ['93.184.216.34'],
    'www.example.com': ['93.184.216.34', '2606:2800:220:1:248:1893:25c8:1946'],
    'github.com': ['140.82.112.3'],
    'rebind.attacker.test': ['127.0.0.1'],
    'mixed.attacker.test': ['8.8.8.8', '10.0.0.5'],
    'imds6.attacker.test': ['2606:4700::1111', 'fd00:ec2::254'],
    'mapped.attacker.test': ['::ffff:169.254.169.254'],
}


@pytest.fixture(autouse=True)
def fresh_validator():
    """Drop the process-wide validator so each test sees its own environment."""
    reset_validator()
    yield
    reset_validator()


@pytest.fixture
def addrinfo():
    """Factory for getaddrinfo return values."""
    return make_addrinfo


@pytest.fixture
def resolver():
    """Resolver with canned public and hostile answers."""
    return StaticResolver(DNS_ANSWERS)


@pytest.fixture
def make_resolver():
    """Factory for resolvers with custom answers, errors or delays."""
    return StaticResolver


@pytest.fixture
def validator(resolver):
    """Validator wired to the canned resolver."""
    return URLValidator(GuardConfig(dns_timeout_ms=500), resolver)


@pytest.fixture
def app_client():
    """Flask test client for API integration tests."""
    # Import here to avoid circular imports and allow test isolation
    from main import app

    app.config['TESTING'] = True
    app.config['DEBUG'] = False

    with app.test_client() as client:
        yield client
