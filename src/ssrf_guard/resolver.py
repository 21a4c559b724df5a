"""
DNS resolution for the rebinding check.

Resolves a hostname to every A and AAAA address with a hard timeout. The
lookup runs as an explicit task so both the timeout and a caller's
cancellation abandon it.
"""
import asyncio
import ipaddress
import logging
import socket
from concurrent.futures import ThreadPoolExecutor
from typing import List

from .base import IPAddress

logger = logging.getLogger('urlgate.dns')

# Lookups run here instead of the loop's default executor, which asyncio.run
# joins on shutdown; an abandoned lookup must not hold up the caller.
_DNS_EXECUTOR = ThreadPoolExecutor(max_workers=16, thread_name_prefix='urlgate-dns')


class DNSResolutionError(Exception):
    """Raised when a hostname cannot be resolved within the timeout."""

    def __init__(self, hostname: str, message: str):
        self.hostname = hostname
        super().__init__(f"{message}: {hostname!r}")


class DNSResolver:
    """Async resolver running getaddrinfo on a dedicated thread pool."""

    async def _getaddrinfo(self, hostname: str, port: int):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            _DNS_EXECUTOR, socket.getaddrinfo, hostname, port,
            socket.AF_UNSPEC, socket.SOCK_STREAM, socket.IPPROTO_TCP,
        )

    async def resolve(self, hostname: str, timeout: float, port: int = 80) -> List[IPAddress]:
        """Resolve hostname to all of its addresses, in resolver order.

        Args:
            hostname: Lower-cased hostname (not an IP literal).
            timeout: Seconds before the lookup is abandoned.
            port: Port passed to getaddrinfo for service context.

        Returns:
            Distinct addresses, IPv4 and IPv6.

        Raises:
            DNSResolutionError: On timeout, resolver error or an empty answer.
            asyncio.CancelledError: If the caller cancels; the lookup task is cancelled too.
        """
        task = asyncio.ensure_future(self._getaddrinfo(hostname, port))
        try:
            addrinfos = await asyncio.wait_for(task, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"DNS resolution timed out after {timeout:.2f}s for {hostname!r}")
            raise DNSResolutionError(hostname, "DNS resolution timed out")
        except socket.gaierror as e:
            logger.warning(f"Cannot resolve hostname {hostname!r}: {e}")
            raise DNSResolutionError(hostname, "Cannot resolve hostname")
        except OSError as e:
            logger.warning(f"DNS lookup failed for {hostname!r}: {e}")
            raise DNSResolutionError(hostname, "DNS lookup failed")
        except ValueError as e:
            # UnicodeError from the idna codec, e.g. an over-long label
            logger.warning(f"Hostname {hostname!r} rejected by resolver: {e}")
            raise DNSResolutionError(hostname, "Invalid hostname for DNS")

        addresses: List[IPAddress] = []
        for _family, _type, _proto, _canonname, sockaddr in addrinfos:
            try:
                # IPv6 sockaddr may carry a scope suffix such as 'fe80::1%eth0'
                address = ipaddress.ip_address(sockaddr[0].split('%', 1)[0])
            except ValueError:
                logger.warning(f"Unparseable address {sockaddr[0]!r} for {hostname!r}")
                raise DNSResolutionError(hostname, "Invalid resolved address")
            if address not in addresses:
                addresses.append(address)

        if not addresses:
            raise DNSResolutionError(hostname, "No addresses found for hostname")

        logger.debug(f"Resolved {hostname!r} to {', '.join(str(a) for a in addresses)}")
        return addresses
