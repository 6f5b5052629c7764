"""DNS validator - checks that a target's hostname resolves."""
import asyncio
import ipaddress
import logging
from typing import List
from urllib.parse import urlsplit

import dns.exception
import dns.resolver

from .outcomes import DnsError, DnsOutcome, DomainResolved

logger = logging.getLogger(__name__)


def _is_ip_literal(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


def _dns_query_sync(hostname: str, record_type: str, timeout: float) -> List[str]:
    resolver = dns.resolver.Resolver(configure=True)
    resolver.timeout = max(0.5, float(timeout))
    resolver.lifetime = max(0.5, float(timeout))
    answer = resolver.resolve(hostname, record_type)
    return [str(rr) for rr in answer]


def _describe(exc: Exception) -> str:
    if isinstance(exc, dns.resolver.NXDOMAIN):
        return "NXDOMAIN"
    if isinstance(exc, dns.resolver.NoAnswer):
        return "NODATA"
    if isinstance(exc, dns.exception.Timeout):
        return "TIMEOUT"
    if isinstance(exc, dns.resolver.NoNameservers):
        return "SERVFAIL"
    return type(exc).__name__


class DnsValidator:
    """Resolves A and AAAA records for a URL's host."""

    async def check(self, url: str, timeout: float = 5.0) -> DnsOutcome:
        """Resolve the host of ``url``. Never raises."""
        try:
            hostname = urlsplit(url).hostname
        except ValueError:
            hostname = None
        if not hostname:
            return DnsError("Failed to parse URL")

        if _is_ip_literal(hostname):
            return DomainResolved(addresses=[hostname])

        try:
            addresses = await asyncio.to_thread(_dns_query_sync, hostname, "A", timeout)
            return DomainResolved(addresses=addresses)
        except dns.exception.DNSException as e:
            first_error = e

        # No IPv4 answer; an IPv6-only host is still reachable by name
        try:
            addresses = await asyncio.to_thread(_dns_query_sync, hostname, "AAAA", timeout)
            return DomainResolved(addresses=addresses)
        except dns.exception.DNSException:
            logger.debug(f"DNS resolution failed for {hostname}: {first_error}")
            return DnsError(f"DNS resolution failed: {_describe(first_error)}")
