"""TLS validator - inspects the certificate an HTTPS origin presents."""
import asyncio
import logging
import math
import socket
import ssl
from datetime import datetime, timezone
from typing import Optional, Tuple
from urllib.parse import urlsplit

from cryptography import x509
from cryptography.x509.oid import NameOID

from .outcomes import CertificateInfo, TlsError, TlsOutcome

logger = logging.getLogger(__name__)


def _host_port(url: str) -> Optional[Tuple[str, int]]:
    try:
        parts = urlsplit(url)
        port = parts.port or 443
    except ValueError:
        return None
    if parts.scheme.lower() != "https" or not parts.hostname:
        return None
    return parts.hostname, port


def _issuer_label(cert: x509.Certificate) -> str:
    parts = []
    for oid in (NameOID.ORGANIZATION_NAME, NameOID.COMMON_NAME):
        attrs = cert.issuer.get_attributes_for_oid(oid)
        if attrs:
            parts.append(str(attrs[0].value))
    return " - ".join(parts) or "Unknown"


def certificate_info(
    cert_der: bytes,
    trusted: bool,
    error: Optional[str] = None,
    now: Optional[datetime] = None,
) -> CertificateInfo:
    """Summarise a DER certificate."""
    cert = x509.load_der_x509_certificate(cert_der)
    expiry = cert.not_valid_after_utc
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    days_remaining = math.floor((expiry - now).total_seconds() / 86400)
    return CertificateInfo(
        trusted=trusted,
        expires_at=expiry.replace(tzinfo=None),
        issuer=_issuer_label(cert),
        days_remaining=days_remaining,
        error=error,
    )


class TlsValidator:
    """Reads a peer certificate even when it is not trusted."""

    async def check(self, url: str, timeout: float) -> TlsOutcome:
        """Check the certificate for ``url``. Never raises."""
        target = _host_port(url)
        if target is None:
            return TlsError("URL is not HTTPS")
        host, port = target

        try:
            # Socket work is blocking, keep it off the event loop
            loop = asyncio.get_running_loop()
            cert_der, trusted, error = await asyncio.wait_for(
                loop.run_in_executor(None, self._fetch_certificate, host, port, timeout),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            return TlsError("SSL check timed out")
        except (OSError, ssl.SSLError) as e:
            return TlsError(str(e) or "TLS connection failed")

        if not cert_der:
            return TlsError("No certificate found")

        try:
            return certificate_info(cert_der, trusted, error)
        except ValueError as e:
            logger.warning(f"Unreadable certificate from {host}:{port}: {e}")
            return TlsError(f"Failed to read certificate: {e}")

    def _fetch_certificate(self, host: str, port: int, timeout: float) -> Tuple[Optional[bytes], bool, Optional[str]]:
        """Return (DER certificate, trusted, error) - blocking."""
        try:
            return self._handshake(host, port, timeout, verify=True), True, None
        except ssl.SSLCertVerificationError as e:
            reason = e.verify_message or "verification failed"
            return self._handshake(host, port, timeout, verify=False), False, f"Certificate not trusted ({reason})"

    def _handshake(self, host: str, port: int, timeout: float, verify: bool) -> Optional[bytes]:
        context = ssl.create_default_context()
        if not verify:
            # Trust is already known to fail; we only want to read the certificate
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE

        with socket.create_connection((host, port), timeout=timeout) as sock:
            with context.wrap_socket(sock, server_hostname=host) as ssock:
                # binary_form works with CERT_NONE, the dict form would be empty
                return ssock.getpeercert(binary_form=True)
