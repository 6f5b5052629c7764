"""Tagged outcome values returned by the probe and validators.

None of these cross a boundary as exceptions: the HTTP exchange yields
``HttpResponse`` or ``NetworkError``, the TLS validator ``CertificateInfo`` or
``TlsError``, and the DNS validator ``DomainResolved`` or ``DnsError``.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Union


@dataclass(frozen=True)
class HttpResponse:
    """A response was received."""
    status_code: int
    reason: str
    elapsed_ms: int
    body: Optional[str] = None  # None when the body is not decodable text


@dataclass(frozen=True)
class NetworkError:
    """No usable response: timeout, refused/reset connection, bad URL."""
    message: str
    elapsed_ms: int


HttpOutcome = Union[HttpResponse, NetworkError]


@dataclass(frozen=True)
class CertificateInfo:
    """A certificate could be read from the origin."""
    trusted: bool
    expires_at: datetime
    issuer: str
    days_remaining: int
    error: Optional[str] = None

    @property
    def valid(self) -> bool:
        return self.trusted and self.days_remaining > 0


@dataclass(frozen=True)
class TlsError:
    """Handshake failed or no certificate was presented."""
    message: str


TlsOutcome = Union[CertificateInfo, TlsError]


@dataclass(frozen=True)
class DomainResolved:
    addresses: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class DnsError:
    message: str


DnsOutcome = Union[DomainResolved, DnsError]
