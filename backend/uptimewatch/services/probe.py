"""Probe - performs one HTTP(S) health check for a target."""
import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from http.cookiejar import CookieJar, DefaultCookiePolicy
from typing import Optional

import httpx

from .. import __version__
from ..schemas.target import CheckPolicy, KEYWORD_KINDS
from ..utils.time_utils import utcnow
from .classifier import classify
from .dns_validator import DnsValidator
from .outcomes import (
    CertificateInfo,
    DnsError,
    DomainResolved,
    HttpOutcome,
    HttpResponse,
    NetworkError,
    TlsError,
)
from .tls_validator import TlsValidator

logger = logging.getLogger(__name__)

USER_AGENT = f"uptimewatch/{__version__}"
MAX_REDIRECTS = 5
BODY_METHODS = ("POST", "PUT", "PATCH")


@dataclass(frozen=True)
class CheckResult:
    """Result of a monitoring check."""
    target_id: int
    status: str  # operational, degraded, down
    response_time: Optional[int] = None  # ms
    status_code: Optional[int] = None
    error_message: Optional[str] = None
    ssl_valid: Optional[bool] = None
    ssl_expires_at: Optional[datetime] = None
    ssl_issuer: Optional[str] = None
    ssl_days_remaining: Optional[int] = None
    domain_valid: Optional[bool] = None
    domain_error: Optional[str] = None
    checked_at: datetime = field(default_factory=utcnow)


def render_body(template: str, now_ms: Optional[int] = None) -> str:
    """Substitute ``{timestamp}`` with the current epoch time in milliseconds."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return template.replace("{timestamp}", str(now_ms))


def _decode_body(response: httpx.Response) -> Optional[str]:
    try:
        return response.content.decode(response.encoding or "utf-8")
    except (UnicodeDecodeError, LookupError):
        return None


class Probe:
    """Runs the HTTP request, optional DNS and TLS checks, and classifies the result.

    Never raises: every failure ends up in the returned ``CheckResult``.
    """

    def __init__(
        self,
        tls_validator: Optional[TlsValidator] = None,
        dns_validator: Optional[DnsValidator] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.tls_validator = tls_validator or TlsValidator()
        self.dns_validator = dns_validator or DnsValidator()
        self._transport = transport

    async def run(self, policy: CheckPolicy) -> CheckResult:
        """Check one target."""
        outcome = await self._request(policy)

        domain = None
        if policy.verify_domain:
            domain = await self.dns_validator.check(policy.url, policy.timeout)

        certificate = None
        if policy.verify_ssl:
            certificate = await self.tls_validator.check(policy.url, policy.timeout)

        verdict = classify(policy, outcome, domain=domain, certificate=certificate)

        result = {
            "target_id": policy.target_id,
            "status": verdict.status,
            "response_time": outcome.elapsed_ms,
            "error_message": verdict.message,
        }
        if isinstance(outcome, HttpResponse):
            result["status_code"] = outcome.status_code
        if isinstance(domain, DomainResolved):
            result["domain_valid"] = True
        elif isinstance(domain, DnsError):
            result.update(domain_valid=False, domain_error=domain.message)
        if isinstance(certificate, CertificateInfo):
            result.update(
                ssl_valid=certificate.valid,
                ssl_expires_at=certificate.expires_at,
                ssl_issuer=certificate.issuer,
                ssl_days_remaining=certificate.days_remaining,
            )
        elif isinstance(certificate, TlsError):
            result["ssl_valid"] = False

        logger.debug(f"Target {policy.name}: {verdict.status}")
        return CheckResult(**result)

    def _build_request(self, policy: CheckPolicy) -> dict:
        headers = {"User-Agent": USER_AGENT}
        headers.update(policy.request_headers)
        request = {"method": policy.http_method, "url": policy.url, "headers": headers}

        if policy.request_body and policy.http_method in BODY_METHODS:
            body = render_body(policy.request_body)
            try:
                json.loads(body)
            except json.JSONDecodeError:
                pass
            else:
                if not any(name.lower() == "content-type" for name in headers):
                    headers["Content-Type"] = "application/json"
            request["content"] = body
        return request

    async def _request(self, policy: CheckPolicy) -> HttpOutcome:
        """Perform the HTTP exchange, bounded as a whole by the target timeout."""
        request = self._build_request(policy)
        # A jar that refuses every cookie, so nothing is carried across redirects
        cookies = None if policy.keep_cookies else CookieJar(policy=DefaultCookiePolicy(allowed_domains=[]))
        start = time.monotonic()

        def elapsed() -> int:
            return int((time.monotonic() - start) * 1000)

        try:
            # Certificate trust is the TLS validator's job, not the request's
            async with httpx.AsyncClient(
                timeout=policy.timeout,
                follow_redirects=policy.follow_redirects,
                max_redirects=MAX_REDIRECTS,
                verify=False,
                cookies=cookies,
                transport=self._transport,
            ) as client:
                response = await asyncio.wait_for(client.request(**request), timeout=policy.timeout)
                elapsed_ms = elapsed()

            body = _decode_body(response) if policy.alert.kind in KEYWORD_KINDS else None
            return HttpResponse(
                status_code=response.status_code,
                reason=response.reason_phrase,
                elapsed_ms=elapsed_ms,
                body=body,
            )

        except (asyncio.TimeoutError, httpx.TimeoutException):
            return NetworkError("Request timeout", elapsed())
        except httpx.ConnectError as e:
            return NetworkError(f"Connection error: {e}", elapsed())
        except httpx.TooManyRedirects:
            return NetworkError(f"Too many redirects (max {MAX_REDIRECTS})", elapsed())
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
            return NetworkError(f"Invalid URL: {e}", elapsed())
        except httpx.HTTPError as e:
            return NetworkError(str(e) or type(e).__name__, elapsed())
        except Exception as e:
            logger.warning(f"Unexpected probe failure for {policy.name}: {type(e).__name__}: {e}")
            return NetworkError(str(e) or type(e).__name__, elapsed())
