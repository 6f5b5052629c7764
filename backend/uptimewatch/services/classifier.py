"""Status classifier - turns a probe outcome into operational/degraded/down.

The base verdict comes from the target's alert policy. Overlays then run in
order and may only make the verdict worse:

1. slow response  - operational becomes degraded past 80% of the timeout
2. DNS            - resolution failure forces down
3. TLS            - invalid certificate forces down, near expiry degrades

Messages from every step accumulate, joined by "; ".
"""
from dataclasses import dataclass, field
from functools import reduce
from typing import Callable, List, Optional, Tuple

from ..schemas.target import CheckPolicy
from .outcomes import (
    CertificateInfo,
    DnsError,
    DnsOutcome,
    HttpOutcome,
    HttpResponse,
    NetworkError,
    TlsError,
    TlsOutcome,
)

OPERATIONAL = "operational"
DEGRADED = "degraded"
DOWN = "down"

SLOW_RESPONSE_RATIO = 0.8


@dataclass
class Verdict:
    """Classification result, mutated by overlays until returned."""
    status: str
    messages: List[str] = field(default_factory=list)

    @property
    def message(self) -> Optional[str]:
        return "; ".join(self.messages) if self.messages else None

    def worsen(self, status: str, message: Optional[str] = None) -> None:
        if status == DOWN or (status == DEGRADED and self.status == OPERATIONAL):
            self.status = status
        if message:
            self.messages.append(message)


@dataclass(frozen=True)
class Evidence:
    """Everything gathered during one check."""
    policy: CheckPolicy
    outcome: HttpOutcome
    domain: Optional[DnsOutcome] = None
    certificate: Optional[TlsOutcome] = None


Overlay = Callable[[Verdict, Evidence], Verdict]


def base_verdict(policy: CheckPolicy, outcome: HttpOutcome) -> Verdict:
    """Apply the alert policy to the HTTP outcome."""
    if isinstance(outcome, NetworkError):
        return Verdict(DOWN, [outcome.message])

    alert = policy.alert
    if alert.kind in ("contains_keyword", "not_contains_keyword"):
        keyword = alert.keyword or ""
        if not keyword:
            return Verdict(OPERATIONAL)
        # A body that is not text can never contain the keyword
        found = outcome.body is not None and keyword in outcome.body
        if alert.kind == "contains_keyword" and found:
            return Verdict(DOWN, [f'Response contains keyword "{keyword}"'])
        if alert.kind == "not_contains_keyword" and not found:
            return Verdict(DOWN, [f'Response does not contain keyword "{keyword}"'])
        return Verdict(OPERATIONAL)

    if alert.kind == "http_status_other_than":
        expected = alert.expected_statuses
        if outcome.status_code not in expected:
            listed = ", ".join(str(code) for code in expected)
            return Verdict(DOWN, [f"HTTP {outcome.status_code} (expected {listed})"])
        return Verdict(OPERATIONAL)

    # unavailable
    if outcome.status_code >= 500:
        reason = f": {outcome.reason}" if outcome.reason else ""
        return Verdict(DOWN, [f"HTTP {outcome.status_code}{reason}"])
    return Verdict(OPERATIONAL)


def slow_response_overlay(verdict: Verdict, evidence: Evidence) -> Verdict:
    outcome = evidence.outcome
    if (
        verdict.status == OPERATIONAL
        and isinstance(outcome, HttpResponse)
        and outcome.elapsed_ms > evidence.policy.timeout * 1000 * SLOW_RESPONSE_RATIO
    ):
        verdict.worsen(DEGRADED)
    return verdict


def dns_overlay(verdict: Verdict, evidence: Evidence) -> Verdict:
    if evidence.policy.verify_domain and isinstance(evidence.domain, DnsError):
        verdict.worsen(DOWN, f"Domain verification failed: {evidence.domain.message}")
    return verdict


def tls_overlay(verdict: Verdict, evidence: Evidence) -> Verdict:
    certificate = evidence.certificate
    if not evidence.policy.verify_ssl or certificate is None:
        return verdict

    if isinstance(certificate, TlsError):
        verdict.worsen(DOWN, f"SSL: {certificate.message}")
    elif isinstance(certificate, CertificateInfo):
        if not certificate.valid:
            if certificate.days_remaining <= 0:
                reason = "Certificate expired"
            else:
                reason = certificate.error or "Certificate not trusted"
            verdict.worsen(DOWN, f"SSL: {reason}")
        elif certificate.days_remaining <= evidence.policy.ssl_expiry_threshold:
            verdict.worsen(DEGRADED, f"SSL certificate expires in {certificate.days_remaining} days")
    return verdict


OVERLAYS: Tuple[Overlay, ...] = (slow_response_overlay, dns_overlay, tls_overlay)


def classify(
    policy: CheckPolicy,
    outcome: HttpOutcome,
    domain: Optional[DnsOutcome] = None,
    certificate: Optional[TlsOutcome] = None,
) -> Verdict:
    """Classify one check: base verdict folded through ``OVERLAYS``."""
    evidence = Evidence(policy=policy, outcome=outcome, domain=domain, certificate=certificate)
    return reduce(lambda verdict, overlay: overlay(verdict, evidence), OVERLAYS, base_verdict(policy, outcome))
