"""Checker service - performs one HTTP probe against a site and classifies it."""
import asyncio
import logging
import socket
import ssl
import time
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional
from urllib.parse import urlsplit

import httpx
from cryptography import x509

from ..config import settings
from ..models import MonitoredSite, CheckOutcome, AlertSeverity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckResult:
    """Immutable snapshot produced by a single probe execution."""
    outcome: CheckOutcome
    severity: AlertSeverity = AlertSeverity.NONE
    site_id: Optional[int] = None
    timestamp: Optional[datetime] = None
    status_code: Optional[int] = None
    response_time: Optional[timedelta] = None
    content_size: int = 0
    content_check_passed: bool = True
    ssl_check_passed: bool = True
    error_message: Optional[str] = None
    ssl_expiry_days: Optional[int] = None

    @property
    def response_time_ms(self) -> Optional[int]:
        if self.response_time is None:
            return None
        return int(self.response_time.total_seconds() * 1000)

    @property
    def is_success(self) -> bool:
        return self.outcome == CheckOutcome.SUCCESS

    def stamped(self, site_id: Optional[int], timestamp: Optional[datetime] = None) -> "CheckResult":
        """Copy of this result bound to a site and a check time."""
        return replace(self, site_id=site_id, timestamp=timestamp or datetime.utcnow())

    @classmethod
    def maintenance(cls, site_id: Optional[int]) -> "CheckResult":
        """Synthetic result for a site whose checks are suspended."""
        return cls(
            outcome=CheckOutcome.SUCCESS,
            severity=AlertSeverity.NONE,
            site_id=site_id,
            timestamp=datetime.utcnow(),
        )


@dataclass(frozen=True)
class CertificateStatus:
    """Result of validating a server's TLS certificate."""
    valid: bool
    expiry_days: Optional[int] = None
    error: Optional[str] = None


CertificateVerifier = Callable[[str, int], Awaitable[CertificateStatus]]


def _inspect_certificate(host: str, port: int, timeout: float) -> CertificateStatus:
    """Validate the certificate chain and hostname (blocking operation)."""
    context = ssl.create_default_context()
    try:
        with socket.create_connection((host, port), timeout=timeout) as sock:
            with context.wrap_socket(sock, server_hostname=host) as ssock:
                cert_der = ssock.getpeercert(binary_form=True)
    except ssl.SSLCertVerificationError as e:
        return CertificateStatus(valid=False, error=e.verify_message or str(e))
    except (ssl.SSLError, OSError) as e:
        return CertificateStatus(valid=False, error=str(e))

    if not cert_der:
        return CertificateStatus(valid=False, error="No certificate presented")

    cert = x509.load_der_x509_certificate(cert_der)
    expiry = cert.not_valid_after_utc
    days_remaining = (expiry - datetime.now(expiry.tzinfo)).days
    return CertificateStatus(valid=True, expiry_days=days_remaining)


class CheckerService:
    """Performs HTTP checks against monitored sites.

    The request itself does not verify certificates so that a site with a
    broken certificate is still classified from its HTTP response; the
    certificate is validated separately when the site asks for it.
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        certificate_verifier: Optional[CertificateVerifier] = None,
    ):
        self.timeout = timeout if timeout is not None else settings.probe_timeout_seconds
        self.user_agent = user_agent or settings.user_agent
        self._transport = transport
        self._verify_certificate = certificate_verifier or self._verify_certificate_default

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            follow_redirects=True,
            verify=False,
            headers={"User-Agent": self.user_agent},
            transport=self._transport,
        )

    async def check(self, site: MonitoredSite) -> CheckResult:
        """Probe a site once.

        Never raises: transport problems are reported as TIMEOUT or ERROR
        outcomes, everything else is classified from the response.
        """
        logger.debug(f"Checking site: {site.url}")
        try:
            start = time.monotonic()
            async with self._client() as client:
                response = await client.get(site.url)
            response_time = timedelta(seconds=time.monotonic() - start)
        except httpx.TimeoutException as e:
            logger.warning(f"Timeout checking {site.url}: {e!r}")
            return CheckResult(
                outcome=CheckOutcome.TIMEOUT,
                severity=AlertSeverity.HIGH,
                error_message=str(e) or "Request timeout",
            )
        except Exception as e:
            logger.warning(f"Error checking {site.url}: {e!r}")
            return CheckResult(
                outcome=CheckOutcome.ERROR,
                severity=AlertSeverity.HIGH,
                error_message=str(e) or type(e).__name__,
            )

        try:
            return await self._classify(site, response, response_time)
        except Exception as e:
            logger.error(f"Unexpected error classifying {site.url}: {e}")
            return CheckResult(
                outcome=CheckOutcome.ERROR,
                severity=AlertSeverity.HIGH,
                status_code=response.status_code,
                response_time=response_time,
                error_message=str(e) or type(e).__name__,
            )

    async def _classify(
        self,
        site: MonitoredSite,
        response: httpx.Response,
        response_time: timedelta,
    ) -> CheckResult:
        """Classify a response.

        Checks in order:
        1. HTTP status code - FAILURE if not 2xx/3xx (HIGH for 5xx, else MEDIUM)
        2. Expected content (if configured) - FAILURE, MEDIUM
        3. Response time threshold (if configured) - FAILURE, LOW
        4. Certificate validity (https sites with ssl_check) - FAILURE, HIGH
        """
        status_code = response.status_code
        body = response.content

        content_check_passed = True
        if site.content_check_enabled:
            content_check_passed = site.content_check_string in response.text

        response_time_ok = True
        if site.response_time_threshold_ms is not None:
            response_time_ok = response_time <= timedelta(milliseconds=site.response_time_threshold_ms)

        ssl_check_passed = True
        ssl_expiry_days = None
        error_message = None
        if site.ssl_check and site.is_https:
            cert_status = await self._verify_certificate_for(site.url)
            ssl_check_passed = cert_status.valid
            ssl_expiry_days = cert_status.expiry_days
            if not cert_status.valid:
                error_message = f"Certificate validation failed: {cert_status.error}"

        outcome = CheckOutcome.SUCCESS
        severity = AlertSeverity.NONE
        if not (200 <= status_code < 400):
            outcome = CheckOutcome.FAILURE
            severity = AlertSeverity.HIGH if status_code >= 500 else AlertSeverity.MEDIUM
            error_message = f"HTTP {status_code}"
        elif not content_check_passed:
            outcome = CheckOutcome.FAILURE
            severity = AlertSeverity.MEDIUM
            snippet = site.content_check_string[:50]
            error_message = f"Expected content not found: '{snippet}{'...' if len(site.content_check_string) > 50 else ''}'"
        elif not response_time_ok:
            outcome = CheckOutcome.FAILURE
            severity = AlertSeverity.LOW
            error_message = (
                f"Slow response: {int(response_time.total_seconds() * 1000)}ms "
                f"> {site.response_time_threshold_ms}ms"
            )
        elif not ssl_check_passed:
            outcome = CheckOutcome.FAILURE
            severity = AlertSeverity.HIGH

        if outcome == CheckOutcome.SUCCESS:
            error_message = None

        return CheckResult(
            outcome=outcome,
            severity=severity,
            status_code=status_code,
            response_time=response_time,
            content_size=len(body),
            content_check_passed=content_check_passed,
            ssl_check_passed=ssl_check_passed,
            error_message=error_message,
            ssl_expiry_days=ssl_expiry_days,
        )

    async def _verify_certificate_for(self, url: str) -> CertificateStatus:
        parts = urlsplit(url)
        host = parts.hostname or ""
        port = parts.port or 443
        try:
            return await self._verify_certificate(host, port)
        except Exception as e:
            logger.error(f"Error checking certificate for {url}: {e}")
            return CertificateStatus(valid=False, error=str(e))

    async def _verify_certificate_default(self, host: str, port: int) -> CertificateStatus:
        # Socket operations are blocking, run them in the thread pool
        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(None, _inspect_certificate, host, port, self.timeout),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            return CertificateStatus(valid=False, error="Certificate check timeout")
