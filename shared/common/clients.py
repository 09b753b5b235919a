# shared/common/clients.py
"""
Upstream HTTP Clients

JSON-over-HTTP access to third-party APIs with a per-upstream circuit
breaker. Breaker state is shared by every client instance for the same
upstream within a worker process.
"""

import logging
import threading
import time
from typing import Any, Dict, Optional

import httpx
from django.conf import settings

logger = logging.getLogger(__name__)


# =============================================================================
# CIRCUIT BREAKER
# =============================================================================

class CircuitBreakerError(Exception):
    """Upstream is short-circuited after repeated failures."""
    pass


class CircuitBreaker:
    """
    Open after ``failure_threshold`` consecutive failures; allow one trial
    request after ``reset_seconds``; close again on a successful trial.
    """

    CLOSED = 'closed'
    OPEN = 'open'
    HALF_OPEN = 'half_open'

    def __init__(self, name: str, failure_threshold: int = 5, reset_seconds: float = 30.0):
        self.name = name
        self.failure_threshold = failure_threshold
        self.reset_seconds = reset_seconds
        self.state = self.CLOSED
        self.failures = 0
        self.opened_at: Optional[float] = None
        self._lock = threading.Lock()

    def allow_request(self) -> bool:
        with self._lock:
            if self.state != self.OPEN:
                return True
            if time.monotonic() - self.opened_at >= self.reset_seconds:
                self.state = self.HALF_OPEN
                logger.info(f"Circuit for {self.name} half-open, allowing a trial request")
                return True
            return False

    def record_success(self):
        with self._lock:
            if self.state != self.CLOSED:
                logger.info(f"Circuit for {self.name} closed")
            self.state = self.CLOSED
            self.failures = 0
            self.opened_at = None

    def record_failure(self):
        with self._lock:
            self.failures += 1
            if self.state == self.HALF_OPEN or self.failures >= self.failure_threshold:
                self.state = self.OPEN
                self.opened_at = time.monotonic()
                logger.warning(
                    f"Circuit for {self.name} opened after {self.failures} failures",
                    extra={'upstream': self.name}
                )


_breakers: Dict[str, CircuitBreaker] = {}
_breakers_lock = threading.Lock()


def get_circuit_breaker(name: str) -> CircuitBreaker:
    """Process-wide breaker for an upstream."""
    with _breakers_lock:
        if name not in _breakers:
            _breakers[name] = CircuitBreaker(
                name,
                failure_threshold=getattr(settings, 'UPSTREAM_FAILURE_THRESHOLD', 5),
                reset_seconds=getattr(settings, 'UPSTREAM_RESET_SECONDS', 30),
            )
        return _breakers[name]


# =============================================================================
# BASE CLIENT
# =============================================================================

class BaseServiceClient:
    """
    Synchronous JSON client for one upstream.

    Every request carries a timeout. Non-2xx responses raise
    ``httpx.HTTPStatusError`` and transport failures raise
    ``httpx.RequestError``; an undecodable body raises ``ValueError``.
    Server errors, rate limiting and transport failures count against the
    circuit breaker.
    """

    def __init__(self, service_name: str, base_url: str, timeout: float = 10.0, connect_timeout: float = 5.0):
        self.service_name = service_name
        self.base_url = base_url.rstrip('/')
        self.timeout = httpx.Timeout(timeout, connect=connect_timeout)
        self.circuit_breaker = get_circuit_breaker(service_name)

    def _request(self, method: str, path: str, **kwargs) -> Any:
        if not self.circuit_breaker.allow_request():
            raise CircuitBreakerError(f"{self.service_name} is unavailable (circuit open)")

        headers = {
            'Accept': 'application/json',
            'User-Agent': getattr(settings, 'SERVICE_NAME', 'ftms'),
            **(kwargs.pop('headers', None) or {}),
        }
        started = time.monotonic()

        try:
            with httpx.Client(base_url=self.base_url, timeout=self.timeout) as client:
                response = client.request(method, path, headers=headers, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            if status_code >= 500 or status_code == 429:
                self.circuit_breaker.record_failure()
            logger.error(
                f"{self.service_name} returned {status_code} for {method} {path}",
                extra={'upstream': self.service_name, 'status_code': status_code}
            )
            raise
        except httpx.RequestError as e:
            self.circuit_breaker.record_failure()
            logger.error(
                f"{self.service_name} request failed for {method} {path}: {e!r}",
                extra={'upstream': self.service_name}
            )
            raise

        self.circuit_breaker.record_success()
        logger.debug(
            f"{self.service_name} {method} {path} took {(time.monotonic() - started) * 1000:.0f}ms"
        )
        return response.json()

    def get(self, path: str, params: Dict = None, headers: Dict = None) -> Any:
        return self._request('GET', path, params=params, headers=headers or {})

    def post(self, path: str, data: Dict = None, headers: Dict = None) -> Any:
        return self._request('POST', path, json=data, headers=headers or {})
