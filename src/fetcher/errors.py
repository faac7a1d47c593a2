"""Upstream fault taxonomy.

Every transport-level failure is classified into one of these before it
leaves the gateway.
"""

from typing import Optional


class UpstreamFault(Exception):
    """Base exception for upstream lookup failures."""

    kind = "upstream"
    retryable = True

    def __init__(self, message: str, dependency: Optional[str] = None):
        self.dependency = dependency
        super().__init__(message)


class NotFoundFault(UpstreamFault):
    """Upstream answered 404. A definitive business outcome."""

    kind = "not_found"
    retryable = False


class TimeoutFault(UpstreamFault):
    """Call exceeded its deadline."""

    kind = "timeout"

    def __init__(self, dependency: str, timeout: float):
        self.timeout = timeout
        super().__init__(
            f"Request to '{dependency}' timed out after {timeout}s",
            dependency=dependency,
        )


class UpstreamStatusFault(UpstreamFault):
    """Upstream answered with a non-2xx status other than 404."""

    kind = "upstream"

    def __init__(self, dependency: str, status_code: int, retryable: bool = True):
        self.status_code = status_code
        self.retryable = retryable
        super().__init__(
            f"Upstream '{dependency}' returned HTTP {status_code}",
            dependency=dependency,
        )


class MalformedPayloadFault(UpstreamFault):
    """Upstream answered 2xx with a body that does not parse."""

    kind = "malformed"


class ConnectionFault(UpstreamFault):
    """Connection could not be established or was dropped."""

    kind = "connection"


class CircuitOpenFault(UpstreamFault):
    """Synthetic fault raised by the breaker. Never retried."""

    kind = "circuit_open"
    retryable = False

    def __init__(self, dependency: str):
        super().__init__(f"Circuit breaker open for '{dependency}'", dependency=dependency)


class InvalidProductIdError(ValueError):
    """Product id rejected before any network call."""

    def __init__(self, product_id: object):
        self.product_id = product_id
        super().__init__(f"Invalid product id: {product_id!r}")
