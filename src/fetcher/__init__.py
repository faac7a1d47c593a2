"""Upstream access with retry, circuit breaking and timeouts."""

from .circuit_breaker import CircuitBreaker
from .http_client import AsyncHTTPClient
from .retry_handler import RetryHandler

__all__ = ["AsyncHTTPClient", "CircuitBreaker", "RetryHandler"]
