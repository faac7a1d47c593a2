"""Structured logging for service monitoring."""

import json
import logging
from typing import Any, Optional


class StructuredLogger:
    """Structured logger with uniform schema."""

    def __init__(self, name: str = "similar_products", level: str = "INFO"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, level.upper()))

        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter('%(message)s'))
            self.logger.addHandler(handler)

    def log(self, event: str, level: int = logging.INFO, **kwargs) -> None:
        """
        Log structured event.

        Standard keys: event, source, product_id, status, fault, attempt,
                      elapsed_ms, cb_state, count, tier
        """
        if not self.logger.isEnabledFor(level):
            return
        log_data = {"event": event, **kwargs}
        self.logger.log(level, json.dumps(log_data, default=str))

    def lookup_start(self, source: str, product_id: str) -> None:
        self.log("lookup_start", logging.DEBUG, source=source, product_id=product_id)

    def lookup_success(self, source: str, product_id: str, elapsed_ms: float) -> None:
        self.log("lookup_success", logging.DEBUG, source=source, product_id=product_id,
                 elapsed_ms=elapsed_ms)

    def lookup_not_found(self, source: str, product_id: str) -> None:
        self.log("lookup_not_found", logging.WARNING, source=source, product_id=product_id)

    def lookup_error(self, source: str, product_id: str, status: Optional[int],
                     fault: str, error: str, attempt: int) -> None:
        event = "lookup_timeout" if fault == "timeout" else "lookup_error"
        self.log(event, logging.WARNING, source=source, product_id=product_id,
                 status=status, fault=fault, error=error, attempt=attempt)

    def cache_hit(self, tier: str, key: str) -> None:
        self.log("cache_hit", logging.DEBUG, tier=tier, key=key)

    def circuit_breaker_state(self, source: str, state: str) -> None:
        self.log("circuit_breaker", logging.WARNING, source=source, cb_state=state)

    def fallback(self, source: str, product_id: str, reason: str, fault: Optional[str]) -> None:
        self.log("fallback", logging.WARNING, source=source, product_id=product_id,
                 reason=reason, fault=fault)

    def similar_request(self, product_id: str) -> None:
        self.log("similar_request", logging.DEBUG, product_id=product_id)

    def similar_result(self, product_id: str, count: int, elapsed_ms: float) -> None:
        self.log("similar_result", logging.DEBUG, product_id=product_id, count=count,
                 elapsed_ms=elapsed_ms)

    def similar_degraded(self, product_id: str, reason: str, **extra: Any) -> None:
        self.log("similar_degraded", logging.WARNING, product_id=product_id, reason=reason,
                 **extra)

    def aggregate_timeout(self, product_id: str, timeout: float) -> None:
        self.log("aggregate_timeout", logging.WARNING, product_id=product_id, timeout=timeout)
