"""Builds the service object graph from configuration."""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from src.cache.result_cache import PRODUCT_DETAILS, SIMILAR_IDS, SIMILAR_PRODUCTS, ResultCache
from src.fetcher.circuit_breaker import CircuitBreaker, Clock
from src.fetcher.gateway import DetailLookup, FallbackListener, IdentityLookup
from src.fetcher.http_client import AsyncHTTPClient
from src.fetcher.retry_handler import RetryHandler
from src.models.config import ServiceConfig
from src.monitoring.logger import StructuredLogger
from src.service.similar_products import SimilarProductsService


@dataclass
class ServiceComponents:
    """Everything one running service instance owns."""
    service: SimilarProductsService
    identity_lookup: IdentityLookup
    detail_lookup: DetailLookup
    circuit_breaker: CircuitBreaker
    cache: ResultCache
    logger: StructuredLogger

    def health(self) -> Dict[str, Any]:
        """Circuit states and cache tier statistics."""
        return {
            "status": "ok",
            "circuits": {
                name: self.circuit_breaker.state(name).value
                for name in (self.identity_lookup.name, self.detail_lookup.name)
            },
            "caches": self.cache.stats(),
        }


def create_http_client(config: ServiceConfig, transport=None) -> AsyncHTTPClient:
    """HTTP client sized and timed from configuration. Enter it before use."""
    return AsyncHTTPClient(
        connect_timeout=config.connect_timeout,
        read_timeout=config.request_timeout,
        write_timeout=config.request_timeout,
        pool_timeout=config.request_timeout,
        max_connections=config.max_connections,
        transport=transport
    )


def build_service(
    config: ServiceConfig,
    http_client: AsyncHTTPClient,
    logger: Optional[StructuredLogger] = None,
    clock: Optional[Clock] = None,
    on_fallback: Optional[FallbackListener] = None
) -> ServiceComponents:
    """
    Wire breaker, caches, gateways and aggregator.

    Every call returns an isolated graph: nothing is shared with other
    instances, so tests can build one per case.
    """
    logger = logger or StructuredLogger(level=config.log_level)

    cache = ResultCache()
    for tier_name, tier_config in (
        (SIMILAR_IDS, config.similar_ids_cache),
        (PRODUCT_DETAILS, config.product_details_cache),
        (SIMILAR_PRODUCTS, config.similar_products_cache),
    ):
        cache.add_tier(
            tier_name,
            ttl_seconds=tier_config.ttl_seconds,
            max_size=tier_config.max_size,
            clock=clock
        )

    circuit_breaker = CircuitBreaker(
        window_size=config.circuit_breaker_window_size,
        minimum_calls=config.circuit_breaker_minimum_calls,
        failure_rate_threshold=config.circuit_breaker_failure_rate,
        cooldown_seconds=config.circuit_breaker_cooldown,
        half_open_max_calls=config.circuit_breaker_half_open_calls,
        clock=clock,
        logger=logger
    )
    retry_handler = RetryHandler(
        max_attempts=config.max_retries,
        base_delay=config.retry_base_delay,
        max_delay=config.retry_max_delay,
        jitter_max=config.retry_jitter_max
    )

    gateway_options = dict(
        http_client=http_client,
        circuit_breaker=circuit_breaker,
        retry_handler=retry_handler,
        cache=cache,
        request_timeout=config.request_timeout,
        retryable_status_codes=config.retryable_status_codes,
        logger=logger,
        on_fallback=on_fallback
    )
    identity_lookup = IdentityLookup(config.similar_ids_url, **gateway_options)
    detail_lookup = DetailLookup(config.product_detail_url, **gateway_options)

    service = SimilarProductsService(
        identity_lookup,
        detail_lookup,
        cache,
        request_timeout=config.request_timeout,
        timeout_multiplier=config.timeout_multiplier,
        parallelism=config.fan_out_parallelism,
        filter_unavailable=config.filter_unavailable,
        logger=logger
    )

    return ServiceComponents(
        service=service,
        identity_lookup=identity_lookup,
        detail_lookup=detail_lookup,
        circuit_breaker=circuit_breaker,
        cache=cache,
        logger=logger
    )
