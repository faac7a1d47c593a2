"""Resilient gateways in front of the two product upstreams.

Every call goes through the same fixed stack, outermost first:

    cache -> retry -> circuit breaker -> timeout -> HTTP GET

so transient faults are retried before anything is cached, and only
success or not-found outcomes ever reach the cache.
"""

import asyncio
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar
from urllib.parse import quote

import httpx

from src.cache.result_cache import PRODUCT_DETAILS, SIMILAR_IDS, ResultCache
from src.fetcher.circuit_breaker import CircuitBreaker
from src.fetcher.errors import (
    CircuitOpenFault,
    ConnectionFault,
    MalformedPayloadFault,
    NotFoundFault,
    TimeoutFault,
    UpstreamFault,
    UpstreamStatusFault,
)
from src.fetcher.http_client import AsyncHTTPClient
from src.fetcher.retry_handler import RetryHandler
from src.models.data_models import (
    FallbackEvent,
    HalfOpenToken,
    LookupOutcome,
    ProductDetail,
    parse_candidate_ids,
)

V = TypeVar("V")

FallbackListener = Callable[[FallbackEvent], None]


class UpstreamGateway(Generic[V]):
    """
    Wraps one upstream dependency behind ``call(product_id) -> LookupOutcome``.

    Outcomes:
    - SUCCESS: upstream answered 2xx with a parseable body
    - ABSENT: upstream answered 404
    - UNAVAILABLE: anything else (timeout, 5xx, connection error, malformed
      body, open circuit); ``value`` carries the dependency fallback

    Concurrent calls for the same uncached id share one in-flight lookup.
    """

    name = "upstream"
    cache_tier = ""

    def __init__(
        self,
        url_template: str,
        http_client: AsyncHTTPClient,
        circuit_breaker: CircuitBreaker,
        retry_handler: RetryHandler,
        cache: ResultCache,
        request_timeout: float = 1.5,
        retryable_status_codes: Optional[List[int]] = None,
        logger: Optional['StructuredLogger'] = None,
        on_fallback: Optional[FallbackListener] = None
    ):
        """
        Initialize gateway.

        Args:
            url_template: Upstream URL with a ``{product_id}`` placeholder
            http_client: Client used for the raw GET
            circuit_breaker: Breaker shared by every call to this dependency
            retry_handler: Bounded retry policy
            cache: Cache holding this gateway's tier
            request_timeout: Per-attempt deadline in seconds
            retryable_status_codes: Non-5xx statuses that are worth retrying
            logger: Optional structured logger for telemetry
            on_fallback: Optional listener for fallback events
        """
        self.url_template = url_template
        self.http_client = http_client
        self.circuit_breaker = circuit_breaker
        self.retry_handler = retry_handler
        self.cache = cache
        self.request_timeout = request_timeout
        self.retryable_status_codes = frozenset(
            retryable_status_codes if retryable_status_codes is not None else [429]
        )
        self.logger = logger
        self.on_fallback = on_fallback
        self._inflight: Dict[str, "asyncio.Future[LookupOutcome[V]]"] = {}

    def parse(self, payload: Any) -> V:
        """Turn a decoded JSON body into the dependency value. Raises ValueError."""
        raise NotImplementedError

    def fallback(self) -> Optional[V]:
        """Value handed out when the dependency is unavailable."""
        return None

    async def call(self, product_id: str) -> LookupOutcome[V]:
        """
        Look up ``product_id`` through cache, retry, breaker and timeout.

        Never raises for upstream faults. Cancelling the caller does not
        cancel a lookup shared with other callers.
        """
        cached = self.cache.get(self.cache_tier, product_id)
        if cached is not None:
            if self.logger:
                self.logger.cache_hit(tier=self.cache_tier, key=product_id)
            return cached

        task = self._inflight.get(product_id)
        if task is None:
            task = asyncio.ensure_future(self._resolve(product_id))
            self._inflight[product_id] = task
            task.add_done_callback(lambda done: self._forget(product_id, done))

        return await asyncio.shield(task)

    def _forget(self, product_id: str, task: "asyncio.Future[LookupOutcome[V]]") -> None:
        if self._inflight.get(product_id) is task:
            del self._inflight[product_id]

    async def _resolve(self, product_id: str) -> LookupOutcome[V]:
        """Run the retry loop and cache definitive outcomes."""
        attempt = 0

        async def attempt_once() -> V:
            nonlocal attempt
            try:
                return await self._guarded_attempt(product_id)
            except (NotFoundFault, CircuitOpenFault):
                raise
            except UpstreamFault as e:
                self._log_fault(product_id, e, attempt)
                raise
            finally:
                attempt += 1

        if self.logger:
            self.logger.lookup_start(source=self.name, product_id=product_id)

        try:
            value = await self.retry_handler.execute(attempt_once)
        except NotFoundFault:
            if self.logger:
                self.logger.lookup_not_found(source=self.name, product_id=product_id)
            outcome: LookupOutcome[V] = LookupOutcome.absent()
        except CircuitOpenFault as e:
            self._emit_fallback(product_id, "circuit_open", e)
            return LookupOutcome.unavailable(e.kind, self.fallback())
        except UpstreamFault as e:
            self._emit_fallback(product_id, "retries_exhausted", e)
            return LookupOutcome.unavailable(e.kind, self.fallback())
        else:
            outcome = LookupOutcome.success(value)

        self.cache.put(self.cache_tier, product_id, outcome)
        return outcome

    async def _guarded_attempt(self, product_id: str) -> V:
        """One attempt behind the circuit breaker."""
        permit = self.circuit_breaker.should_allow(self.name)
        if permit is False:
            raise CircuitOpenFault(self.name)
        token = permit if isinstance(permit, HalfOpenToken) else None

        try:
            value = await self._attempt(product_id)
        except NotFoundFault:
            # The upstream answered definitively, so it is healthy
            self.circuit_breaker.record_success(self.name, token=token)
            raise
        except Exception:
            self.circuit_breaker.record_failure(self.name, token=token)
            raise
        except asyncio.CancelledError:
            if token is not None:
                self.circuit_breaker.release(self.name, token)
            raise

        self.circuit_breaker.record_success(self.name, token=token)
        return value

    async def _attempt(self, product_id: str) -> V:
        """
        One raw GET under the per-attempt deadline.

        Raises:
            NotFoundFault: On 404
            UpstreamStatusFault: On any other non-2xx status
            TimeoutFault: On deadline exceeded
            ConnectionFault: On transport errors
            MalformedPayloadFault: On a body that does not parse
        """
        url = self.url_template.format(product_id=quote(product_id, safe=""))
        loop = asyncio.get_running_loop()
        start = loop.time()

        try:
            response = await asyncio.wait_for(
                self.http_client.get(url),
                timeout=self.request_timeout
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            raise TimeoutFault(self.name, self.request_timeout) from None
        except httpx.TransportError as e:
            raise ConnectionFault(f"{type(e).__name__}: {e}", dependency=self.name) from e

        status_code = response.status_code
        if status_code == 404:
            raise NotFoundFault(f"{self.name}: product {product_id} not found", dependency=self.name)
        if not 200 <= status_code < 300:
            retryable = status_code >= 500 or status_code in self.retryable_status_codes
            raise UpstreamStatusFault(self.name, status_code, retryable=retryable)

        try:
            value = self.parse(response.json())
        except ValueError as e:
            raise MalformedPayloadFault(
                f"{self.name}: malformed body for {product_id}: {e}",
                dependency=self.name
            ) from e

        if self.logger:
            self.logger.lookup_success(
                source=self.name,
                product_id=product_id,
                elapsed_ms=(loop.time() - start) * 1000
            )
        return value

    def _log_fault(self, product_id: str, error: UpstreamFault, attempt: int) -> None:
        if self.logger:
            self.logger.lookup_error(
                source=self.name,
                product_id=product_id,
                status=getattr(error, "status_code", None),
                fault=error.kind,
                error=str(error),
                attempt=attempt
            )

    def _emit_fallback(self, product_id: str, reason: str, error: UpstreamFault) -> None:
        event = FallbackEvent(
            dependency=self.name,
            product_id=product_id,
            reason=reason,
            fault=error.kind,
        )
        if self.logger:
            self.logger.fallback(
                source=self.name,
                product_id=product_id,
                reason=reason,
                fault=error.kind
            )
        if self.on_fallback:
            self.on_fallback(event)


class IdentityLookup(UpstreamGateway[List[str]]):
    """Fetches the ordered list of ids similar to a product."""

    name = "similar-ids"
    cache_tier = SIMILAR_IDS

    def parse(self, payload: Any) -> List[str]:
        return parse_candidate_ids(payload)

    def fallback(self) -> List[str]:
        return []


class DetailLookup(UpstreamGateway[ProductDetail]):
    """Fetches one product's detail."""

    name = "product-detail"
    cache_tier = PRODUCT_DETAILS

    def parse(self, payload: Any) -> ProductDetail:
        return ProductDetail.from_payload(payload)
