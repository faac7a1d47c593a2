"""Similar products aggregation: existence check, discovery, bounded fan-out."""

import asyncio
import re
from typing import List, Optional, Tuple

from src.cache.result_cache import SIMILAR_PRODUCTS, ResultCache
from src.fetcher.errors import InvalidProductIdError
from src.fetcher.gateway import DetailLookup, IdentityLookup
from src.models.data_models import LookupOutcome, LookupStatus, ProductDetail

_INVALID_ID_CHARS = re.compile(r"[\s/\x00-\x1f\x7f]")


def validate_product_id(product_id: object) -> str:
    """
    Reject ids that can never address a product.

    Raises:
        InvalidProductIdError: If the id is not a non-empty string free of
            slashes, whitespace and control characters
    """
    if not isinstance(product_id, str) or not product_id:
        raise InvalidProductIdError(product_id)
    if _INVALID_ID_CHARS.search(product_id):
        raise InvalidProductIdError(product_id)
    return product_id


class SimilarProductsService:
    """
    Builds the list of similar product details for a seed product.

    ``get_similar_products`` never raises for upstream trouble: every fault
    degrades to an empty or partial list.

    - Seed not found or unverifiable: empty list, no discovery call
    - Similar ids unavailable, slow or empty: empty list, no fan-out
    - A candidate that fails to resolve: dropped, the rest are returned
    - Discovery plus fan-out over ``request_timeout * timeout_multiplier``:
      empty list

    Results keep the order of the similar ids list. Complete results are
    cached per seed; results degraded by a transient fault are not.
    """

    def __init__(
        self,
        identity_lookup: IdentityLookup,
        detail_lookup: DetailLookup,
        cache: ResultCache,
        request_timeout: float = 1.5,
        timeout_multiplier: float = 2.0,
        parallelism: int = 4,
        filter_unavailable: bool = False,
        logger: Optional['StructuredLogger'] = None
    ):
        """
        Initialize the service.

        Args:
            identity_lookup: Gateway for similar ids
            detail_lookup: Gateway for product details
            cache: Cache holding the similar products tier
            request_timeout: Budget for the similar ids lookup in seconds
            timeout_multiplier: Aggregate budget as a multiple of request_timeout
            parallelism: Maximum concurrent detail lookups per request
            filter_unavailable: Drop products whose availability is false
            logger: Optional structured logger for telemetry
        """
        if parallelism < 1:
            raise ValueError(f"parallelism must be positive, got: {parallelism}")
        self.identity_lookup = identity_lookup
        self.detail_lookup = detail_lookup
        self.cache = cache
        self.request_timeout = request_timeout
        self.aggregate_timeout = request_timeout * timeout_multiplier
        self.parallelism = parallelism
        self.filter_unavailable = filter_unavailable
        self.logger = logger

    async def get_similar_products(self, product_id: str) -> List[ProductDetail]:
        """
        Get details of the products similar to ``product_id``.

        Raises:
            InvalidProductIdError: Before any network call, for a malformed id
        """
        validate_product_id(product_id)

        cached = self.cache.get(SIMILAR_PRODUCTS, product_id)
        if cached is not None:
            if self.logger:
                self.logger.cache_hit(tier=SIMILAR_PRODUCTS, key=product_id)
            return list(cached)

        if self.logger:
            self.logger.similar_request(product_id=product_id)
        start = asyncio.get_running_loop().time()

        try:
            products, complete = await self._aggregate(product_id)
        except Exception as e:
            self._degraded(product_id, "unexpected_error", error=f"{type(e).__name__}: {e}")
            return []

        if complete:
            self.cache.put(SIMILAR_PRODUCTS, product_id, tuple(products))

        if self.logger:
            self.logger.similar_result(
                product_id=product_id,
                count=len(products),
                elapsed_ms=(asyncio.get_running_loop().time() - start) * 1000
            )
        return products

    async def _aggregate(self, product_id: str) -> Tuple[List[ProductDetail], bool]:
        """Return the products and whether the result is free of transient faults."""
        seed = await self.detail_lookup.call(product_id)
        if seed.status is LookupStatus.ABSENT:
            self._degraded(product_id, "seed_not_found")
            return [], True
        if seed.status is LookupStatus.UNAVAILABLE:
            self._degraded(product_id, "seed_unavailable", fault=seed.fault)
            return [], False

        try:
            return await asyncio.wait_for(
                self._collect(product_id),
                timeout=self.aggregate_timeout
            )
        except asyncio.TimeoutError:
            if self.logger:
                self.logger.aggregate_timeout(product_id=product_id, timeout=self.aggregate_timeout)
            return [], False

    async def _collect(self, product_id: str) -> Tuple[List[ProductDetail], bool]:
        try:
            # Same deadline as one attempt, so a timed-out first attempt is never retried
            similar = await asyncio.wait_for(
                self.identity_lookup.call(product_id),
                timeout=self.request_timeout
            )
        except asyncio.TimeoutError:
            self._degraded(product_id, "similar_ids_timeout")
            return [], False

        if similar.status is LookupStatus.ABSENT:
            self._degraded(product_id, "similar_ids_not_found")
            return [], True
        if similar.status is LookupStatus.UNAVAILABLE:
            self._degraded(product_id, "similar_ids_unavailable", fault=similar.fault)
            return [], False

        candidate_ids = similar.value or []
        if not candidate_ids:
            return [], True

        outcomes = await self._fan_out(candidate_ids)

        products = []
        complete = True
        # gather keeps submission order, so the result follows candidate_ids
        for candidate_id, outcome in zip(candidate_ids, outcomes):
            if isinstance(outcome, BaseException):
                self._degraded(product_id, "candidate_error", candidate=candidate_id,
                               error=f"{type(outcome).__name__}: {outcome}")
                complete = False
                continue
            if outcome.status is LookupStatus.UNAVAILABLE:
                complete = False
                continue
            if outcome.status is LookupStatus.ABSENT:
                continue
            detail = outcome.value
            if self.filter_unavailable and not detail.availability:
                continue
            products.append(detail)

        return products, complete

    async def _fan_out(self, candidate_ids: List[str]) -> List:
        """Resolve every candidate with at most ``parallelism`` lookups in flight."""
        semaphore = asyncio.Semaphore(self.parallelism)

        async def lookup(candidate_id: str) -> LookupOutcome[ProductDetail]:
            async with semaphore:
                return await self.detail_lookup.call(candidate_id)

        return await asyncio.gather(
            *(lookup(candidate_id) for candidate_id in candidate_ids),
            return_exceptions=True
        )

    def _degraded(self, product_id: str, reason: str, **extra) -> None:
        if self.logger:
            self.logger.similar_degraded(product_id=product_id, reason=reason, **extra)
