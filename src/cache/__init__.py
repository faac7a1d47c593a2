"""In-memory result cache tiers."""

from .result_cache import (
    PRODUCT_DETAILS,
    SIMILAR_IDS,
    SIMILAR_PRODUCTS,
    CacheEntry,
    ResultCache,
    TTLCache,
)

__all__ = [
    "CacheEntry",
    "PRODUCT_DETAILS",
    "ResultCache",
    "SIMILAR_IDS",
    "SIMILAR_PRODUCTS",
    "TTLCache",
]
