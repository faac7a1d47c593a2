"""Similar products orchestration."""

from .similar_products import SimilarProductsService, validate_product_id

__all__ = ["SimilarProductsService", "validate_product_id"]
