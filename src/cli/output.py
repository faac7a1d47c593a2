"""JSON output formatter for similar products results.

Shared by the HTTP entry point and the CLI so both emit the same shape:

    [
        {"id": "3", "name": "Product 3", "price": 30.0, "availability": false}
    ]
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Sequence

from src.models.data_models import ProductDetail


class JSONOutputFormatter:
    """Formats ProductDetail sequences as JSON-compatible structures."""

    def format(self, products: Sequence[ProductDetail]) -> List[Dict[str, Any]]:
        """
        Format products as a JSON-serializable list.

        Args:
            products: Aggregated product details

        Returns:
            One dictionary per product, order preserved
        """
        return [product.to_dict() for product in products]

    def dumps(self, products: Sequence[ProductDetail], indent: int = 2) -> str:
        """Serialize products to a JSON string."""
        return json.dumps(self.format(products), indent=indent, ensure_ascii=False)

    def save(self, products: Sequence[ProductDetail], path: str) -> None:
        """
        Save formatted products to a JSON file.

        Creates parent directories if they don't exist.

        Args:
            products: Product details to save
            path: Output file path
        """
        output_path = Path(path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(self.dumps(products))
