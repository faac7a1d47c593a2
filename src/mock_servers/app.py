"""FastAPI mock of the two product upstreams.

Serves ``GET /product/{id}/similarids`` and ``GET /product/{id}`` from an
in-memory catalog, with per-product latency and failure injection.
"""

import asyncio
import os
import random
from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException


DEFAULT_CATALOG: Dict[str, Dict] = {
    "1": {"id": "1", "name": "Shirt", "price": 9.99, "availability": True},
    "2": {"id": "2", "name": "Dress", "price": 19.99, "availability": True},
    "3": {"id": "3", "name": "Blazer", "price": 29.99, "availability": False},
    "4": {"id": "4", "name": "Boots", "price": 39.99, "availability": True},
    "5": {"id": "5", "name": "Leather jacket", "price": None, "availability": True},
}

DEFAULT_SIMILAR: Dict[str, List[str]] = {
    "1": ["2", "3", "4"],
    "2": ["3", "100", "1000"],
    "3": ["100", "1000", "10000"],
    "4": ["1", "2", "5"],
    "5": ["1", "2", "6"],
}


def create_mock_app(
    name: str = "mock-upstream",
    catalog: Optional[Dict[str, Dict]] = None,
    similar: Optional[Dict[str, List[str]]] = None,
    delays_ms: Optional[Dict[str, int]] = None,
    failures: Optional[Dict[str, int]] = None,
    error_rate: float = 0.0,
    random_seed: Optional[int] = None
) -> FastAPI:
    """
    Create a FastAPI mock upstream with configurable behavior.

    Args:
        name: Server name reported by /health
        catalog: Product details by id
        similar: Similar ids by product id
        delays_ms: Extra latency by product id, applied to both endpoints
        failures: HTTP status to answer with, by product id
        error_rate: Probability of a random 500/502/503 on any call
        random_seed: Seed for deterministic random errors

    Returns:
        FastAPI application
    """
    app = FastAPI(title=f"Mock Product API - {name}")
    catalog = DEFAULT_CATALOG if catalog is None else catalog
    similar = DEFAULT_SIMILAR if similar is None else similar
    delays_ms = delays_ms or {}
    failures = failures or {}
    rng = random.Random(random_seed)
    # Request counts by path, for assertions in tests
    app.state.calls = {}

    async def simulate(product_id: str, path: str) -> None:
        app.state.calls[path] = app.state.calls.get(path, 0) + 1

        delay = delays_ms.get(product_id, 0)
        if delay > 0:
            await asyncio.sleep(delay / 1000.0)

        if product_id in failures:
            raise HTTPException(status_code=failures[product_id], detail="Simulated failure")

        if rng.random() < error_rate:
            raise HTTPException(status_code=rng.choice([500, 502, 503]), detail="Simulated error")

    @app.get("/product/{product_id}/similarids")
    async def get_similar_ids(product_id: str):
        """Ordered ids similar to product_id."""
        await simulate(product_id, f"/product/{product_id}/similarids")
        if product_id not in similar:
            raise HTTPException(status_code=404, detail="Product not found")
        return similar[product_id]

    @app.get("/product/{product_id}")
    async def get_product(product_id: str):
        """Product detail."""
        await simulate(product_id, f"/product/{product_id}")
        if product_id not in catalog:
            raise HTTPException(status_code=404, detail="Product not found")
        return catalog[product_id]

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy", "server": name}

    return app


def create_app() -> FastAPI:
    """
    Factory function for uvicorn --factory.

    Reads ERROR_RATE and RANDOM_SEED from the environment.
    """
    seed = os.getenv("RANDOM_SEED")
    return create_mock_app(
        name=os.getenv("SERVER_NAME", "mock-upstream"),
        error_rate=float(os.getenv("ERROR_RATE", 0.0)),
        random_seed=int(seed) if seed is not None else None,
    )
