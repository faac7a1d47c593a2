"""FastAPI entry point exposing the similar products endpoint."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.cli.output import JSONOutputFormatter
from src.fetcher.errors import InvalidProductIdError
from src.models.config import ConfigManager, ServiceConfig
from src.service.factory import build_service, create_http_client


def create_app(
    config: Optional[ServiceConfig] = None,
    upstream_transport: Optional[httpx.AsyncBaseTransport] = None
) -> FastAPI:
    """
    Create the API application.

    The service graph is built on startup and the upstream HTTP client is
    closed on shutdown.

    Args:
        config: Service configuration (defaults to config/config.yaml + env)
        upstream_transport: Optional httpx transport for the upstream client

    Returns:
        FastAPI application
    """
    config = config or ConfigManager().config
    formatter = JSONOutputFormatter()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        async with create_http_client(config, transport=upstream_transport) as http_client:
            app.state.components = build_service(config, http_client)
            yield

    app = FastAPI(title="Similar Products API", lifespan=lifespan)

    @app.get("/product/{product_id}/similar")
    async def get_similar_products(product_id: str, request: Request):
        """Details of the products similar to product_id, as a JSON array."""
        components = request.app.state.components
        components.logger.log("controller_similar_request", logging.DEBUG, product_id=product_id)

        try:
            products = await components.service.get_similar_products(product_id)
        except InvalidProductIdError as e:
            return JSONResponse(status_code=400, content={"detail": str(e)})
        except Exception as e:
            # Lenient contract: callers always get a list
            components.logger.log("controller_error", logging.ERROR, product_id=product_id,
                                  error=f"{type(e).__name__}: {e}")
            return []

        return formatter.format(products)

    @app.get("/health")
    async def health(request: Request):
        """Health check with circuit states and cache statistics."""
        return request.app.state.components.health()

    return app
