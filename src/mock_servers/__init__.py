"""Mock product upstreams for testing."""

from .app import DEFAULT_CATALOG, DEFAULT_SIMILAR, create_app, create_mock_app

__all__ = ["DEFAULT_CATALOG", "DEFAULT_SIMILAR", "create_app", "create_mock_app"]
