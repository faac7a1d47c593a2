"""Pytest configuration and shared fixtures."""

import random

import pytest


@pytest.fixture(scope="session")
def deterministic_seed():
    """Set a fixed random seed for deterministic test results."""
    random.seed(42)
    return 42


@pytest.fixture
def sample_config():
    """Provide a configuration with short deadlines and no backoff."""
    from src.models.config import ServiceConfig
    from tests.fixtures.sample_data import PRODUCT_DETAIL_URL, SIMILAR_IDS_URL

    return ServiceConfig(
        similar_ids_url=SIMILAR_IDS_URL,
        product_detail_url=PRODUCT_DETAIL_URL,
        request_timeout=0.2,
        timeout_multiplier=2,
        max_retries=3,
        retry_base_delay=0.0,
        retry_max_delay=0.0,
        retry_jitter_max=0.0,
        circuit_breaker_window_size=10,
        circuit_breaker_minimum_calls=5,
        circuit_breaker_failure_rate=0.5,
        circuit_breaker_cooldown=10.0,
        parallelism_factor=4,
        log_level="WARNING",
    )
