"""Unit tests for JSON output formatter."""

import json
from decimal import Decimal

import pytest

from src.cli.output import JSONOutputFormatter
from src.models.data_models import ProductDetail


@pytest.fixture
def products():
    return [
        ProductDetail(id="2", name="Dress", price=Decimal("19.99"), availability=True),
        ProductDetail(id="5", name="Leather jacket", price=None, availability=False),
    ]


def test_format_preserves_order_and_shape(products):
    formatter = JSONOutputFormatter()

    assert formatter.format(products) == [
        {"id": "2", "name": "Dress", "price": 19.99, "availability": True},
        {"id": "5", "name": "Leather jacket", "price": None, "availability": False},
    ]


def test_format_empty():
    assert JSONOutputFormatter().format([]) == []


def test_dumps_is_valid_json(products):
    output = JSONOutputFormatter().dumps(products)

    assert json.loads(output)[1]["price"] is None


def test_save_creates_parent_directories(tmp_path, products):
    path = tmp_path / "out" / "nested" / "similar.json"

    JSONOutputFormatter().save(products, str(path))

    assert [p["id"] for p in json.loads(path.read_text())] == ["2", "5"]
