"""Unit tests for product detail parsing and lookup outcomes."""

from decimal import Decimal

import pytest

from src.models.data_models import (
    LookupOutcome,
    LookupStatus,
    ProductDetail,
    parse_candidate_ids,
)
from tests.fixtures.sample_data import product_payload


class TestProductDetail:

    def test_from_payload(self):
        detail = ProductDetail.from_payload(product_payload("1", price=9.99))

        assert detail == ProductDetail(id="1", name="Product 1", price=Decimal("9.99"),
                                       availability=True)

    def test_numeric_id_is_normalized_to_string(self):
        payload = product_payload("7")
        payload["id"] = 7

        assert ProductDetail.from_payload(payload).id == "7"

    def test_price_may_be_absent(self):
        payload = product_payload("5")
        payload["price"] = None

        assert ProductDetail.from_payload(payload).price is None

    def test_extra_fields_are_ignored(self):
        payload = product_payload("1")
        payload["color"] = "red"

        assert ProductDetail.from_payload(payload).name == "Product 1"

    @pytest.mark.parametrize("field,value", [
        ("id", None),
        ("id", ""),
        ("name", None),
        ("name", 12),
        ("availability", "yes"),
        ("availability", None),
        ("price", "cheap"),
        ("price", -1),
        ("price", True),
        ("price", float("nan")),
    ])
    def test_rejects_invalid_fields(self, field, value):
        payload = product_payload("1")
        payload[field] = value

        with pytest.raises(ValueError):
            ProductDetail.from_payload(payload)

    def test_rejects_non_object(self):
        with pytest.raises(ValueError, match="Expected JSON object"):
            ProductDetail.from_payload(["1"])

    def test_to_dict(self):
        detail = ProductDetail(id="3", name="Product 3", price=Decimal("30.5"),
                               availability=False)

        assert detail.to_dict() == {
            "id": "3",
            "name": "Product 3",
            "price": 30.5,
            "availability": False,
        }

    def test_to_dict_keeps_missing_price(self):
        detail = ProductDetail(id="5", name="Product 5", price=None, availability=True)

        assert detail.to_dict()["price"] is None


class TestParseCandidateIds:

    def test_preserves_order_and_duplicates(self):
        assert parse_candidate_ids(["3", "1", "3"]) == ["3", "1", "3"]

    def test_numeric_ids_become_strings(self):
        assert parse_candidate_ids([2, "3"]) == ["2", "3"]

    def test_empty_list(self):
        assert parse_candidate_ids([]) == []

    @pytest.mark.parametrize("payload", [{"ids": []}, "1,2", None, [None], [True], [{"id": 1}]])
    def test_rejects_malformed_bodies(self, payload):
        with pytest.raises(ValueError):
            parse_candidate_ids(payload)


class TestLookupOutcome:

    def test_success(self):
        outcome = LookupOutcome.success(["2"])

        assert outcome.status is LookupStatus.SUCCESS
        assert outcome.is_success
        assert outcome.value == ["2"]
        assert outcome.fault is None

    def test_absent(self):
        outcome = LookupOutcome.absent()

        assert outcome.status is LookupStatus.ABSENT
        assert not outcome.is_success
        assert outcome.fault == "not_found"

    def test_unavailable_carries_fallback(self):
        outcome = LookupOutcome.unavailable("timeout", [])

        assert outcome.status is LookupStatus.UNAVAILABLE
        assert outcome.value == []
        assert outcome.fault == "timeout"
