"""Unit tests for the mock product upstream."""

import pytest
from fastapi.testclient import TestClient

from src.mock_servers import DEFAULT_CATALOG, create_app, create_mock_app


class TestMockServer:

    @pytest.fixture
    def app(self):
        return create_mock_app(
            name="test-upstream",
            failures={"4": 503},
            random_seed=42,
        )

    @pytest.fixture
    def client(self, app):
        return TestClient(app)

    def test_health_endpoint(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "server": "test-upstream"}

    def test_similar_ids(self, client):
        response = client.get("/product/1/similarids")
        assert response.status_code == 200
        assert response.json() == ["2", "3", "4"]

    def test_product_detail(self, client):
        response = client.get("/product/3")
        assert response.status_code == 200
        assert response.json() == DEFAULT_CATALOG["3"]

    def test_unknown_product_is_404(self, client):
        assert client.get("/product/999").status_code == 404
        assert client.get("/product/999/similarids").status_code == 404

    def test_injected_failure(self, client):
        assert client.get("/product/4").status_code == 503

    def test_calls_are_counted_per_path(self, app, client):
        client.get("/product/1")
        client.get("/product/1")
        client.get("/product/1/similarids")

        assert app.state.calls == {"/product/1": 2, "/product/1/similarids": 1}


class TestMockServerErrors:

    def test_error_rate_one_always_fails(self):
        client = TestClient(create_mock_app(error_rate=1.0, random_seed=1))

        for _ in range(5):
            assert client.get("/product/1").status_code in (500, 502, 503)

    def test_seeded_errors_are_deterministic(self):
        def statuses():
            client = TestClient(create_mock_app(error_rate=0.5, random_seed=7))
            return [client.get("/product/1").status_code for _ in range(20)]

        assert statuses() == statuses()

    def test_custom_catalog(self):
        client = TestClient(create_mock_app(
            catalog={"a": {"id": "a", "name": "A", "price": 1, "availability": True}},
            similar={"a": []},
        ))

        assert client.get("/product/a/similarids").json() == []
        assert client.get("/product/1").status_code == 404


def test_env_factory(monkeypatch):
    monkeypatch.setenv("SERVER_NAME", "env-upstream")
    monkeypatch.setenv("ERROR_RATE", "0")

    client = TestClient(create_app())

    assert client.get("/health").json()["server"] == "env-upstream"
