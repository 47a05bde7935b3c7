"""Tests for the HTTP API."""

import pytest
from fastapi.testclient import TestClient

from api.main import app, get_database


@pytest.fixture
def client(db):
    app.dependency_overrides[get_database] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def scanned(client):
    response = client.post("/scan", json={"static": True})
    assert response.status_code == 200
    return response.json()


def _product_id(client, name):
    products = client.get("/products").json()
    return next(product["id"] for product in products if product["name"] == name)


class TestGeneral:
    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["name"] == "Pricing Radar API"


class TestScan:
    def test_static_scan(self, scanned):
        assert scanned["success"] is True
        assert scanned["total_products"] == 8
        assert [result["saved_to_db"] for result in scanned["results"]] == [4, 4]
        assert scanned["results"][0]["products"] is None
        assert len(scanned["comparison"]["groups"]) == 4
        assert len(scanned["comparison"]["alerts"]) == 4

    def test_scan_without_saving(self, client):
        response = client.post(
            "/scan",
            json={"static": True, "marketplace": "watsons", "save_to_db": False, "include_products": True},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["results"][0]["saved_to_db"] == 0
        assert len(data["results"][0]["products"]) == 4
        assert client.get("/products").json() == []

    def test_unknown_marketplace_is_rejected(self, client):
        response = client.post("/scan", json={"marketplace": "lazada"})
        assert response.status_code == 422


class TestCompare:
    def test_compare_listings(self, client):
        response = client.post(
            "/compare",
            json={
                "listings": [
                    {"name": "Sildenafil 50mg - 1 Box x 8 Tabs", "price": 680, "marketplace": "medsgo"},
                    {"name": "Sildenafil 50mg Tablet", "price": 835, "marketplace": "watsons"},
                ]
            },
        )
        assert response.status_code == 200
        data = response.json()
        group = data["groups"][0]
        assert group["key"] == "Sildenafil-50mg"
        assert group["products"]["medsgo"]["price_per_unit"] == 85.0
        assert group["cheapest"] == "medsgo"
        assert group["status"] == "Critical"
        assert data["stats"]["overall_cheaper"] == "medsgo"
        assert data["alerts"][0]["type"] == "cheapest"

    def test_compare_nothing(self, client):
        data = client.post("/compare", json={"listings": []}).json()
        assert data["groups"] == []
        assert data["stats"]["total_comparable"] == 0


class TestProducts:
    def test_list_by_marketplace(self, client, scanned):
        assert len(client.get("/products").json()) == 8
        assert len(client.get("/products", params={"marketplace": "medsgo"}).json()) == 4

    def test_history(self, client, scanned):
        product_id = _product_id(client, "Sildenafil 50mg Tablet")
        data = client.get(f"/products/{product_id}/history").json()
        assert data["count"] == 1
        assert data["history"][0]["price"] == 835.0
        assert data["history"][0]["is_synthetic"] is False

    def test_unknown_product(self, client):
        response = client.get("/products/missing/history")
        assert response.status_code == 404
        assert "missing" in response.json()["detail"]

    def test_forecast(self, client, scanned):
        product_id = _product_id(client, "Sildenafil 50mg Tablet")
        response = client.get(f"/products/{product_id}/forecast", params={"our_price": 1000})
        assert response.status_code == 200
        data = response.json()
        assert data["predicted_competitor_price"] == 835.0
        assert data["suggested_price"] == pytest.approx(876.75)

    def test_forecast_requires_our_price(self, client, scanned):
        product_id = _product_id(client, "Sildenafil 50mg Tablet")
        assert client.get(f"/products/{product_id}/forecast").status_code == 422

    def test_backfill(self, client, scanned):
        data = client.post("/backfill", json={"days": 3}).json()
        assert data["products_processed"] == 8
        assert data["total_created"] == 24
        assert data["errors"] == []
