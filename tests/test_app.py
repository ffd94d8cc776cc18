"""Tests for service-level endpoints, error shaping and sample data."""

from pymongo.errors import PyMongoError

import services
from main import SAMPLE_PRODUCTS, seed_sample_products


class TestServiceEndpoints:
    def test_root(self, client):
        assert client.get("/").json()["status"] == "ok"

    def test_database_check(self, client, make_product):
        make_product()
        data = client.get("/test").json()
        assert data["backend"] == "running"
        assert data["database"] == "connected"
        assert "product" in data["collections"]


class TestErrorShaping:
    def test_database_errors_become_internal_failures(self, client, monkeypatch):
        def broken(*args, **kwargs):
            raise PyMongoError("connection reset")

        monkeypatch.setattr(services, "list_products", broken)
        response = client.get("/api/products")
        assert response.status_code == 500
        body = response.json()
        assert body["errorType"] == "InternalFailure"
        assert body["error"] == "connection reset"

    def test_not_found_shape(self, client):
        body = client.get("/api/products/64b000000000000000000000").json()
        assert body == {"message": "Product not found", "errorType": "NotFound"}


class TestSampleData:
    def test_seeds_empty_catalog_once(self, db):
        assert seed_sample_products(db) == len(SAMPLE_PRODUCTS)
        assert seed_sample_products(db) == 0
        assert db["product"].count_documents({}) == len(SAMPLE_PRODUCTS)

    def test_first_review_replaces_seeded_rating(self, client, db, register):
        seed_sample_products(db)
        foundation = db["product"].find_one({"name": "Radiant Glow Foundation"})
        assert foundation["rating"] == 4.8
        assert foundation["reviews"] == 1234

        headers, _ = register()
        client.post(
            "/api/reviews",
            json={"productId": str(foundation["_id"]), "rating": 5, "comment": "Perfect"},
            headers=headers,
        )
        updated = client.get(f"/api/products/{foundation['_id']}").json()
        assert updated["reviews"] == 1
        assert updated["rating"] == 5.0

    def test_seeded_categories(self, client, db):
        seed_sample_products(db)
        assert client.get("/api/categories").json() == ["fragrance", "haircare", "makeup", "skincare"]
