"""Pytest fixtures for storefront tests."""

import itertools

import mongomock
import pytest
from fastapi.testclient import TestClient

from database import ensure_indexes, get_db
from main import app

_emails = itertools.count(1)


@pytest.fixture
def db():
    """In-memory MongoDB database with the production indexes."""
    client = mongomock.MongoClient()
    database = client["storefront_test"]
    ensure_indexes(database)
    yield database
    client.close()


@pytest.fixture
def client(db):
    """Test client whose routes talk to the in-memory database."""
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_product(client):
    """Factory creating products through the API."""

    def _make(**overrides):
        body = {
            "name": "Velvet Matte Lipstick",
            "category": "makeup",
            "price": 24.99,
            "originalPrice": 29.99,
            "image": "https://example.com/lipstick.jpg",
            "description": "Long-lasting matte lipstick",
            "tag": "New",
            "stock": 10,
        }
        body.update(overrides)
        response = client.post("/api/products", json=body)
        assert response.status_code == 201, response.text
        return response.json()

    return _make


@pytest.fixture
def register(client):
    """Factory registering a fresh user. Returns (auth headers, response body)."""

    def _register(name="Ana", email=None, password="secret123"):
        email = email or f"user{next(_emails)}@example.com"
        response = client.post("/api/auth/register", json={"name": name, "email": email, "password": password})
        assert response.status_code == 201, response.text
        data = response.json()
        return {"Authorization": f"Bearer {data['token']}"}, data

    return _register


@pytest.fixture
def auth_headers(register):
    headers, _ = register()
    return headers
