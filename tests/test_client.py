"""Tests for the client-side storefront session."""

import pytest

from client import CartLine, CheckoutError, ClientError, StorefrontSession


@pytest.fixture
def session(client):
    return StorefrontSession(client)


@pytest.fixture
def products(make_product):
    return [
        make_product(name="Lipstick", price=24.99, stock=5),
        make_product(name="Serum", price=32.5, stock=1),
    ]


class TestCart:
    def test_add_merges_same_product(self, session, products):
        lipstick, serum = products
        session.add_to_cart(lipstick)
        session.add_to_cart(lipstick, quantity=2)
        session.add_to_cart(serum)
        assert [(line.name, line.quantity) for line in session.cart] == [("Lipstick", 3), ("Serum", 1)]
        assert session.cart_count == 4
        assert session.cart_total == round(24.99 * 3 + 32.5, 2)

    def test_set_quantity_and_remove(self, session, products):
        lipstick, serum = products
        session.add_to_cart(lipstick)
        session.add_to_cart(serum)
        session.set_quantity(lipstick["id"], 4)
        assert session.cart[0].quantity == 4
        session.set_quantity(lipstick["id"], 0)
        assert [line.name for line in session.cart] == ["Serum"]
        session.remove_from_cart(serum["id"])
        assert session.cart == []
        assert session.cart_total == 0

    def test_set_quantity_unknown_product(self, session):
        with pytest.raises(KeyError):
            session.set_quantity("missing", 1)

    def test_add_rejects_non_positive_quantity(self, session, products):
        with pytest.raises(ValueError):
            session.add_to_cart(products[0], quantity=0)

    def test_line_subtotal(self):
        assert CartLine(product_id="p", name="P", price=2.5, quantity=4).subtotal == 10.0


class TestCheckout:
    def test_requires_sign_in(self, session, products):
        session.add_to_cart(products[0])
        with pytest.raises(CheckoutError) as exc_info:
            session.checkout()
        assert exc_info.value.status_code == 401
        assert session.cart_count == 1

    def test_empty_cart(self, session):
        session.register("Ana", "ana@example.com", "secret123")
        with pytest.raises(CheckoutError):
            session.checkout()

    def test_checkout_places_order_and_clears_cart(self, client, session, products):
        lipstick, _ = products
        session.register("Ana", "ana@example.com", "secret123")
        session.add_to_cart(lipstick, quantity=2)

        order = session.checkout({"street": "1 Main St", "city": "Springfield"})
        assert order["status"] == "pending"
        assert order["total"] == round(24.99 * 2, 2)
        assert order["shippingAddress"]["city"] == "Springfield"
        assert session.cart == []
        assert client.get(f"/api/products/{lipstick['id']}").json()["stock"] == 3

    def test_failed_checkout_keeps_cart(self, session, products):
        _, serum = products
        session.register("Ana", "ana@example.com", "secret123")
        session.add_to_cart(serum, quantity=2)
        with pytest.raises(CheckoutError) as exc_info:
            session.checkout()
        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "Insufficient stock for Serum"
        assert session.cart_count == 2


class TestFavorites:
    def test_signed_out_toggle_is_local(self, session, products):
        assert session.toggle_favorite(products[0]["id"]) is True
        assert session.is_favorite(products[0]["id"])
        assert session.toggle_favorite(products[0]["id"]) is False
        assert session.favorites == []

    def test_signed_in_toggle_reaches_server(self, client, session, products):
        session.register("Ana", "ana@example.com", "secret123")
        session.toggle_favorite(products[0]["id"])
        headers = {"Authorization": f"Bearer {session.token}"}
        assert [p["id"] for p in client.get("/api/favorites", headers=headers).json()] == [products[0]["id"]]

        session.toggle_favorite(products[0]["id"])
        assert client.get("/api/favorites", headers=headers).json() == []

    def test_login_pushes_local_favorites(self, client, session, products, register):
        register(email="bea@example.com", password="pw")
        session.toggle_favorite(products[1]["id"])
        session.toggle_favorite("64b000000000000000000000")

        session.login("bea@example.com", "pw")
        assert session.favorites == [products[1]["id"]]
        headers = {"Authorization": f"Bearer {session.token}"}
        assert [p["id"] for p in client.get("/api/favorites", headers=headers).json()] == [products[1]["id"]]

    def test_sync_adopts_server_list(self, client, session, products, register):
        headers, _ = register(email="cy@example.com", password="pw")
        client.post(f"/api/favorites/{products[0]['id']}", headers=headers)
        session.login("cy@example.com", "pw")
        assert session.favorites == [products[0]["id"]]

    def test_failed_server_toggle_leaves_local_state(self, session):
        session.register("Ana", "ana@example.com", "secret123")
        with pytest.raises(ClientError):
            session.toggle_favorite("64b000000000000000000000")
        assert session.favorites == []


class TestAccount:
    def test_bad_login_raises(self, session):
        with pytest.raises(ClientError) as exc_info:
            session.login("nobody@example.com", "x")
        assert exc_info.value.status_code == 400
        assert not session.is_authenticated

    def test_logout(self, session):
        session.register("Ana", "ana@example.com", "secret123")
        assert session.user["name"] == "Ana"
        session.logout()
        assert not session.is_authenticated

    def test_browse(self, session, products):
        data = session.browse(sort="price-low")
        assert [p["name"] for p in data["products"]] == ["Lipstick", "Serum"]
