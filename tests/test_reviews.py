"""Tests for review submission and rating aggregation."""


def review(client, headers, product, rating, comment="Lovely"):
    return client.post(
        "/api/reviews",
        json={"productId": product["id"], "rating": rating, "comment": comment},
        headers=headers,
    )


class TestSubmitReview:
    def test_requires_token(self, client, make_product):
        product = make_product()
        response = client.post("/api/reviews", json={"productId": product["id"], "rating": 5, "comment": "x"})
        assert response.status_code == 401

    def test_create_review(self, client, make_product, register):
        product = make_product()
        headers, data = register(name="Bea")
        response = review(client, headers, product, 5, "Great colour")
        assert response.status_code == 201
        body = response.json()
        assert body["user"] == data["user"]["id"]
        assert body["product"] == product["id"]
        assert body["rating"] == 5
        assert body["comment"] == "Great colour"

    def test_average_of_three_reviews(self, client, make_product, register):
        product = make_product()
        for rating in [4, 5, 3]:
            headers, _ = register()
            assert review(client, headers, product, rating).status_code == 201

        fetched = client.get(f"/api/products/{product['id']}").json()
        assert fetched["rating"] == 4.0
        assert fetched["reviews"] == 3

    def test_second_review_rejected_and_rating_unchanged(self, client, make_product, auth_headers):
        product = make_product()
        review(client, auth_headers, product, 4)

        response = review(client, auth_headers, product, 1)
        assert response.status_code == 400
        assert response.json()["errorType"] == "DuplicateReview"

        fetched = client.get(f"/api/products/{product['id']}").json()
        assert fetched["rating"] == 4.0
        assert fetched["reviews"] == 1

    def test_same_user_may_review_different_products(self, client, make_product, auth_headers):
        a = make_product(name="A")
        b = make_product(name="B")
        assert review(client, auth_headers, a, 5).status_code == 201
        assert review(client, auth_headers, b, 2).status_code == 201

    def test_rating_out_of_range(self, client, make_product, auth_headers):
        product = make_product()
        assert review(client, auth_headers, product, 6).status_code == 400
        assert review(client, auth_headers, product, 0).status_code == 400
        assert client.get(f"/api/products/{product['id']}").json()["reviews"] == 0

    def test_unknown_product(self, client, auth_headers):
        response = review(client, auth_headers, {"id": "64b000000000000000000000"}, 5)
        assert response.status_code == 404

    def test_empty_comment_rejected(self, client, make_product, auth_headers):
        product = make_product()
        assert review(client, auth_headers, product, 5, comment="").status_code == 400


class TestListReviews:
    def test_newest_first_with_reviewer_names(self, client, make_product, register):
        product = make_product()
        first, _ = register(name="Ana")
        second, _ = register(name="Bea")
        review(client, first, product, 3, "ok")
        review(client, second, product, 5, "great")

        response = client.get(f"/api/reviews/{product['id']}")
        assert response.status_code == 200
        reviews = response.json()
        assert [r["comment"] for r in reviews] == ["great", "ok"]
        assert reviews[0]["user"]["name"] == "Bea"
        assert set(reviews[0]["user"]) == {"id", "name"}

    def test_no_reviews(self, client, make_product):
        product = make_product()
        assert client.get(f"/api/reviews/{product['id']}").json() == []
