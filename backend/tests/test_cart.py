from storefront.api.deps import CART_COOKIE


def test_guest_cart_uses_cookie(client, make_product):
    tea = make_product()

    res = client.post("/api/cart/items", json={"product_id": tea.id, "quantity": 2})
    assert res.status_code == 200
    assert CART_COOKIE in res.cookies

    body = client.get("/api/cart").json()
    assert [(it["product_name"], it["quantity"]) for it in body["items"]] == [("Himalayan Tea", 2)]
    assert body["totals"]["total"] == "665.00"


def test_adding_same_product_merges_lines(client, make_product):
    tea = make_product()
    client.post("/api/cart/items", json={"product_id": tea.id, "quantity": 1})
    body = client.post("/api/cart/items", json={"product_id": tea.id, "quantity": 2}).json()
    assert len(body["items"]) == 1
    assert body["items"][0]["quantity"] == 3
    assert body["items"][0]["line_total"] == "750.00"


def test_update_and_remove_items(client, make_product):
    tea = make_product()
    item_id = client.post("/api/cart/items", json={"product_id": tea.id, "quantity": 1}).json()["items"][0]["id"]

    body = client.patch(f"/api/cart/items/{item_id}", json={"quantity": 4}).json()
    assert body["items"][0]["quantity"] == 4

    body = client.patch(f"/api/cart/items/{item_id}", json={"quantity": 0}).json()
    assert body["items"] == []
    assert body["totals"] is None

    assert client.delete(f"/api/cart/items/{item_id}").status_code == 404


def test_unknown_product(client):
    res = client.post("/api/cart/items", json={"product_id": 999, "quantity": 1})
    assert res.status_code == 404


def test_guest_cart_moves_to_user_on_login(client, make_product):
    tea = make_product()
    coffee = make_product(slug="ilam-coffee", name="Ilam Coffee", price="600.00")
    user = {"X-User-Id": "7"}

    client.post("/api/cart/items", json={"product_id": coffee.id, "quantity": 1}, headers=user)
    client.post("/api/cart/items", json={"product_id": tea.id, "quantity": 2})
    client.post("/api/cart/items", json={"product_id": coffee.id, "quantity": 1})

    body = client.get("/api/cart", headers=user).json()
    assert sorted((it["product_name"], it["quantity"]) for it in body["items"]) == [
        ("Himalayan Tea", 2),
        ("Ilam Coffee", 2),
    ]

    # the guest cart is gone; the same browser now gets a fresh one
    assert client.get("/api/cart").json()["items"] == []
