import wishlist


def test_toggle_twice_restores_membership(client, auth_headers, add_product):
    headers = auth_headers()
    add_product("P1")

    first = client.post("/api/wishlist/toggle", json={"productId": "P1"}, headers=headers)
    assert first.json() == {"wishlisted": True}
    assert client.get("/api/wishlist/P1", headers=headers).json() == {"wishlisted": True}

    second = client.post("/api/wishlist/toggle", json={"productId": "P1"}, headers=headers)
    assert second.json() == {"wishlisted": False}
    assert client.get("/api/wishlist/P1", headers=headers).json() == {"wishlisted": False}


def test_add_is_set_like(db, signup):
    user_id = signup().json()["user"]["userId"]
    db["user"].update_one({"userId": user_id}, {"$addToSet": {"wishlist": "P1"}})

    # a toggle racing with an add of the same id never leaves a duplicate
    db["user"].update_one({"userId": user_id}, {"$addToSet": {"wishlist": "P1"}})
    assert db["user"].find_one({"userId": user_id})["wishlist"] == ["P1"]
    assert wishlist.toggle(db, user_id, "P1") is False
    assert db["user"].find_one({"userId": user_id})["wishlist"] == []


def test_list_resolves_products_and_skips_missing(client, auth_headers, add_product):
    headers = auth_headers()
    add_product("P1")
    for pid in ("P1", "GONE"):
        client.post("/api/wishlist/toggle", json={"productId": pid}, headers=headers)

    resp = client.get("/api/wishlist", headers=headers)

    assert resp.status_code == 200
    assert [entry["product"]["id"] for entry in resp.json()] == ["P1"]


def test_toggle_requires_product_id(client, auth_headers):
    resp = client.post("/api/wishlist/toggle", json={}, headers=auth_headers())

    assert resp.status_code == 400
    assert resp.json() == {"error": "Product ID is required"}
