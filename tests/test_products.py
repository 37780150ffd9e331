import pytest

PRODUCT = {
    "name": "Parrot Seed Mix",
    "description": "Seeds and nuts for large parrots",
    "price": 12.5,
    "category": "food",
    "pet_type": "bird",
    "product_type": "food",
    "discount": 10,
    "is_new": True,
    "specifications": ["1 kg", "No additives"],
}


def test_admin_creates_product(client, admin, auth):
    res = client.post("/api/products", json=PRODUCT, headers=auth(admin))
    assert res.status_code == 201
    product = res.json()["product"]
    assert product["price"] == 12.5
    assert product["final_price"] == 11.25
    assert product["specifications"] == ["1 kg", "No additives"]

    fetched = client.get(f"/api/products/{product['id']}").json()
    assert fetched["name"] == "Parrot Seed Mix"


def test_customers_cannot_manage_catalog(client, customer, auth, make_product):
    product = make_product()
    assert client.post("/api/products", json=PRODUCT, headers=auth(customer)).status_code == 403
    assert client.put(f"/api/products/{product.id}", json={"price": 1}, headers=auth(customer)).status_code == 403
    assert client.delete(f"/api/products/{product.id}", headers=auth(customer)).status_code == 403
    assert client.post("/api/products", json=PRODUCT).status_code == 401


@pytest.mark.parametrize(
    "override",
    [
        {"price": 0},
        {"price": -3},
        {"price": "1.234"},
        {"discount": 101},
        {"pet_type": "dragon"},
        {"product_type": "rocks"},
        {"name": ""},
    ],
)
def test_invalid_products_are_rejected(client, admin, auth, override):
    body = dict(PRODUCT, **override)
    assert client.post("/api/products", json=body, headers=auth(admin)).status_code == 422


def test_price_past_storable_range_is_400(client, admin, auth, make_product):
    res = client.post("/api/products", json=dict(PRODUCT, price=10**20), headers=auth(admin))
    assert res.status_code == 400
    assert "out of range" in res.json()["detail"]

    product = make_product(price="5.00")
    res = client.put(f"/api/products/{product.id}", json={"price": 10**20}, headers=auth(admin))
    assert res.status_code == 400
    assert client.get(f"/api/products/{product.id}").json()["price"] == 5.0


def test_partial_update_and_delete(client, admin, auth, make_product):
    product = make_product("Old Name", price="5.00")
    res = client.put(f"/api/products/{product.id}", json={"name": "New Name", "in_stock": False}, headers=auth(admin))
    assert res.status_code == 200
    updated = res.json()["product"]
    assert updated["name"] == "New Name"
    assert updated["in_stock"] is False
    assert updated["price"] == 5.0

    assert client.delete(f"/api/products/{product.id}", headers=auth(admin)).status_code == 200
    assert client.get(f"/api/products/{product.id}").status_code == 404
    assert client.delete(f"/api/products/{product.id}", headers=auth(admin)).status_code == 404


@pytest.fixture
def catalog_items(make_product):
    return {
        "kibble": make_product("Kibble", price="30.00", discount=50, pet_type="dog", product_type="food"),
        "ball": make_product("Ball", price="5.00", pet_type="dog", product_type="toys", is_new=True),
        "tank": make_product("Tank", price="80.00", pet_type="fish", product_type="accessories", in_stock=False),
        "mouse": make_product("Catnip Mouse", price="12.00", discount=10, pet_type="cat", product_type="toys"),
    }


def _names(res):
    assert res.status_code == 200
    return [p["name"] for p in res.json()]


def test_listing_filters(client, catalog_items):
    assert sorted(_names(client.get("/api/products"))) == ["Ball", "Catnip Mouse", "Kibble", "Tank"]
    assert sorted(_names(client.get("/api/products", params={"pet_type": "dog"}))) == ["Ball", "Kibble"]
    assert sorted(_names(client.get("/api/products", params={"product_type": "toys"}))) == ["Ball", "Catnip Mouse"]
    assert _names(client.get("/api/products", params={"only_new": True})) == ["Ball"]
    assert sorted(_names(client.get("/api/products", params={"only_discounted": True}))) == ["Catnip Mouse", "Kibble"]
    assert "Tank" not in _names(client.get("/api/products", params={"in_stock": True}))
    assert _names(client.get("/api/products", params={"q": "catnip"})) == ["Catnip Mouse"]


def test_price_range_uses_discounted_price(client, catalog_items):
    # Kibble lists at 30.00 but sells at 15.00
    names = _names(client.get("/api/products", params={"min_price": 10, "max_price": 20}))
    assert sorted(names) == ["Catnip Mouse", "Kibble"]


def test_sorting(client, catalog_items):
    by_price = _names(client.get("/api/products", params={"sort": "price"}))
    assert by_price == ["Ball", "Catnip Mouse", "Kibble", "Tank"]
    by_name_desc = _names(client.get("/api/products", params={"sort": "name", "direction": "desc"}))
    assert by_name_desc == ["Tank", "Kibble", "Catnip Mouse", "Ball"]
    by_date = _names(client.get("/api/products", params={"sort": "date_added", "direction": "desc"}))
    assert by_date[0] == "Catnip Mouse"
    assert client.get("/api/products", params={"sort": "weight"}).status_code == 400
    assert client.get("/api/products", params={"direction": "sideways"}).status_code == 400
