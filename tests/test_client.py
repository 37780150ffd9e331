import pytest
from sqlalchemy import func, select

from client import APIError, StorefrontClient
from models import CartItem, Order


@pytest.fixture
def shopper(client, customer):
    sc = StorefrontClient(client)
    sc.login(customer.email, "secret1")
    return sc


def test_login_keeps_token_on_the_instance(client, customer):
    a = StorefrontClient(client)
    b = StorefrontClient(client)
    a.login(customer.email, "secret1")
    assert a.is_authenticated
    assert not b.is_authenticated
    with pytest.raises(APIError) as exc:
        b.my_orders()
    assert exc.value.status_code == 401
    assert not exc.value.retryable


def test_checkout_places_order_then_clears_cart(shopper, session_factory, make_product):
    bowl = make_product("Bowl", price="8.00", discount=25, product_type="accessories")
    treats = make_product("Treats", price="2.50")
    shopper.add_to_cart(bowl.id, 2)
    shopper.add_to_cart(treats.id, 3)

    order_id = shopper.checkout("Main St 1", "Metropolis", "00000")

    assert shopper.cart() == []
    order = shopper.order(order_id)
    # 2 x 6.00 (discounted) + 3 x 2.50
    assert order["total"] == 19.5
    assert sorted((i["quantity"], i["price"]) for i in order["items"]) == [(2, 6.0), (3, 2.5)]
    assert [o["id"] for o in shopper.my_orders()] == [order_id]


def test_failed_checkout_leaves_cart_alone(shopper, session_factory, make_product):
    product = make_product("Collar", price="15.00")
    shopper.add_to_cart(product.id, 1)

    with pytest.raises(APIError) as exc:
        shopper.checkout("Main St 1", "", "00000")
    assert exc.value.status_code == 400

    with session_factory() as s:
        assert s.scalar(select(func.count()).select_from(Order)) == 0
        assert s.scalar(select(func.count()).select_from(CartItem)) == 1
    assert len(shopper.cart()) == 1


def test_empty_cart_checkout(shopper):
    with pytest.raises(APIError, match="empty"):
        shopper.checkout("a", "b", "c")


def test_catalog_browsing_without_login(client, make_product):
    make_product("Hay", price="4.00", pet_type="rodent")
    make_product("Perch", price="6.00", pet_type="bird", product_type="accessories")
    anon = StorefrontClient(client)
    assert [p["name"] for p in anon.products(pet_type="rodent")] == ["Hay"]
    with pytest.raises(APIError) as exc:
        anon.product(999)
    assert exc.value.status_code == 404


def test_guest_cart_is_kept_locally_until_login(client, session_factory, customer, make_product):
    bowl = make_product("Bowl", price="8.00", discount=25, product_type="accessories")
    treats = make_product("Treats", price="2.50")
    guest = StorefrontClient(client)

    guest.add_to_cart(bowl.id, 1)
    guest.add_to_cart(bowl.id, 2)
    guest.add_to_cart(treats.id)
    guest.update_cart_item(treats.id, 4)
    lines = {l["product_id"]: l for l in guest.cart()}
    assert lines[bowl.id]["quantity"] == 3
    assert lines[bowl.id]["product_final_price"] == 6.0
    assert lines[treats.id]["quantity"] == 4
    with session_factory() as s:
        assert s.scalar(select(func.count()).select_from(CartItem)) == 0

    guest.remove_from_cart(treats.id)
    with pytest.raises(APIError) as exc:
        guest.remove_from_cart(treats.id)
    assert exc.value.status_code == 404
    with pytest.raises(APIError) as exc:
        guest.add_to_cart(31337)
    assert exc.value.status_code == 404


def test_login_merges_guest_cart_into_server_cart(client, customer, make_product):
    bowl = make_product("Bowl", price="8.00")
    collar = make_product("Collar", price="15.00")
    # the account already holds one bowl from an earlier visit
    returning = StorefrontClient(client)
    returning.login(customer.email, "secret1")
    returning.add_to_cart(bowl.id, 1)

    guest = StorefrontClient(client)
    guest.add_to_cart(bowl.id, 2)
    guest.add_to_cart(collar.id, 1)
    guest.login(customer.email, "secret1")

    assert guest.guest_cart == {}
    assert sorted((l["product_id"], l["quantity"]) for l in guest.cart()) == [(bowl.id, 3), (collar.id, 1)]


def test_merge_drops_lines_for_deleted_products(client, db, customer, make_product):
    product = make_product("Seasonal Toy")
    guest = StorefrontClient(client)
    guest.add_to_cart(product.id, 2)
    db.delete(product)
    db.commit()

    guest.login(customer.email, "secret1")
    assert guest.guest_cart == {}
    assert guest.cart() == []


def test_guest_checkout_needs_login_and_keeps_cart(client, make_product):
    product = make_product()
    guest = StorefrontClient(client)
    guest.add_to_cart(product.id, 1)
    with pytest.raises(APIError) as exc:
        guest.checkout("Main St 1", "Metropolis", "00000")
    assert exc.value.status_code == 401
    assert guest.guest_cart == {product.id: 1}
