import threading

import fakeredis
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from errors import NotFoundError
from models import Base, CartItem, Product, utcnow
from services.cart_service import CartService
from services.catalog_service import CatalogService
from services.settings_service import SettingsService
from tests.conftest import auth_headers


def test_repeated_adds_accumulate(db, cart, make_user, make_product):
    user = make_user()
    product = make_product()

    cart.add_or_increment(db, user.id, product.id, 1)
    cart.add_or_increment(db, user.id, product.id, 1)
    entry = cart.add_or_increment(db, user.id, product.id, -1)

    assert entry.quantity == 1
    assert db.query(CartItem).filter(CartItem.user_id == user.id).count() == 1


@pytest.mark.parametrize("start, delta, expected", [
    (3, 2, 5),
    (3, -2, 1),
    (3, -3, 1),
    (1, -10, 1),
    (2, 0, 2),
])
def test_existing_entry_is_floored_at_one(db, cart, make_user, make_product, start, delta, expected):
    user = make_user()
    product = make_product()
    cart.add_or_increment(db, user.id, product.id, start)

    entry = cart.add_or_increment(db, user.id, product.id, delta)

    assert entry.quantity == expected


def test_decrement_without_entry_is_noop(db, cart, make_user, make_product):
    user = make_user()
    product = make_product()

    assert cart.add_or_increment(db, user.id, product.id, -1) is None
    assert cart.read(db, user.id)["items"] == []


def test_new_entry_requires_active_product(db, cart, make_user, make_product):
    user = make_user()
    hidden = make_product(deleted_at=utcnow())

    with pytest.raises(NotFoundError):
        cart.add_or_increment(db, user.id, "missing-product", 1)
    with pytest.raises(NotFoundError):
        cart.add_or_increment(db, user.id, hidden.id, 1)


def test_existing_entry_adjustable_after_soft_delete(db, cart, catalog, make_user, make_product):
    user = make_user()
    product = make_product()
    cart.add_or_increment(db, user.id, product.id, 2)
    catalog.soft_delete(db, product.id)

    entry = cart.add_or_increment(db, user.id, product.id, 1)

    assert entry.quantity == 3


def test_remove_missing_entry_succeeds(db, cart, make_user, make_product):
    user = make_user()
    product = make_product()

    assert cart.remove(db, user.id, product.id) is False

    cart.add_or_increment(db, user.id, product.id, 1)
    assert cart.remove(db, user.id, product.id) is True
    assert cart.read(db, user.id)["items"] == []


def test_read_keeps_entries_for_deleted_products(db, cart, catalog, make_user, make_product):
    user = make_user()
    kept = make_product(name="Kept")
    dropped = make_product(name="Dropped")
    cart.add_or_increment(db, user.id, kept.id, 1)
    cart.add_or_increment(db, user.id, dropped.id, 2)

    catalog.soft_delete(db, dropped.id)
    items = {item["product_id"]: item for item in cart.read(db, user.id)["items"]}

    assert items[kept.id]["product"].name == "Kept"
    assert items[dropped.id]["product"] is None
    assert items[dropped.id]["quantity"] == 2


def test_carts_are_per_user(db, cart, make_user, make_product):
    alice = make_user()
    bob = make_user()
    product = make_product()

    cart.add_or_increment(db, alice.id, product.id, 3)

    assert cart.read(db, bob.id)["items"] == []
    assert cart.count(db, bob.id) == 0


def test_count_is_cached_in_redis(db, cart, redis_client, make_user, make_product):
    user = make_user()
    first = make_product()
    second = make_product(name="Second")

    cart.add_or_increment(db, user.id, first.id, 2)
    cart.add_or_increment(db, user.id, second.id, 1)

    assert redis_client.get(f"cart:{user.id}") == "2"
    assert cart.count(db, user.id) == 2

    cart.remove(db, user.id, second.id)
    assert cart.count(db, user.id) == 1


def test_cart_works_without_redis(db, catalog, make_user, make_product):
    server = fakeredis.FakeServer()
    server.connected = False
    offline = CartService(fakeredis.FakeRedis(server=server, decode_responses=True), catalog)
    user = make_user()
    product = make_product()

    entry = offline.add_or_increment(db, user.id, product.id, 2)

    assert entry.quantity == 2
    assert offline.count(db, user.id) == 1


def test_clear_only_listed_products(db, cart, make_user, make_product):
    user = make_user()
    first = make_product()
    second = make_product(name="Second")
    cart.add_or_increment(db, user.id, first.id, 1)
    cart.add_or_increment(db, user.id, second.id, 1)

    cart.clear(db, user.id, [first.id])
    db.commit()

    assert [item["product_id"] for item in cart.read(db, user.id)["items"]] == [second.id]


def test_cart_api_flow(client, make_user, make_product):
    user = make_user()
    product = make_product()
    headers = auth_headers(user)

    response = client.post("/cart", json={"product_id": product.id, "quantity": 2}, headers=headers)
    assert response.status_code == 200
    body = response.json()
    assert body["user_id"] == user.id
    assert body["items"][0]["quantity"] == 2
    assert body["items"][0]["product"]["id"] == product.id

    response = client.post("/cart", json={"product_id": product.id, "quantity": -5}, headers=headers)
    assert response.json()["items"][0]["quantity"] == 1

    assert client.get("/cart/count", headers=headers).json() == {"count": 1}

    response = client.delete(f"/cart/{product.id}", headers=headers)
    assert response.status_code == 200
    assert response.json()["items"] == []

    response = client.delete(f"/cart/{product.id}", headers=headers)
    assert response.status_code == 200


def test_cart_api_unknown_product(client, make_user):
    response = client.post(
        "/cart",
        json={"product_id": "nope", "quantity": 1},
        headers=auth_headers(make_user())
    )

    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


def test_cart_requires_session(client):
    response = client.get("/cart")

    assert response.status_code == 401
    assert response.json()["code"] == "UNAUTHORIZED"


def test_insert_race_falls_back_to_increment(db, cart, make_user, make_product, monkeypatch):
    user = make_user()
    product = make_product()
    cart.add_or_increment(db, user.id, product.id, 2)

    # First UPDATE misses as if the row did not exist yet, so the INSERT hits the unique constraint
    real_increment = cart._increment
    calls = []

    def stale_then_real(*args):
        calls.append(args)
        return 0 if len(calls) == 1 else real_increment(*args)

    monkeypatch.setattr(cart, "_increment", stale_then_real)

    entry = cart.add_or_increment(db, user.id, product.id, 3)

    assert len(calls) == 2
    assert entry.quantity == 5
    assert db.query(CartItem).filter(CartItem.user_id == user.id).count() == 1


def test_concurrent_adds_lose_no_updates(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'cart.db'}",
        connect_args={"check_same_thread": False, "timeout": 30}
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    setup = Session()
    product = Product(name="Samsung 990 Pro 2TB", category="Storage", brand="Samsung", price=9500.0, specs="NVMe")
    setup.add(product)
    setup.commit()
    product_id = product.id
    setup.close()

    cart = CartService(fakeredis.FakeRedis(decode_responses=True), CatalogService(SettingsService()))
    threads_count, adds_per_thread = 4, 20
    errors = []

    def worker():
        session = Session()
        try:
            for _ in range(adds_per_thread):
                cart.add_or_increment(session, "user-1", product_id, 1)
        except Exception as e:
            errors.append(e)
        finally:
            session.close()

    threads = [threading.Thread(target=worker) for _ in range(threads_count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    check = Session()
    entry = check.query(CartItem).filter(CartItem.user_id == "user-1").one()
    check.close()
    engine.dispose()

    assert errors == []
    assert entry.quantity == threads_count * adds_per_thread
