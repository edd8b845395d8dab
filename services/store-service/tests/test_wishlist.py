from models import WishlistItem
from tests.conftest import auth_headers


def test_toggle_adds_then_removes(db, wishlist, make_user, make_product):
    user = make_user()
    product = make_product()

    assert wishlist.toggle(db, user.id, product.id) == {"added": True}
    assert wishlist.toggle(db, user.id, product.id) == {"added": False}
    assert wishlist.toggle(db, user.id, product.id) == {"added": True}

    assert db.query(WishlistItem).filter(WishlistItem.user_id == user.id).count() == 1


def test_read_marks_deleted_products(db, wishlist, catalog, make_user, make_product):
    user = make_user()
    product = make_product()
    wishlist.toggle(db, user.id, product.id)
    catalog.soft_delete(db, product.id)

    entries = wishlist.read(db, user.id)

    assert entries == [{"product_id": product.id, "product": None}]


def test_wishlist_api(client, make_user, make_product):
    user = make_user()
    product = make_product()
    headers = auth_headers(user)

    response = client.post("/wishlist", json={"product_id": product.id}, headers=headers)
    assert response.json() == {"added": True, "message": "Added to wishlist"}

    listing = client.get("/wishlist", headers=headers).json()
    assert [entry["product"]["name"] for entry in listing] == [product.name]

    response = client.post("/wishlist", json={"product_id": product.id}, headers=headers)
    assert response.json() == {"added": False, "message": "Removed from wishlist"}
    assert client.get("/wishlist", headers=headers).json() == []
