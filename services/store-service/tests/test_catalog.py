import pytest

from errors import NotFoundError, ValidationError
from schemas import ProductFilter, ProductWrite
from tests.conftest import auth_headers


def product_payload(**overrides):
    payload = {
        "name": "NVIDIA GeForce RTX 4070",
        "category": "GPU",
        "brand": "NVIDIA",
        "price": 35999.0,
        "sale_price": 33999.0,
        "stock": 4,
        "badge": "sale",
        "description": "12GB GDDR6X",
        "specs": "12GB GDDR6X, 5888 CUDA cores",
        "images": ["https://cdn.example.com/4070-front.png"],
        "full_specs": [{"label": "Memory", "value": "12GB GDDR6X"}],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def shelf(make_product):
    return {
        "cpu": make_product(name="AMD Ryzen 7 7800X3D", category="CPU", brand="AMD", price=24000.0),
        "gpu": make_product(name="Radeon RX 7800 XT", category="GPU", brand="AMD", price=32000.0),
        "ram": make_product(name="Vengeance 32GB", category="RAM", brand="Corsair", price=6000.0),
    }


def test_list_filters_by_category_brand_and_price(db, catalog, shelf):
    by_category = catalog.list_active(db, ProductFilter(categories=["CPU", "RAM"], sort="low"))
    assert [p.name for p in by_category] == ["Vengeance 32GB", "AMD Ryzen 7 7800X3D"]

    by_brand = catalog.list_active(db, ProductFilter(brands=["AMD"], max_price=30000))
    assert [p.name for p in by_brand] == ["AMD Ryzen 7 7800X3D"]


def test_list_search_is_case_insensitive(db, catalog, shelf):
    found = catalog.list_active(db, ProductFilter(search="ryzen"))

    assert [p.id for p in found] == [shelf["cpu"].id]


def test_list_sorts_by_price(db, catalog, shelf):
    high = catalog.list_active(db, ProductFilter(sort="high"))

    assert [p.price for p in high] == [32000.0, 24000.0, 6000.0]


def test_soft_deleted_products_are_hidden_from_customers(db, catalog, shelf):
    catalog.soft_delete(db, shelf["gpu"].id)

    assert shelf["gpu"].id not in [p.id for p in catalog.list_active(db)]
    with pytest.raises(NotFoundError):
        catalog.get_active_product(db, shelf["gpu"].id)
    assert shelf["gpu"].id in [p.id for p in catalog.list_all(db)]
    assert shelf["gpu"].id not in [p.id for p in catalog.list_all(db, include_deleted=False)]


def test_soft_delete_is_idempotent(db, catalog, make_product):
    product = make_product()

    first = catalog.soft_delete(db, product.id).deleted_at
    second = catalog.soft_delete(db, product.id).deleted_at

    assert first is not None
    assert second == first


def test_soft_delete_unknown_product(db, catalog):
    with pytest.raises(NotFoundError):
        catalog.soft_delete(db, "missing")


def test_update_replaces_optional_fields(db, catalog):
    product = catalog.admin_create(db, ProductWrite(**product_payload()))

    updated = catalog.admin_update(db, product.id, ProductWrite(**product_payload(
        sale_price=None,
        description=None,
        badge="none",
        full_specs=[]
    )))

    assert updated.sale_price is None
    assert updated.description is None
    assert updated.badge == "none"
    assert updated.full_specs == []
    assert updated.rating == 0.0
    assert updated.review_count == 0


def test_image_limit_follows_settings(db, catalog, settings_service):
    images = [f"https://cdn.example.com/{i}.png" for i in range(3)]
    settings_service.put_setting(db, "maxProductImages", 2)

    with pytest.raises(ValidationError):
        catalog.admin_create(db, ProductWrite(**product_payload(images=images)))

    settings_service.put_setting(db, "maxProductImages", 3)
    assert len(catalog.admin_create(db, ProductWrite(**product_payload(images=images))).images) == 3


def test_public_product_endpoints(client, shelf):
    response = client.get("/products", params={"category": "GPU,RAM", "sort": "low"})
    assert response.status_code == 200
    assert [p["name"] for p in response.json()] == ["Vengeance 32GB", "Radeon RX 7800 XT"]

    response = client.get("/products", params={"maxPrice": 10000})
    assert [p["name"] for p in response.json()] == ["Vengeance 32GB"]

    response = client.get(f"/products/{shelf['cpu'].id}")
    assert response.status_code == 200
    assert response.json()["brand"] == "AMD"

    assert client.get("/products/unknown").status_code == 404


def test_admin_product_lifecycle(client, make_user):
    headers = auth_headers(make_user(role="admin"))

    response = client.post("/admin/products", json=product_payload(), headers=headers)
    assert response.status_code == 201
    product = response.json()
    assert product["rating"] == 0.0
    assert product["deleted_at"] is None

    response = client.put(
        f"/admin/products/{product['id']}",
        json=product_payload(price=31999.0, sale_price=None),
        headers=headers
    )
    assert response.status_code == 200
    assert response.json()["price"] == 31999.0
    assert response.json()["sale_price"] is None

    response = client.delete(f"/admin/products/{product['id']}", headers=headers)
    assert response.status_code == 200
    assert response.json()["deleted_at"] is not None

    assert client.get(f"/products/{product['id']}").status_code == 404
    assert client.get(f"/admin/products/{product['id']}", headers=headers).status_code == 200
    listing = client.get("/admin/products", headers=headers).json()
    assert [p["id"] for p in listing] == [product["id"]]


def test_admin_rejects_invalid_product(client, make_user):
    headers = auth_headers(make_user(role="admin"))

    response = client.post("/admin/products", json=product_payload(price=-1), headers=headers)

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_admin_routes_require_admin_role(client, make_user):
    assert client.get("/admin/products").status_code == 401

    response = client.get("/admin/products", headers=auth_headers(make_user()))
    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN"

    response = client.post("/admin/products", json=product_payload(), headers=auth_headers(make_user()))
    assert response.status_code == 403
