"""Shared fixtures: in-memory database, fake Redis and an app wired to both."""
import os

os.environ["OTEL_ENABLED"] = "false"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from typing import Dict

import fakeredis
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import database
from auth import create_access_token, hash_password
from models import Base, Order, OrderItem, Product, User
from services.cart_service import CartService
from services.catalog_service import CatalogService
from services.order_service import OrderService
from services.review_service import ReviewService
from services.settings_service import SettingsService
from services.wishlist_service import WishlistService

TEST_PASSWORD = "secret123"
_password_hash = None


def password_hash() -> str:
    """bcrypt is slow on purpose; hash the shared test password once."""
    global _password_hash
    if _password_hash is None:
        _password_hash = hash_password(TEST_PASSWORD)
    return _password_hash


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def redis_client():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def settings_service():
    return SettingsService()


@pytest.fixture
def catalog(settings_service):
    return CatalogService(settings_service)


@pytest.fixture
def cart(redis_client, catalog):
    return CartService(redis_client, catalog)


@pytest.fixture
def wishlist():
    return WishlistService()


@pytest.fixture
def orders(cart):
    return OrderService(cart)


@pytest.fixture
def reviews(catalog):
    return ReviewService(catalog)


@pytest.fixture
def app(redis_client, session_factory):
    import main

    application = main.create_app(redis_client=redis_client)

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    application.dependency_overrides[database.get_db] = override_get_db
    return application


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make_user(name: str = None, role: str = "user", email: str = None) -> User:
        counter["n"] += 1
        user = User(
            name=name or f"Customer {counter['n']}",
            email=email or f"customer{counter['n']}@example.com",
            password_hash=password_hash(),
            role=role
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_product(db):
    def _make_product(**overrides) -> Product:
        data = {
            "name": "AMD Ryzen 5 7600",
            "category": "CPU",
            "brand": "AMD",
            "price": 10.0,
            "stock": 5,
            "specs": "6 cores, 12 threads",
            "images": ["https://cdn.example.com/ryzen.png"],
            "full_specs": [],
        }
        data.update(overrides)
        product = Product(**data)
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    return _make_product


@pytest.fixture
def make_order(db):
    """Insert an order directly, bypassing checkout, in any status."""
    def _make_order(user: User, product: Product, status: str = "delivered", quantity: int = 1) -> Order:
        order = Order(
            user_id=user.id,
            shipping_address=SHIPPING_ADDRESS,
            payment_method="cod",
            total_amount=product.price * quantity,
            status=status,
            items=[OrderItem(
                product_id=product.id,
                name=product.name,
                price=product.price,
                quantity=quantity,
                image=None
            )]
        )
        db.add(order)
        db.commit()
        db.refresh(order)
        return order

    return _make_order


def auth_headers(user: User) -> Dict[str, str]:
    token = create_access_token(user.id, user.name, user.email, user.role)
    return {"Authorization": f"Bearer {token}"}


SHIPPING_ADDRESS = {
    "full_name": "Juan Dela Cruz",
    "phone": "09171234567",
    "building": "Tower 1",
    "house_unit": "Unit 1203",
    "street": "Ayala Avenue",
    "city": "Makati",
    "state": "Metro Manila",
    "zip_code": "1226",
}
