"""Dependency injection for services."""
import redis
import httpx
from fastapi import Request

from services.address_service import AddressService
from services.cart_service import CartService
from services.catalog_service import CatalogService
from services.order_service import OrderService
from services.payment_service import PaymentGatewayClient
from services.review_service import ReviewService
from services.settings_service import SettingsService
from services.user_service import UserService
from services.wishlist_service import WishlistService


def get_redis(request: Request) -> redis.Redis:
    """Get Redis client from app state."""
    return request.app.state.redis_client


def get_http_client(request: Request) -> httpx.AsyncClient:
    """Get HTTP client from app state."""
    return request.app.state.http_client


def get_settings_service() -> SettingsService:
    return SettingsService()


def get_catalog_service() -> CatalogService:
    """Get catalog service instance."""
    return CatalogService(get_settings_service())


def get_cart_service(request: Request) -> CartService:
    """Get cart service instance."""
    return CartService(get_redis(request), get_catalog_service())


def get_wishlist_service() -> WishlistService:
    return WishlistService()


def get_order_service(request: Request) -> OrderService:
    """Get order service instance."""
    return OrderService(get_cart_service(request))


def get_review_service() -> ReviewService:
    return ReviewService(get_catalog_service())


def get_address_service() -> AddressService:
    return AddressService()


def get_user_service() -> UserService:
    return UserService()


def get_payment_client(request: Request) -> PaymentGatewayClient:
    """Get payment gateway client."""
    return PaymentGatewayClient(get_http_client(request))
