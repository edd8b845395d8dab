"""Pydantic schemas for request/response validation."""
from datetime import datetime
from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator
from typing import Any, Dict, List, Literal, Optional

Badge = Literal["none", "sale", "hot", "featured"]
PaymentMethod = Literal["paypal", "cod", "paymongo"]


# Accounts

class RegisterRequest(BaseModel):
    """Schema for account registration."""
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)


class LoginRequest(BaseModel):
    """Schema for login request."""
    email: EmailStr
    password: str = Field(..., min_length=1)


class UserResponse(BaseModel):
    """Public view of an account; never carries the password hash."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: str
    role: str


class LoginResponse(BaseModel):
    """Schema for login/registration response."""
    token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: UserResponse


# Catalog

class ProductSpec(BaseModel):
    label: str = Field(..., min_length=1)
    value: str = Field(..., min_length=1)


class ProductWrite(BaseModel):
    """
    Schema for creating or replacing a product.

    Updates replace every field listed here; optional fields left out are
    reset to their defaults.
    """
    name: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    brand: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    sale_price: Optional[float] = Field(None, ge=0)
    stock: int = Field(0, ge=0)
    badge: Badge = "none"
    description: Optional[str] = None
    specs: str = Field(..., min_length=1)
    images: List[str] = Field(default_factory=list)
    full_specs: List[ProductSpec] = Field(default_factory=list)


class ProductResponse(BaseModel):
    """Schema for product response."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    category: str
    brand: str
    price: float
    sale_price: Optional[float] = None
    stock: int
    badge: str
    rating: float
    review_count: int
    description: Optional[str] = None
    specs: str
    images: List[str]
    full_specs: List[ProductSpec]
    created_at: Optional[datetime] = None


class AdminProductResponse(ProductResponse):
    """Product as seen by administrators, including the soft-delete marker."""
    deleted_at: Optional[datetime] = None


class ProductFilter(BaseModel):
    """Catalog listing filter."""
    categories: List[str] = Field(default_factory=list)
    brands: List[str] = Field(default_factory=list)
    max_price: Optional[float] = None
    search: Optional[str] = None
    sort: Optional[Literal["low", "high", "newest"]] = None


# Cart and wishlist

class CartUpdateRequest(BaseModel):
    """Add (positive) or take away (negative) quantity of a product."""
    product_id: str = Field(..., min_length=1, max_length=32)
    quantity: int = 1


class CartEntryResponse(BaseModel):
    """Cart entry joined with the current product; product is null once it is gone."""
    product_id: str
    quantity: int
    product: Optional[ProductResponse] = None


class CartResponse(BaseModel):
    """Schema for cart response."""
    user_id: str
    items: List[CartEntryResponse]


class CartCountResponse(BaseModel):
    count: int


class WishlistToggleRequest(BaseModel):
    product_id: str = Field(..., min_length=1, max_length=32)


class WishlistToggleResponse(BaseModel):
    added: bool
    message: str


class WishlistEntryResponse(BaseModel):
    product_id: str
    product: Optional[ProductResponse] = None


# Orders

class OrderItemIn(BaseModel):
    """Line snapshot supplied by the checkout flow."""
    product_id: str = Field(..., min_length=1, max_length=32)
    name: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    quantity: int = Field(..., ge=1)
    image: Optional[str] = None


class ShippingAddress(BaseModel):
    full_name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    building: Optional[str] = None
    house_unit: Optional[str] = None
    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip_code: str = Field(..., min_length=1)


class PayPalResult(BaseModel):
    """PayPal capture payload; only its identity is checked."""
    model_config = ConfigDict(extra="allow")

    id: str
    status: str


class PayMongoResult(BaseModel):
    """PayMongo payment intent payload; only its identity is checked."""
    model_config = ConfigDict(extra="allow")

    id: str
    status: Optional[str] = None


class PlaceOrderRequest(BaseModel):
    """Schema for order placement."""
    items: List[OrderItemIn] = Field(..., min_length=1)
    shipping_address: ShippingAddress
    payment_method: PaymentMethod
    payment_result: Optional[Dict[str, Any]] = None
    total_amount: float = Field(..., gt=0)

    @model_validator(mode="after")
    def check_payment_result(self):
        """Gateway payloads must at least look like the selected gateway's."""
        if self.payment_method == "paypal" and self.payment_result is not None:
            PayPalResult.model_validate(self.payment_result)
        elif self.payment_method == "paymongo" and self.payment_result is not None:
            PayMongoResult.model_validate(self.payment_result)
        elif self.payment_method == "cod":
            self.payment_result = None
        return self


class OrderItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: str
    name: str
    price: float
    quantity: int
    image: Optional[str] = None


class OrderResponse(BaseModel):
    """Schema for order response."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    items: List[OrderItemResponse]
    shipping_address: Dict[str, Any]
    payment_method: str
    payment_result: Optional[Dict[str, Any]] = None
    total_amount: float
    status: str
    created_at: datetime
    updated_at: Optional[datetime] = None


class OrderStatusUpdate(BaseModel):
    """Target status; unknown values are rejected by the order state machine."""
    status: str = Field(..., min_length=1)


# Reviews

class ReviewCreate(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: str = Field(..., min_length=1)


class ReviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    product_id: str
    user_id: str
    user_name: str
    rating: int
    comment: str
    created_at: datetime


class EligibilityResponse(BaseModel):
    can_review: bool
    reason: Optional[str] = None


# Addresses

class AddressCreate(BaseModel):
    label: str = Field(..., min_length=1)
    full_name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    building: str = ""
    house_unit: str = ""
    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip_code: str = Field(..., min_length=1)
    is_default: bool = False


class AddressUpdate(BaseModel):
    """Partial address update; only supplied fields change."""
    label: Optional[str] = Field(None, min_length=1)
    full_name: Optional[str] = Field(None, min_length=1)
    phone: Optional[str] = Field(None, min_length=1)
    building: Optional[str] = None
    house_unit: Optional[str] = None
    street: Optional[str] = Field(None, min_length=1)
    city: Optional[str] = Field(None, min_length=1)
    state: Optional[str] = Field(None, min_length=1)
    zip_code: Optional[str] = Field(None, min_length=1)
    is_default: Optional[bool] = None


class AddressResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    label: str
    full_name: str
    phone: str
    building: str
    house_unit: str
    street: str
    city: str
    state: str
    zip_code: str
    is_default: bool


# Settings

class SettingUpdate(BaseModel):
    key: str
    value: Any = None


class SettingResponse(BaseModel):
    key: str
    value: Any = None


# Payments

class PaymentIntentRequest(BaseModel):
    amount: float = Field(..., gt=0, description="Amount in pesos")
    description: Optional[str] = None
    return_url: Optional[str] = None


class PaymentIntentResponse(BaseModel):
    payment_intent_id: str
    client_key: Optional[str] = None
    status: Optional[str] = None
    next_action_url: Optional[str] = None
