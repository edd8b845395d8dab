"""Cart API router."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from auth import Session as AuthSession, verify_token
from database import get_db
from dependencies import get_cart_service
from schemas import CartCountResponse, CartResponse, CartUpdateRequest
from services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("", response_model=CartResponse)
async def get_cart(
    db: Session = Depends(get_db),
    session: AuthSession = Depends(verify_token),
    cart_service: CartService = Depends(get_cart_service)
):
    """Get user's cart - requires authentication."""
    return cart_service.read(db, session.user_id)


@router.post("", response_model=CartResponse)
async def update_cart(
    request: CartUpdateRequest,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(verify_token),
    cart_service: CartService = Depends(get_cart_service)
):
    """Add or take away quantity of a product - requires authentication."""
    cart_service.add_or_increment(db, session.user_id, request.product_id, request.quantity)
    return cart_service.read(db, session.user_id)


@router.delete("/{product_id}", response_model=CartResponse)
async def remove_from_cart(
    product_id: str,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(verify_token),
    cart_service: CartService = Depends(get_cart_service)
):
    """Remove a product from the cart; removing an absent product succeeds."""
    cart_service.remove(db, session.user_id, product_id)
    return cart_service.read(db, session.user_id)


@router.get("/count", response_model=CartCountResponse)
async def get_cart_count(
    db: Session = Depends(get_db),
    session: AuthSession = Depends(verify_token),
    cart_service: CartService = Depends(get_cart_service)
):
    """Number of distinct products in the cart."""
    return {"count": cart_service.count(db, session.user_id)}
