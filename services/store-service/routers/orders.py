"""Orders API router."""
from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session
from typing import List, Optional

from auth import Session as AuthSession, verify_token
from database import get_db
from dependencies import get_order_service
from schemas import OrderResponse, PlaceOrderRequest
from services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", response_model=OrderResponse, status_code=201)
async def place_order(
    request: PlaceOrderRequest,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    db: Session = Depends(get_db),
    session: AuthSession = Depends(verify_token),
    order_service: OrderService = Depends(get_order_service)
):
    """
    Place an order from the checkout snapshot - requires authentication.

    Payment has already been captured (or is cash on delivery) by the time
    this is called. Send an Idempotency-Key header to make retries safe.
    """
    return order_service.place_order(db, session.user_id, request, idempotency_key)


@router.get("", response_model=List[OrderResponse])
async def get_orders(
    db: Session = Depends(get_db),
    session: AuthSession = Depends(verify_token),
    order_service: OrderService = Depends(get_order_service)
):
    """Get user's orders - requires authentication."""
    return order_service.get_user_orders(db, session.user_id)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(verify_token),
    order_service: OrderService = Depends(get_order_service)
):
    """Get one of the caller's orders."""
    return order_service.get_user_order(db, session.user_id, order_id)
