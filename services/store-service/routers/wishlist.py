"""Wishlist API router."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from auth import Session as AuthSession, verify_token
from database import get_db
from dependencies import get_wishlist_service
from schemas import WishlistEntryResponse, WishlistToggleRequest, WishlistToggleResponse
from services.wishlist_service import WishlistService

router = APIRouter(prefix="/wishlist", tags=["wishlist"])


@router.get("", response_model=List[WishlistEntryResponse])
async def get_wishlist(
    db: Session = Depends(get_db),
    session: AuthSession = Depends(verify_token),
    wishlist: WishlistService = Depends(get_wishlist_service)
):
    """Get user's wishlist - requires authentication."""
    return wishlist.read(db, session.user_id)


@router.post("", response_model=WishlistToggleResponse)
async def toggle_wishlist(
    request: WishlistToggleRequest,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(verify_token),
    wishlist: WishlistService = Depends(get_wishlist_service)
):
    """Add the product if absent, remove it if present."""
    result = wishlist.toggle(db, session.user_id, request.product_id)
    message = "Added to wishlist" if result["added"] else "Removed from wishlist"
    return {"added": result["added"], "message": message}
