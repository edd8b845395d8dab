"""Wishlist management service."""
import logging
from typing import Any, Dict, List
from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models import Product, WishlistItem
from monitoring import wishlist_toggles_counter

logger = logging.getLogger(__name__)


class WishlistService:
    """Per-user set of saved products."""

    def toggle(self, db: Session, user_id: str, product_id: str) -> Dict[str, bool]:
        """
        Remove the product if it is saved, save it otherwise.

        Returns:
            {"added": True} when the product is now in the wishlist
        """
        removed = db.execute(
            delete(WishlistItem)
            .where(WishlistItem.user_id == user_id, WishlistItem.product_id == product_id)
            .execution_options(synchronize_session=False)
        ).rowcount

        if removed:
            db.commit()
            added = False
        else:
            db.add(WishlistItem(user_id=user_id, product_id=product_id))
            try:
                db.commit()
            except IntegrityError:
                # Saved by a concurrent request; the set already holds it
                db.rollback()
            added = True

        wishlist_toggles_counter.add(1, {"operation": "add" if added else "remove"})
        logger.info("Wishlist toggled", extra={
            "user_id": user_id,
            "product_id": product_id,
            "added": added
        })
        return {"added": added}

    def read(self, db: Session, user_id: str) -> List[Dict[str, Any]]:
        """Wishlist entries joined with the product, None for deleted products."""
        rows = (
            db.query(WishlistItem, Product)
            .outerjoin(
                Product,
                (Product.id == WishlistItem.product_id) & Product.deleted_at.is_(None)
            )
            .filter(WishlistItem.user_id == user_id)
            .order_by(WishlistItem.id)
            .all()
        )
        return [{"product_id": item.product_id, "product": product} for item, product in rows]
