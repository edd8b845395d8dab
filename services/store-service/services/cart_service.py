"""Cart management service."""
import logging
from typing import Any, Dict, Iterable, Optional
from sqlalchemy import case, delete, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
import redis
from opentelemetry import trace

from models import CartItem, Product, utcnow
from monitoring import cart_mutations_counter
from services.catalog_service import CatalogService

logger = logging.getLogger(__name__)

CART_CACHE_TTL = 3600


class CartService:
    """Service for managing shopping carts."""

    def __init__(self, redis_client: redis.Redis, catalog_service: CatalogService):
        """
        Initialize cart service.

        Args:
            redis_client: Redis client for caching item counts
            catalog_service: Catalog used to check products being added
        """
        self.redis_client = redis_client
        self.catalog_service = catalog_service
        self.tracer = trace.get_tracer(__name__)

    def _get_entry(self, db: Session, user_id: str, product_id: str) -> Optional[CartItem]:
        return db.query(CartItem).filter(
            CartItem.user_id == user_id,
            CartItem.product_id == product_id
        ).first()

    def _increment(self, db: Session, user_id: str, product_id: str, delta: int) -> int:
        """Single UPDATE statement; the quantity floor of 1 is applied in SQL."""
        new_quantity = CartItem.quantity + delta
        statement = (
            update(CartItem)
            .where(CartItem.user_id == user_id, CartItem.product_id == product_id)
            .values(
                quantity=case((new_quantity < 1, 1), else_=new_quantity),
                updated_at=utcnow()
            )
            .execution_options(synchronize_session=False)
        )
        return db.execute(statement).rowcount

    def add_or_increment(
        self,
        db: Session,
        user_id: str,
        product_id: str,
        delta: int
    ) -> Optional[CartItem]:
        """
        Add quantity to (or take it away from) a cart entry.

        An existing entry becomes max(1, quantity + delta). A missing entry is
        created with quantity delta when delta is positive and left alone
        otherwise. Stock is not checked.

        Args:
            db: Database session
            user_id: User identifier
            product_id: Product identifier
            delta: Quantity change, may be negative

        Returns:
            The resulting cart entry, or None when nothing exists

        Raises:
            NotFoundError: If a new entry would reference a missing or deleted product
        """
        span = trace.get_current_span()
        span.set_attribute("product.id", product_id)
        span.set_attribute("quantity.delta", delta)

        with self.tracer.start_as_current_span("db.query.upsert_cart_item") as db_span:
            db_span.set_attribute("db.table", "cart_items")
            db_span.set_attribute("user.id", user_id)
            db_span.set_attribute("product.id", product_id)

            # Two rounds: if a concurrent request inserts the same entry between
            # our UPDATE and INSERT, the unique constraint fires and we increment instead.
            for _ in range(2):
                if self._increment(db, user_id, product_id, delta):
                    db_span.set_attribute("db.operation", "UPDATE")
                    db.commit()
                    break

                if delta <= 0:
                    db.rollback()
                    return None

                self.catalog_service.get_active_product(db, product_id)
                db_span.set_attribute("db.operation", "INSERT")
                db.add(CartItem(user_id=user_id, product_id=product_id, quantity=delta))
                try:
                    db.commit()
                    break
                except IntegrityError:
                    db.rollback()
                    logger.info("Concurrent cart insert detected, retrying as increment", extra={
                        "user_id": user_id,
                        "product_id": product_id
                    })

        entry = self._get_entry(db, user_id, product_id)
        self._refresh_count_cache(db, user_id)

        cart_mutations_counter.add(1, {"operation": "increment" if delta > 0 else "decrement"})
        logger.info("Cart updated", extra={
            "user_id": user_id,
            "product_id": product_id,
            "delta": delta,
            "quantity": entry.quantity if entry else None
        })
        return entry

    def remove(self, db: Session, user_id: str, product_id: str) -> bool:
        """
        Remove a product from the cart.

        Removing an entry that is not there is a successful no-op.

        Returns:
            True if an entry was deleted
        """
        with self.tracer.start_as_current_span("db.query.delete_cart_item") as db_span:
            db_span.set_attribute("db.operation", "DELETE")
            db_span.set_attribute("db.table", "cart_items")
            db_span.set_attribute("user.id", user_id)

            deleted = db.execute(
                delete(CartItem)
                .where(CartItem.user_id == user_id, CartItem.product_id == product_id)
                .execution_options(synchronize_session=False)
            ).rowcount
            db.commit()

            db_span.set_attribute("db.rows_affected", deleted)

        if not deleted:
            logger.info("Item not found in cart or already removed", extra={
                "user_id": user_id,
                "product_id": product_id
            })
        self._refresh_count_cache(db, user_id)
        cart_mutations_counter.add(1, {"operation": "remove"})
        return bool(deleted)

    def read(self, db: Session, user_id: str) -> Dict[str, Any]:
        """
        Get user's cart contents joined with current product data.

        Entries whose product has been deleted or soft-deleted are kept with
        product set to None.
        """
        with self.tracer.start_as_current_span("db.query.get_cart_items") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "cart_items")
            db_span.set_attribute("user.id", user_id)

            rows = (
                db.query(CartItem, Product)
                .outerjoin(
                    Product,
                    (Product.id == CartItem.product_id) & Product.deleted_at.is_(None)
                )
                .filter(CartItem.user_id == user_id)
                .order_by(CartItem.id)
                .all()
            )

            db_span.set_attribute("db.rows_returned", len(rows))

        return {
            "user_id": user_id,
            "items": [
                {"product_id": item.product_id, "quantity": item.quantity, "product": product}
                for item, product in rows
            ]
        }

    def clear(self, db: Session, user_id: str, product_ids: Optional[Iterable[str]] = None) -> int:
        """
        Delete cart entries without committing.

        Args:
            db: Database session, committed by the caller
            user_id: User identifier
            product_ids: Restrict deletion to these products; None clears everything

        Returns:
            Number of entries deleted
        """
        with self.tracer.start_as_current_span("db.query.delete_cart_items") as db_span:
            db_span.set_attribute("db.operation", "DELETE")
            db_span.set_attribute("db.table", "cart_items")
            db_span.set_attribute("user.id", user_id)

            statement = delete(CartItem).where(CartItem.user_id == user_id)
            if product_ids is not None:
                statement = statement.where(CartItem.product_id.in_(list(product_ids)))
            deleted = db.execute(statement.execution_options(synchronize_session=False)).rowcount

            db_span.set_attribute("db.rows_affected", deleted)

        return deleted

    def count(self, db: Session, user_id: str) -> int:
        """Number of distinct products in the cart, served from Redis when cached."""
        cache_key = f"cart:{user_id}"
        try:
            cached = self.redis_client.get(cache_key)
            if cached is not None:
                return int(cached)
        except redis.RedisError as e:
            logger.warning(f"Cart cache read failed: {e}")
        return self._refresh_count_cache(db, user_id)

    def _refresh_count_cache(self, db: Session, user_id: str) -> int:
        count = db.query(CartItem).filter(CartItem.user_id == user_id).count()
        cache_key = f"cart:{user_id}"
        with self.tracer.start_as_current_span("cache.set") as cache_span:
            cache_span.set_attribute("cache.system", "redis")
            cache_span.set_attribute("cache.operation", "SET")
            cache_span.set_attribute("cache.key", cache_key)
            try:
                self.redis_client.set(cache_key, count, ex=CART_CACHE_TTL)
                cache_span.set_attribute("cache.ttl", CART_CACHE_TTL)
            except redis.RedisError as e:
                logger.warning(f"Cart cache update failed: {e}")
        return count

    def invalidate(self, user_id: str) -> None:
        """Drop the cached count after an out-of-band cart change."""
        try:
            self.redis_client.delete(f"cart:{user_id}")
        except redis.RedisError as e:
            logger.warning(f"Cart cache invalidation failed: {e}")
