"""Product review service."""
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from opentelemetry import trace

from errors import ConflictError, ForbiddenError
from models import Order, OrderItem, Product, Review
from monitoring import reviews_submitted_counter, reviews_rejected_counter
from services.catalog_service import CatalogService

logger = logging.getLogger(__name__)

REASON_NOT_LOGGED_IN = "Not logged in"
REASON_ALREADY_REVIEWED = "Already reviewed"
REASON_NOT_DELIVERED = "Not purchased or not yet delivered"


def round_rating(total: int, count: int) -> float:
    """Mean rating rounded half-up to one decimal; 0.0 when there are no reviews."""
    if not count:
        return 0.0
    mean = Decimal(total) / Decimal(count)
    return float(mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


class ReviewService:
    """Review eligibility, submission and rating aggregation."""

    def __init__(self, catalog_service: CatalogService):
        self.catalog_service = catalog_service
        self.tracer = trace.get_tracer(__name__)

    def _find_review(self, db: Session, user_id: str, product_id: str) -> Optional[Review]:
        return db.query(Review).filter(
            Review.product_id == product_id,
            Review.user_id == user_id
        ).first()

    def _has_delivered_order(self, db: Session, user_id: str, product_id: str) -> bool:
        with self.tracer.start_as_current_span("db.query.find_delivered_order") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "orders")
            db_span.set_attribute("user.id", user_id)

            order_id = (
                db.query(Order.id)
                .join(OrderItem, OrderItem.order_id == Order.id)
                .filter(
                    Order.user_id == user_id,
                    Order.status == "delivered",
                    OrderItem.product_id == product_id
                )
                .first()
            )
            return order_id is not None

    def check_eligibility(self, db: Session, user_id: Optional[str], product_id: str) -> Dict[str, Any]:
        """
        Tell whether a user may review a product.

        Args:
            db: Database session
            user_id: Caller, None when anonymous
            product_id: Product identifier

        Returns:
            {"can_review": bool, "reason": str or None}
        """
        if user_id is None:
            return {"can_review": False, "reason": REASON_NOT_LOGGED_IN}
        if self._find_review(db, user_id, product_id) is not None:
            return {"can_review": False, "reason": REASON_ALREADY_REVIEWED}
        if not self._has_delivered_order(db, user_id, product_id):
            return {"can_review": False, "reason": REASON_NOT_DELIVERED}
        return {"can_review": True, "reason": None}

    def list_reviews(self, db: Session, product_id: str) -> List[Review]:
        """Reviews of a product, newest first."""
        return (
            db.query(Review)
            .filter(Review.product_id == product_id)
            .order_by(Review.created_at.desc(), Review.id)
            .all()
        )

    def submit_review(
        self,
        db: Session,
        user_id: str,
        user_name: str,
        product_id: str,
        rating: int,
        comment: str
    ) -> Review:
        """
        Persist a review and refresh the product's rating aggregate.

        Eligibility is re-checked here regardless of what the client was told.
        The product row is locked while the review is inserted and the
        aggregate recomputed, so concurrent submissions for one product apply
        one after another.

        Raises:
            NotFoundError: If the product does not exist; soft-deleted products stay reviewable
            ForbiddenError: If the user has no delivered order containing the product
            ConflictError: If the user already reviewed the product
        """
        self.catalog_service.get_product(db, product_id)

        if not self._has_delivered_order(db, user_id, product_id):
            reviews_rejected_counter.add(1, {"reason": "not_delivered"})
            logger.info("Review rejected: no delivered order", extra={
                "user_id": user_id,
                "product_id": product_id
            })
            raise ForbiddenError("You can only review products you have purchased and received.")

        if self._find_review(db, user_id, product_id) is not None:
            reviews_rejected_counter.add(1, {"reason": "duplicate"})
            raise ConflictError("You have already reviewed this product.")

        try:
            with self.tracer.start_as_current_span("db.transaction.create_review") as db_span:
                db_span.set_attribute("db.operation", "INSERT")
                db_span.set_attribute("db.table", "reviews")
                db_span.set_attribute("product.id", product_id)

                product = (
                    db.query(Product)
                    .filter(Product.id == product_id)
                    .with_for_update()
                    .one()
                )

                review = Review(
                    product_id=product_id,
                    user_id=user_id,
                    user_name=user_name or "Anonymous",
                    rating=rating,
                    comment=comment
                )
                db.add(review)
                db.flush()

                total, count = (
                    db.query(func.coalesce(func.sum(Review.rating), 0), func.count(Review.id))
                    .filter(Review.product_id == product_id)
                    .one()
                )
                product.rating = round_rating(int(total), int(count))
                product.review_count = int(count)

                db.commit()
        except IntegrityError:
            db.rollback()
            reviews_rejected_counter.add(1, {"reason": "duplicate"})
            logger.info("Review rejected: concurrent duplicate", extra={
                "user_id": user_id,
                "product_id": product_id
            })
            raise ConflictError("You have already reviewed this product.")

        db.refresh(review)
        reviews_submitted_counter.add(1, {"rating": str(rating)})
        logger.info("Review submitted", extra={
            "user_id": user_id,
            "product_id": product_id,
            "rating": rating,
            "product_rating": product.rating,
            "review_count": product.review_count
        })
        return review
