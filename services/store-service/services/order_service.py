"""Order management service."""
import logging
from typing import Dict, FrozenSet, List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from opentelemetry import trace

from config import ORDER_CART_CLEAR_MODE
from errors import InvalidStateTransitionError, NotFoundError, ValidationError
from models import Order, OrderItem
from schemas import PlaceOrderRequest
from services.cart_service import CartService
from monitoring import (
    orders_placed_counter,
    order_amount_histogram,
    order_status_transitions_counter
)

logger = logging.getLogger(__name__)

ORDER_STATUSES = ("pending", "processing", "shipped", "delivered", "cancelled")

ALLOWED_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "pending": frozenset({"processing", "cancelled"}),
    "processing": frozenset({"shipped", "cancelled"}),
    "shipped": frozenset({"delivered", "cancelled"}),
    "delivered": frozenset(),
    "cancelled": frozenset(),
}

CART_CLEAR_MODES = ("all", "ordered")


class OrderService:
    """Service for placing orders and moving them through their lifecycle."""

    def __init__(self, cart_service: CartService, cart_clear_mode: str = ORDER_CART_CLEAR_MODE):
        """
        Initialize order service.

        Args:
            cart_service: Cart service instance
            cart_clear_mode: "all" empties the cart on placement, "ordered"
                removes only the ordered products
        """
        if cart_clear_mode not in CART_CLEAR_MODES:
            raise ValueError(f"Unknown cart clear mode: {cart_clear_mode}")
        self.cart_service = cart_service
        self.cart_clear_mode = cart_clear_mode
        self.tracer = trace.get_tracer(__name__)

    def _find_by_idempotency_key(self, db: Session, user_id: str, key: str) -> Optional[Order]:
        return db.query(Order).filter(
            Order.user_id == user_id,
            Order.idempotency_key == key
        ).first()

    def place_order(
        self,
        db: Session,
        user_id: str,
        request: PlaceOrderRequest,
        idempotency_key: Optional[str] = None
    ) -> Order:
        """
        Create an order from the checkout snapshot and clear the cart.

        Items, prices and total are taken as supplied; neither prices nor
        stock are re-checked, and stock is not decremented. The order and the
        cart clearing commit together.

        Args:
            db: Database session
            user_id: User identifier
            request: Items, shipping address, payment method/result and total
            idempotency_key: Client key; a repeated key returns the first order

        Returns:
            The created (or previously created) order

        Raises:
            ValidationError: If required order details are missing
        """
        if not request.items:
            raise ValidationError("Missing required order details: items")
        if request.shipping_address is None:
            raise ValidationError("Missing required order details: shipping address")
        if not request.payment_method:
            raise ValidationError("Missing required order details: payment method")
        if request.total_amount is None:
            raise ValidationError("Missing required order details: total amount")

        span = trace.get_current_span()
        span.set_attribute("payment.method", request.payment_method)
        span.set_attribute("order.item_count", len(request.items))

        if idempotency_key:
            existing = self._find_by_idempotency_key(db, user_id, idempotency_key)
            if existing is not None:
                logger.info("Returning order for repeated idempotency key", extra={
                    "user_id": user_id,
                    "order_id": existing.id
                })
                return existing

        try:
            with self.tracer.start_as_current_span("db.transaction.create_order") as db_span:
                db_span.set_attribute("db.operation", "INSERT")
                db_span.set_attribute("db.table", "orders")
                db_span.set_attribute("user.id", user_id)
                db_span.set_attribute("order.total_amount", request.total_amount)

                order = Order(
                    user_id=user_id,
                    shipping_address=request.shipping_address.model_dump(),
                    payment_method=request.payment_method,
                    payment_result=request.payment_result,
                    total_amount=request.total_amount,
                    status="pending",
                    idempotency_key=idempotency_key,
                    items=[
                        OrderItem(
                            product_id=item.product_id,
                            name=item.name,
                            price=item.price,
                            quantity=item.quantity,
                            image=item.image
                        )
                        for item in request.items
                    ]
                )
                db.add(order)

                product_ids = None
                if self.cart_clear_mode == "ordered":
                    product_ids = {item.product_id for item in request.items}
                cleared = self.cart_service.clear(db, user_id, product_ids)

                db.commit()
                db_span.set_attribute("order.id", order.id)
        except IntegrityError:
            db.rollback()
            existing = self._find_by_idempotency_key(db, user_id, idempotency_key) if idempotency_key else None
            if existing is None:
                raise
            logger.info("Concurrent order with same idempotency key, returning it", extra={
                "user_id": user_id,
                "order_id": existing.id
            })
            return existing
        except Exception as e:
            db.rollback()
            logger.error("Failed to create order", extra={
                "user_id": user_id,
                "amount": request.total_amount,
                "payment_method": request.payment_method,
                "error": str(e)
            })
            raise

        db.refresh(order)
        self.cart_service.invalidate(user_id)

        orders_placed_counter.add(1, {"payment_method": request.payment_method})
        order_amount_histogram.record(request.total_amount, {"payment_method": request.payment_method})

        logger.info("Order placed", extra={
            "user_id": user_id,
            "order_id": order.id,
            "amount": request.total_amount,
            "payment_method": request.payment_method,
            "item_count": len(request.items),
            "cart_entries_cleared": cleared
        })
        return order

    def get_user_orders(self, db: Session, user_id: str) -> List[Order]:
        """
        Get all orders for a user, newest first.

        Args:
            db: Database session
            user_id: User identifier

        Returns:
            List of orders
        """
        with self.tracer.start_as_current_span("db.query.get_user_orders") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "orders")
            db_span.set_attribute("user.id", user_id)

            orders = (
                db.query(Order)
                .filter(Order.user_id == user_id)
                .order_by(Order.created_at.desc(), Order.id)
                .all()
            )

            db_span.set_attribute("db.rows_returned", len(orders))

            return orders

    def get_user_order(self, db: Session, user_id: str, order_id: str) -> Order:
        """Get one of the caller's own orders; other users' orders are not found."""
        order = db.query(Order).filter(Order.id == order_id, Order.user_id == user_id).first()
        if order is None:
            raise NotFoundError("Order not found")
        return order

    def get_order(self, db: Session, order_id: str) -> Order:
        order = db.get(Order, order_id)
        if order is None:
            raise NotFoundError("Order not found")
        return order

    def list_all_orders(self, db: Session) -> List[Order]:
        """Every order, newest first (admin view)."""
        return db.query(Order).order_by(Order.created_at.desc(), Order.id).all()

    def update_status(self, db: Session, order_id: str, status: str) -> Order:
        """
        Move an order to a new status.

        Re-applying the current status is a no-op.

        Raises:
            NotFoundError: If the order does not exist
            InvalidStateTransitionError: If the status is unknown or not
                reachable from the current one
        """
        order = (
            db.query(Order)
            .filter(Order.id == order_id)
            .with_for_update()
            .first()
        )
        if order is None:
            db.rollback()
            raise NotFoundError("Order not found")

        current = order.status
        if status == current:
            db.rollback()
            return order
        if status not in ORDER_STATUSES or status not in ALLOWED_TRANSITIONS[current]:
            db.rollback()
            raise InvalidStateTransitionError(current, status)

        order.status = status
        db.commit()
        db.refresh(order)

        order_status_transitions_counter.add(1, {"from": current, "to": status})
        logger.info("Order status updated", extra={
            "order_id": order.id,
            "from_status": current,
            "to_status": status
        })
        return order
