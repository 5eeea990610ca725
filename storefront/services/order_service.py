"""Order management service."""
import logging
from typing import Dict, List, Optional, Sequence

from opentelemetry import trace
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from storefront.auth import Identity
from storefront.database import transaction
from storefront.errors import (
    AccessDenied,
    InsufficientStock,
    NotFound,
    PersistenceFailure,
    StorefrontError,
    ValidationError,
)
from storefront.models import Order, OrderItem, OrderStatus, PaymentMethod, Product
from storefront.monitoring import (
    checkout_amount_histogram,
    checkout_counter,
    insufficient_stock_counter,
    order_status_counter,
)
from storefront.schemas import OrderLineRequest

logger = logging.getLogger(__name__)

# Allowed administrative status changes; DELIVERED and CANCELLED are terminal.
STATUS_TRANSITIONS: Dict[OrderStatus, frozenset] = {
    OrderStatus.PENDING: frozenset({OrderStatus.APPROVED, OrderStatus.CANCELLED}),
    OrderStatus.APPROVED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


class OrderService:
    """Service for placing orders and managing their lifecycle."""

    def __init__(self):
        self.tracer = trace.get_tracer(__name__)

    def create_order(
        self,
        db: Session,
        lines: Sequence[OrderLineRequest],
        total: float,
        payment_method: PaymentMethod,
        user_id: Optional[int] = None,
        shipping_address: Optional[str] = None,
        contact_number: Optional[str] = None,
        payment_proof: Optional[str] = None,
        delivery_time: Optional[str] = None
    ) -> Order:
        """
        Place an order, taking its stock in the same transaction.

        Every affected product row is locked in id order and checked against
        the total demand for it before anything is written. The decrement is
        a conditional UPDATE guarded by ``stock >= quantity``, so two
        concurrent orders can never both take the last units, even on
        databases that ignore row locks. Line prices are copied from the
        submitted lines.

        Args:
            db: Database session
            lines: Submitted order lines
            total: Order total as shown to the customer
            payment_method: COD or GCASH
            user_id: Ordering user, None for a guest order
            shipping_address: Delivery address (COD)
            contact_number: Contact number (COD)
            payment_proof: URL of the uploaded GCash receipt
            delivery_time: Requested delivery time

        Returns:
            The created order with its items

        Raises:
            ValidationError: If the lines are empty or malformed, or reference an unknown product
            InsufficientStock: If any product cannot cover the requested quantity
            PersistenceFailure: If the database fails mid-transaction
        """
        try:
            payment_method = PaymentMethod(payment_method)
        except ValueError:
            raise ValidationError(f"Unsupported payment method: {payment_method}")
        demand = self._aggregate_demand(lines)
        if total < 0:
            raise ValidationError("total must not be negative")

        span = trace.get_current_span()
        span.set_attribute("payment.method", payment_method.value)
        span.set_attribute("order.line_count", len(lines))

        try:
            with self.tracer.start_as_current_span("db.transaction.create_order") as db_span:
                db_span.set_attribute("db.operation", "INSERT")
                db_span.set_attribute("db.table", "orders")
                db_span.set_attribute("order.total", total)

                with transaction(db):
                    products = self._lock_products(db, list(demand))

                    # Step 1: every line must be coverable before anything changes
                    for product_id, quantity in demand.items():
                        product = products.get(product_id)
                        if product is None:
                            raise ValidationError(
                                f"Product {product_id} does not exist",
                                {"productId": product_id}
                            )
                        if product.stock < quantity:
                            raise InsufficientStock(product.id, product.name)

                    # Step 2: take the stock and count the sale
                    for product_id, quantity in demand.items():
                        with self.tracer.start_as_current_span("db.query.update_product_stock") as update_span:
                            update_span.set_attribute("db.operation", "UPDATE")
                            update_span.set_attribute("db.table", "products")
                            update_span.set_attribute("product.id", product_id)

                            result = db.execute(
                                update(Product)
                                .where(Product.id == product_id, Product.stock >= quantity)
                                .values(
                                    stock=Product.stock - quantity,
                                    total_sold=Product.total_sold + quantity
                                )
                                .execution_options(synchronize_session=False)
                            )
                            if result.rowcount != 1:
                                raise InsufficientStock(product_id, products[product_id].name)

                            update_span.set_attribute("db.rows_affected", result.rowcount)

                    # Step 3: order header and price snapshots
                    order = Order(
                        user_id=user_id,
                        total=total,
                        status=OrderStatus.PENDING.value,
                        payment_method=payment_method.value,
                        shipping_address=shipping_address,
                        contact_number=contact_number,
                        payment_proof=payment_proof,
                        delivery_time=delivery_time,
                        items=[
                            OrderItem(
                                product_id=line.product_id,
                                quantity=line.quantity,
                                price=line.price
                            )
                            for line in lines
                        ]
                    )
                    db.add(order)
                    db.flush()
                    order_id = order.id

                db_span.set_attribute("order.id", order_id)

        except InsufficientStock as e:
            insufficient_stock_counter.add(1, {"product_id": str(e.product_id)})
            checkout_counter.add(1, {"payment_method": payment_method.value, "status": "insufficient_stock"})
            logger.warning("Order rejected: insufficient stock", extra={
                "user_id": user_id,
                "product_id": e.product_id,
                "product_name": e.product_name
            })
            raise
        except StorefrontError:
            checkout_counter.add(1, {"payment_method": payment_method.value, "status": "rejected"})
            raise
        except SQLAlchemyError as e:
            checkout_counter.add(1, {"payment_method": payment_method.value, "status": "failed"})
            logger.error("Failed to create order", extra={
                "user_id": user_id,
                "amount": total,
                "payment_method": payment_method.value,
                "error": str(e)
            })
            raise PersistenceFailure("Failed to create order")

        checkout_counter.add(1, {"payment_method": payment_method.value, "status": "completed"})
        checkout_amount_histogram.record(total, {"payment_method": payment_method.value})

        logger.info("Order placed", extra={
            "user_id": user_id,
            "order_id": order_id,
            "amount": total,
            "payment_method": payment_method.value,
            "item_count": len(lines)
        })

        return self._load_order(db, order_id)

    def get_orders(self, db: Session, actor: Identity, user_id: Optional[int] = None) -> List[Order]:
        """
        List orders visible to ``actor``, newest first.

        Admins see every order and may filter by ``user_id``; everyone else
        only sees their own orders and the filter is ignored.
        """
        with self.tracer.start_as_current_span("db.query.get_orders") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "orders")
            db_span.set_attribute("user.id", actor.id)

            query = db.query(Order).options(
                selectinload(Order.items).selectinload(OrderItem.product),
                selectinload(Order.user)
            )
            if actor.is_admin:
                if user_id is not None:
                    query = query.filter(Order.user_id == user_id)
            else:
                query = query.filter(Order.user_id == actor.id)

            orders = query.order_by(Order.created_at.desc(), Order.id.desc()).all()

            db_span.set_attribute("db.rows_returned", len(orders))

            return orders

    def get_order(self, db: Session, order_id: int, actor: Identity) -> Order:
        """
        Fetch one order, enforcing ownership for non-admin actors.

        Raises:
            NotFound: If the order does not exist
            AccessDenied: If the actor is neither admin nor the owner
        """
        order = self._load_order(db, order_id)
        if not actor.is_admin and order.user_id != actor.id:
            logger.warning("Order access denied", extra={
                "user_id": actor.id,
                "order_id": order_id
            })
            raise AccessDenied("Access denied: You can only view your own orders")
        return order

    def update_order_status(
        self,
        db: Session,
        order_id: int,
        status: OrderStatus,
        actor: Identity,
        decline_reason: Optional[str] = None
    ) -> Order:
        """
        Move an order along its lifecycle.

        Cancelling requires a decline reason. Stock is not returned when an
        order is cancelled.

        Raises:
            AccessDenied: If the actor is not an admin
            NotFound: If the order does not exist
            ValidationError: On a missing decline reason, a disallowed transition,
                or when another request changed the status first
        """
        if not actor.is_admin:
            raise AccessDenied("Admin access required")

        status = OrderStatus(status)
        reason = (decline_reason or "").strip()
        if status == OrderStatus.CANCELLED and not reason:
            raise ValidationError("A decline reason is required to cancel an order")

        order = db.get(Order, order_id, populate_existing=True)
        if order is None:
            raise NotFound("Order not found")

        current = OrderStatus(order.status)
        if status not in STATUS_TRANSITIONS[current]:
            raise ValidationError(
                f"Cannot change order status from {current.value} to {status.value}"
            )

        values = {"status": status.value}
        if status == OrderStatus.CANCELLED:
            values["decline_reason"] = reason

        with transaction(db):
            # Applies only if nobody moved the order since it was read
            result = db.execute(
                update(Order)
                .where(Order.id == order_id, Order.status == current.value)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                logger.warning("Order status changed concurrently", extra={
                    "order_id": order_id,
                    "admin_id": actor.id,
                    "expected_status": current.value,
                    "to_status": status.value
                })
                raise ValidationError(
                    f"Order status is no longer {current.value}; reload the order and try again"
                )

        order_status_counter.add(1, {"from": current.value, "to": status.value})
        logger.info("Order status updated", extra={
            "order_id": order_id,
            "admin_id": actor.id,
            "from_status": current.value,
            "to_status": status.value
        })
        return self._load_order(db, order_id)

    def _aggregate_demand(self, lines: Sequence[OrderLineRequest]) -> Dict[int, int]:
        if not lines:
            raise ValidationError("Order must contain at least one item")

        demand: Dict[int, int] = {}
        for line in lines:
            if line.quantity <= 0:
                raise ValidationError("quantity must be greater than 0", {"productId": line.product_id})
            if line.price < 0:
                raise ValidationError("price must not be negative", {"productId": line.product_id})
            demand[line.product_id] = demand.get(line.product_id, 0) + line.quantity
        return dict(sorted(demand.items()))

    def _lock_products(self, db: Session, product_ids: List[int]) -> Dict[int, Product]:
        # Ascending id order keeps concurrent checkouts from deadlocking
        rows = db.execute(
            select(Product)
            .where(Product.id.in_(product_ids))
            .order_by(Product.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().all()
        return {product.id: product for product in rows}

    def _load_order(self, db: Session, order_id: int) -> Order:
        order = (
            db.query(Order)
            .options(
                selectinload(Order.items).selectinload(OrderItem.product),
                selectinload(Order.user)
            )
            .filter(Order.id == order_id)
            .first()
        )
        if order is None:
            raise NotFound("Order not found")
        return order
