"""Cart management service."""
import logging
from typing import Any, Callable, Dict, Iterable, Optional, TypeVar

from opentelemetry import trace
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from storefront.database import transaction
from storefront.errors import AccessDenied, NotFound, ValidationError
from storefront.models import Cart, CartItem, Product
from storefront.monitoring import cart_additions_counter, cart_merges_counter
from storefront.schemas import GuestCartLine

logger = logging.getLogger(__name__)

T = TypeVar("T")

# A concurrent request may create the same cart or line first
CART_WRITE_ATTEMPTS = 3


class CartService:
    """Service for managing the server-side cart of authenticated users."""

    def __init__(self):
        self.tracer = trace.get_tracer(__name__)

    def get_or_create_cart(self, db: Session, user_id: int) -> Cart:
        """
        Resolve the user's cart, creating it on first access.

        Args:
            db: Database session
            user_id: Owning user

        Returns:
            The user's cart (flushed, not committed)
        """
        cart = db.query(Cart).filter(Cart.user_id == user_id).first()
        if cart is None:
            cart = Cart(user_id=user_id)
            db.add(cart)
            db.flush()
            logger.info("Created cart", extra={"user_id": user_id, "cart_id": cart.id})
        return cart

    def get_cart(self, db: Session, user_id: int) -> Dict[str, Any]:
        """
        Get user's cart contents.

        Args:
            db: Database session
            user_id: User identifier

        Returns:
            Cart contents with items and total
        """
        cart_id = self._write_cart(db, user_id, lambda cart: cart.id)

        with self.tracer.start_as_current_span("db.query.get_cart_items") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "cart_items")
            db_span.set_attribute("user.id", user_id)

            cart_items = (
                db.query(CartItem)
                .options(selectinload(CartItem.product))
                .filter(CartItem.cart_id == cart_id)
                .order_by(CartItem.id)
                .all()
            )

            db_span.set_attribute("db.rows_returned", len(cart_items))

        items = []
        total = 0.0
        for item in cart_items:
            product = item.product
            subtotal = float(product.price) * item.quantity
            total += subtotal
            items.append({
                "cart_item_id": item.id,
                "product_id": product.id,
                "quantity": item.quantity,
                "subtotal": subtotal,
                "product": {
                    "id": product.id,
                    "name": product.name,
                    "price": float(product.price),
                    "stock": product.stock,
                    "image_url": product.image_url
                }
            })

        return {
            "cart_id": cart_id,
            "user_id": user_id,
            "items": items,
            "total": total
        }

    def add_item(self, db: Session, user_id: int, product_id: int, quantity: int) -> CartItem:
        """
        Add a product to the user's cart.

        Repeated additions of the same product accumulate on one line.

        Raises:
            ValidationError: If quantity is not positive
            NotFound: If the product does not exist
        """
        if quantity <= 0:
            raise ValidationError("quantity must be greater than 0")

        product = db.get(Product, product_id)
        if product is None:
            raise NotFound("Product not found")

        # Stock is not reserved here; it is checked when the order is placed.
        item = self._write_cart(
            db,
            user_id,
            lambda cart: self._add_quantity(db, cart, product_id, quantity)
        )

        cart_additions_counter.add(1, {"product_id": str(product_id)})
        logger.info("Added product to cart", extra={
            "user_id": user_id,
            "product_id": product_id,
            "product_name": product.name,
            "quantity": quantity
        })
        return item

    def update_quantity(
        self,
        db: Session,
        user_id: int,
        cart_item_id: int,
        quantity: int
    ) -> Optional[CartItem]:
        """
        Set a cart line to ``quantity``; zero or less deletes the line.

        Returns:
            The updated line, or None when it was deleted

        Raises:
            NotFound: If the line does not exist
            AccessDenied: If the line belongs to another user's cart
        """
        item = self._owned_item(db, user_id, cart_item_id)

        with transaction(db):
            if quantity <= 0:
                db.delete(item)
                deleted = True
            else:
                item.quantity = quantity
                deleted = False

        logger.info("Updated cart item", extra={
            "user_id": user_id,
            "cart_item_id": cart_item_id,
            "quantity": quantity,
            "deleted": deleted
        })
        return None if deleted else item

    def remove_item(self, db: Session, user_id: int, cart_item_id: int) -> None:
        item = self._owned_item(db, user_id, cart_item_id)
        with transaction(db):
            db.delete(item)

        logger.info("Removed cart item", extra={
            "user_id": user_id,
            "cart_item_id": cart_item_id
        })

    def clear_cart(self, db: Session, user_id: int) -> int:
        """
        Clear user's cart.

        Args:
            db: Database session
            user_id: User identifier

        Returns:
            Number of lines removed
        """
        with self.tracer.start_as_current_span("db.query.delete_cart_items") as db_span:
            db_span.set_attribute("db.operation", "DELETE")
            db_span.set_attribute("db.table", "cart_items")
            db_span.set_attribute("user.id", user_id)

            with transaction(db):
                cart = db.query(Cart).filter(Cart.user_id == user_id).first()
                deleted_count = 0
                if cart is not None:
                    deleted_count = (
                        db.query(CartItem)
                        .filter(CartItem.cart_id == cart.id)
                        .delete(synchronize_session=False)
                    )

            db_span.set_attribute("db.rows_affected", deleted_count)

        return deleted_count

    def merge_cart(self, db: Session, user_id: int, guest_lines: Iterable[GuestCartLine]) -> int:
        """
        Fold an anonymous cart into the user's server cart.

        Quantities are summed with existing lines, so calling this twice with
        the same lines adds them twice. Lines for products that no longer
        exist, or with a non-positive quantity, are skipped.

        Args:
            db: Database session
            user_id: User whose cart receives the lines
            guest_lines: Lines of the anonymous cart

        Returns:
            Number of guest lines merged
        """
        guest_lines = list(guest_lines)

        def fold(cart: Cart) -> int:
            count = 0
            for line in guest_lines:
                if line.quantity <= 0:
                    logger.warning("Skipping guest cart line with non-positive quantity", extra={
                        "user_id": user_id,
                        "product_id": line.product_id,
                        "quantity": line.quantity
                    })
                    continue
                if db.get(Product, line.product_id) is None:
                    logger.warning("Skipping guest cart line for unknown product", extra={
                        "user_id": user_id,
                        "product_id": line.product_id
                    })
                    continue
                self._add_quantity(db, cart, line.product_id, line.quantity)
                count += 1
            return count

        with self.tracer.start_as_current_span("db.transaction.merge_cart") as db_span:
            db_span.set_attribute("user.id", user_id)

            merged = self._write_cart(db, user_id, fold)

            db_span.set_attribute("cart.merged_lines", merged)

        cart_merges_counter.add(1, {"has_items": str(merged > 0).lower()})
        logger.info("Merged guest cart", extra={
            "user_id": user_id,
            "merged_lines": merged
        })
        return merged

    def _write_cart(self, db: Session, user_id: int, work: Callable[[Cart], T]) -> T:
        """
        Run ``work`` against the user's cart in one unit of work.

        Losing a race to create the cart or a line surfaces as a unique
        constraint violation; the whole unit is rolled back and replayed
        against the rows the other request committed.
        """
        for attempt in range(1, CART_WRITE_ATTEMPTS + 1):
            try:
                with transaction(db):
                    return work(self.get_or_create_cart(db, user_id))
            except IntegrityError:
                if attempt == CART_WRITE_ATTEMPTS:
                    raise
                logger.info("Concurrent cart write detected, retrying", extra={
                    "user_id": user_id,
                    "attempt": attempt
                })

    def _add_quantity(self, db: Session, cart: Cart, product_id: int, quantity: int) -> CartItem:
        item = (
            db.query(CartItem)
            .filter(CartItem.cart_id == cart.id, CartItem.product_id == product_id)
            .first()
        )
        if item is None:
            item = CartItem(cart_id=cart.id, product_id=product_id, quantity=quantity)
            db.add(item)
            db.flush()
            return item

        # Increment in SQL so overlapping additions all count
        db.execute(
            update(CartItem)
            .where(CartItem.id == item.id)
            .values(quantity=CartItem.quantity + quantity)
            .execution_options(synchronize_session=False)
        )
        db.refresh(item)
        return item

    def _owned_item(self, db: Session, user_id: int, cart_item_id: int) -> CartItem:
        item = (
            db.query(CartItem)
            .options(selectinload(CartItem.cart))
            .filter(CartItem.id == cart_item_id)
            .first()
        )
        if item is None:
            raise NotFound("Cart item not found")
        if item.cart.user_id != user_id:
            logger.warning("Cart item ownership check failed", extra={
                "user_id": user_id,
                "cart_item_id": cart_item_id
            })
            raise AccessDenied("Unauthorized access to cart item")
        return item
