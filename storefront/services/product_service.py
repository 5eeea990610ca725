"""Product catalog service."""
import logging
from typing import List

from opentelemetry import trace
from sqlalchemy import case, update
from sqlalchemy.orm import Session

from storefront.database import transaction
from storefront.errors import NotFound, ValidationError
from storefront.models import CartItem, OrderItem, Product
from storefront.monitoring import product_views_counter, stock_adjustments_counter
from storefront.schemas import ProductCreate, ProductUpdate

logger = logging.getLogger(__name__)


class ProductService:
    """Service for reading and administering the product catalog."""

    def __init__(self):
        self.tracer = trace.get_tracer(__name__)

    def list_products(
        self,
        db: Session,
        featured: bool = False,
        bestseller: bool = False
    ) -> List[Product]:
        """
        List catalog products.

        Args:
            db: Database session
            featured: Only return featured products
            bestseller: Order by units sold instead of id

        Returns:
            Matching products
        """
        with self.tracer.start_as_current_span("db.query.list_products") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "products")

            query = db.query(Product)
            if featured:
                query = query.filter(Product.is_featured.is_(True))
            if bestseller:
                query = query.order_by(Product.total_sold.desc(), Product.id.asc())
            else:
                query = query.order_by(Product.id.asc())
            products = query.all()

            db_span.set_attribute("db.rows_returned", len(products))

        product_views_counter.add(1, {"view": "catalog", "featured": str(featured).lower()})
        return products

    def get_product(self, db: Session, product_id: int) -> Product:
        product = db.get(Product, product_id)
        if product is None:
            raise NotFound("Product not found")

        product_views_counter.add(1, {"view": "detail"})
        return product

    def create_product(self, db: Session, data: ProductCreate) -> Product:
        product = Product(**data.model_dump())
        with transaction(db):
            db.add(product)
        db.refresh(product)

        logger.info("Created product", extra={
            "product_id": product.id,
            "product_name": product.name
        })
        return product

    def update_product(self, db: Session, product_id: int, data: ProductUpdate) -> Product:
        """Apply the fields present in ``data`` to a product."""
        product = db.get(Product, product_id)
        if product is None:
            raise NotFound("Product not found")

        changes = data.model_dump(exclude_unset=True)
        with transaction(db):
            for field, value in changes.items():
                if value is None and field in ("name", "price", "stock", "is_featured", "total_sold"):
                    raise ValidationError(f"{field} cannot be null")
                setattr(product, field, value)
        db.refresh(product)

        if "total_sold" in changes:
            logger.warning("Sold count corrected by administrator", extra={
                "product_id": product_id,
                "total_sold": product.total_sold
            })
        logger.info("Updated product", extra={
            "product_id": product_id,
            "fields": sorted(changes)
        })
        return product

    def delete_product(self, db: Session, product_id: int) -> None:
        """
        Delete a product and any cart lines holding it.

        Raises:
            NotFound: If the product does not exist
            ValidationError: If order history references the product
        """
        product = db.get(Product, product_id)
        if product is None:
            raise NotFound("Product not found")

        ordered = db.query(OrderItem.id).filter(OrderItem.product_id == product_id).first()
        if ordered is not None:
            raise ValidationError("Cannot delete a product that appears in existing orders")

        with transaction(db):
            db.query(CartItem).filter(CartItem.product_id == product_id).delete(synchronize_session=False)
            db.delete(product)

        logger.info("Deleted product", extra={"product_id": product_id})

    def toggle_featured(self, db: Session, product_id: int) -> Product:
        product = db.get(Product, product_id)
        if product is None:
            raise NotFound("Product not found")

        with transaction(db):
            product.is_featured = not product.is_featured
        db.refresh(product)
        return product

    def adjust_stock(self, db: Session, product_id: int, operation: str, amount: int = 1) -> Product:
        """
        Increment or decrement a product's stock in a single UPDATE.

        Decrements clamp at zero so stock never goes negative.

        Raises:
            ValidationError: On an unknown operation or non-positive amount
            NotFound: If the product does not exist
        """
        if operation not in ("increment", "decrement"):
            raise ValidationError("Invalid operation")
        if amount < 1:
            raise ValidationError("amount must be at least 1")

        if operation == "increment":
            new_stock = Product.stock + amount
        else:
            new_stock = case((Product.stock > amount, Product.stock - amount), else_=0)

        with self.tracer.start_as_current_span("db.query.update_product_stock") as db_span:
            db_span.set_attribute("db.operation", "UPDATE")
            db_span.set_attribute("db.table", "products")
            db_span.set_attribute("product.id", product_id)

            with transaction(db):
                result = db.execute(
                    update(Product)
                    .where(Product.id == product_id)
                    .values(stock=new_stock)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    raise NotFound("Product not found")

            db_span.set_attribute("db.rows_affected", result.rowcount)

        product = db.get(Product, product_id)
        db.refresh(product)

        stock_adjustments_counter.add(1, {"operation": operation})
        logger.info("Adjusted product stock", extra={
            "product_id": product_id,
            "operation": operation,
            "amount": amount,
            "stock": product.stock
        })
        return product

    def duplicate_product(self, db: Session, product_id: int) -> Product:
        """Copy a product under a new name; the copy starts with no sales."""
        original = db.get(Product, product_id)
        if original is None:
            raise NotFound("Product not found")

        duplicate = Product(
            name=f"{original.name} (Copy)",
            description=original.description,
            price=original.price,
            stock=original.stock,
            image_url=original.image_url,
            is_featured=original.is_featured,
            total_sold=0
        )
        with transaction(db):
            db.add(duplicate)
        db.refresh(duplicate)

        logger.info("Duplicated product", extra={
            "product_id": product_id,
            "duplicate_id": duplicate.id
        })
        return duplicate
