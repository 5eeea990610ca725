"""Dependency injection for services."""
from fastapi import Request

from storefront.services.admin_service import AdminService
from storefront.services.cart_service import CartService
from storefront.services.file_storage import FileStorage
from storefront.services.order_service import OrderService
from storefront.services.product_service import ProductService


def get_product_service() -> ProductService:
    """Get product service instance."""
    return ProductService()


def get_cart_service() -> CartService:
    """Get cart service instance."""
    return CartService()


def get_order_service() -> OrderService:
    """Get order service instance."""
    return OrderService()


def get_admin_service() -> AdminService:
    """Get admin dashboard service instance."""
    return AdminService()


def get_file_storage(request: Request) -> FileStorage:
    """Get the payment proof storage configured on the app."""
    return request.app.state.file_storage
