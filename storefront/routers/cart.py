"""Cart API router.

Every route requires an authenticated identity; item routes re-check that
the targeted line belongs to the caller's cart.
"""
from fastapi import APIRouter, Depends, Path
from sqlalchemy.orm import Session

from storefront.auth import Identity, get_current_user
from storefront.database import get_db
from storefront.dependencies import get_cart_service
from storefront.schemas import (
    AddToCartRequest,
    CartResponse,
    MergeCartRequest,
    MergeCartResponse,
    MessageResponse,
    UpdateCartItemRequest,
)
from storefront.services.cart_service import CartService

router = APIRouter(prefix="/api/cart", tags=["cart"])


@router.get("", response_model=CartResponse)
def get_cart(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_user),
    cart_service: CartService = Depends(get_cart_service)
):
    """Get user's cart - requires authentication."""
    return cart_service.get_cart(db, identity.id)


@router.delete("", response_model=MessageResponse)
def clear_cart(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_user),
    cart_service: CartService = Depends(get_cart_service)
):
    removed = cart_service.clear_cart(db, identity.id)
    return {"message": f"Removed {removed} item(s) from cart"}


@router.post("/items", response_model=MessageResponse)
def add_to_cart(
    request: AddToCartRequest,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_user),
    cart_service: CartService = Depends(get_cart_service)
):
    """Add item to cart - requires authentication."""
    cart_service.add_item(db, identity.id, request.product_id, request.quantity)
    return {"message": "Added to cart"}


@router.put("/items/{cart_item_id}", response_model=MessageResponse)
def update_cart_item(
    request: UpdateCartItemRequest,
    cart_item_id: int = Path(..., description="Cart item ID"),
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_user),
    cart_service: CartService = Depends(get_cart_service)
):
    """Set the quantity of a cart line; zero or less removes it."""
    item = cart_service.update_quantity(db, identity.id, cart_item_id, request.quantity)
    return {"message": "Cart item updated" if item is not None else "Cart item removed"}


@router.delete("/items/{cart_item_id}", response_model=MessageResponse)
def remove_cart_item(
    cart_item_id: int = Path(..., description="Cart item ID"),
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_user),
    cart_service: CartService = Depends(get_cart_service)
):
    cart_service.remove_item(db, identity.id, cart_item_id)
    return {"message": "Cart item removed"}


@router.post("/merge", response_model=MergeCartResponse)
def merge_cart(
    request: MergeCartRequest,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_user),
    cart_service: CartService = Depends(get_cart_service)
):
    """
    Merge a guest cart into the user's cart.

    Quantities are added to existing lines, so clients call this at most
    once per login.
    """
    merged = cart_service.merge_cart(db, identity.id, request.guest_cart)
    return {"message": "Cart merged successfully", "merged_items": merged}
