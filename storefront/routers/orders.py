"""Orders API router."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from storefront.auth import Identity, get_current_user, require_admin
from storefront.database import get_db
from storefront.dependencies import get_order_service
from storefront.schemas import CreateOrderRequest, OrderResponse, UpdateOrderStatusRequest
from storefront.services.order_service import OrderService

router = APIRouter(prefix="/api/orders", tags=["orders"])


@router.post("", response_model=OrderResponse, status_code=201)
def create_order(
    request: CreateOrderRequest,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_user),
    order_service: OrderService = Depends(get_order_service)
):
    """
    Place an order - requires authentication.

    Customers always order as themselves; only an admin may place an order
    for another user id (or a guest order with ``userId`` null).
    """
    user_id = identity.id
    if identity.is_admin and "user_id" in request.model_fields_set:
        user_id = request.user_id

    return order_service.create_order(
        db=db,
        lines=request.items,
        total=request.total,
        payment_method=request.payment_method,
        user_id=user_id,
        shipping_address=request.shipping_address,
        contact_number=request.contact_number,
        payment_proof=request.payment_proof,
        delivery_time=request.delivery_time
    )


@router.get("", response_model=List[OrderResponse])
def get_orders(
    user_id: Optional[int] = Query(None, alias="userId", description="Admin only: filter by user"),
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_user),
    order_service: OrderService = Depends(get_order_service)
):
    """All orders for admins, otherwise the caller's own orders."""
    return order_service.get_orders(db, identity, user_id=user_id)


@router.get("/{order_id}", response_model=OrderResponse)
def get_order(
    order_id: int = Path(..., description="Order ID"),
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_user),
    order_service: OrderService = Depends(get_order_service)
):
    return order_service.get_order(db, order_id, identity)


@router.put("/{order_id}/status", response_model=OrderResponse)
def update_order_status(
    request: UpdateOrderStatusRequest,
    order_id: int = Path(..., description="Order ID"),
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
    order_service: OrderService = Depends(get_order_service)
):
    """Approve, deliver or cancel an order - admin only."""
    return order_service.update_order_status(
        db,
        order_id,
        request.status,
        actor=admin,
        decline_reason=request.decline_reason
    )
