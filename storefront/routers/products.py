"""Products API router."""
from typing import List

from fastapi import APIRouter, Depends, Path, Query, Response
from sqlalchemy.orm import Session

from storefront.auth import Identity, require_admin
from storefront.database import get_db
from storefront.dependencies import get_product_service
from storefront.schemas import (
    ProductCreate,
    ProductResponse,
    ProductUpdate,
    StockAdjustRequest,
    StockAdjustResponse,
)
from storefront.services.product_service import ProductService

router = APIRouter(prefix="/api/products", tags=["products"])


@router.get("", response_model=List[ProductResponse])
def get_products(
    featured: bool = Query(False, description="Only featured products"),
    bestseller: bool = Query(False, description="Order by units sold"),
    db: Session = Depends(get_db),
    product_service: ProductService = Depends(get_product_service)
):
    """List the catalog."""
    return product_service.list_products(db, featured=featured, bestseller=bestseller)


@router.get("/{product_id}", response_model=ProductResponse)
def get_product(
    product_id: int = Path(..., description="Product ID"),
    db: Session = Depends(get_db),
    product_service: ProductService = Depends(get_product_service)
):
    return product_service.get_product(db, product_id)


@router.post("", response_model=ProductResponse, status_code=201)
def create_product(
    request: ProductCreate,
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
    product_service: ProductService = Depends(get_product_service)
):
    """Create a product - admin only."""
    return product_service.create_product(db, request)


@router.put("/{product_id}", response_model=ProductResponse)
def update_product(
    request: ProductUpdate,
    product_id: int = Path(..., description="Product ID"),
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
    product_service: ProductService = Depends(get_product_service)
):
    """Update the given product fields - admin only."""
    return product_service.update_product(db, product_id, request)


@router.delete("/{product_id}", status_code=204)
def delete_product(
    product_id: int = Path(..., description="Product ID"),
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
    product_service: ProductService = Depends(get_product_service)
):
    """Delete a product - admin only."""
    product_service.delete_product(db, product_id)
    return Response(status_code=204)


@router.patch("/{product_id}/feature", response_model=ProductResponse)
def feature_product(
    product_id: int = Path(..., description="Product ID"),
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
    product_service: ProductService = Depends(get_product_service)
):
    """Toggle the featured flag - admin only."""
    return product_service.toggle_featured(db, product_id)


@router.patch("/{product_id}/stock", response_model=StockAdjustResponse)
def update_stock(
    request: StockAdjustRequest,
    product_id: int = Path(..., description="Product ID"),
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
    product_service: ProductService = Depends(get_product_service)
):
    """Increment or decrement stock - admin only."""
    product = product_service.adjust_stock(db, product_id, request.operation, request.amount)
    return {"success": True, "product": product}


@router.post("/{product_id}/duplicate", response_model=ProductResponse, status_code=201)
def duplicate_product(
    product_id: int = Path(..., description="Product ID"),
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
    product_service: ProductService = Depends(get_product_service)
):
    """Copy a product - admin only."""
    return product_service.duplicate_product(db, product_id)
