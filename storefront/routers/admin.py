"""Admin dashboard API router."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.auth import require_admin
from storefront.database import get_db
from storefront.dependencies import get_admin_service
from storefront.schemas import DashboardStatsResponse
from storefront.services.admin_service import AdminService

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("/stats", response_model=DashboardStatsResponse)
def get_dashboard_stats(
    db: Session = Depends(get_db),
    admin_service: AdminService = Depends(get_admin_service)
):
    """Revenue, order count, best sellers and last week's sales."""
    return admin_service.get_dashboard_stats(db)
