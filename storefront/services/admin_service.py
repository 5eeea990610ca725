"""Read-only dashboard aggregates for administrators."""
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from opentelemetry import trace
from sqlalchemy import func
from sqlalchemy.orm import Session

from storefront.models import Order, OrderStatus, Product

TOP_PRODUCTS_LIMIT = 5
RECENT_SALES_DAYS = 7


class AdminService:
    """Computes revenue, order and best-seller views over orders and products."""

    def __init__(self):
        self.tracer = trace.get_tracer(__name__)

    def get_dashboard_stats(self, db: Session, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Build the admin dashboard figures.

        Revenue and the sales series exclude cancelled orders; the order
        count does not.

        Args:
            db: Database session
            now: Reference time for the 7-day window (UTC), defaults to now

        Returns:
            total_revenue, total_orders, top_products and recent_sales
        """
        now = now or datetime.utcnow()
        since = now - timedelta(days=RECENT_SALES_DAYS)

        with self.tracer.start_as_current_span("db.query.dashboard_stats") as db_span:
            db_span.set_attribute("db.operation", "SELECT")

            total_revenue = (
                db.query(func.coalesce(func.sum(Order.total), 0))
                .filter(Order.status != OrderStatus.CANCELLED.value)
                .scalar()
            )
            total_orders = db.query(func.count(Order.id)).scalar()

            top_products = (
                db.query(Product.name, Product.total_sold)
                .order_by(Product.total_sold.desc(), Product.id.asc())
                .limit(TOP_PRODUCTS_LIMIT)
                .all()
            )

            recent_orders = (
                db.query(Order.created_at, Order.total)
                .filter(
                    Order.status != OrderStatus.CANCELLED.value,
                    Order.created_at >= since
                )
                .all()
            )

        sales_by_date: Dict[str, float] = defaultdict(float)
        for created_at, total in recent_orders:
            sales_by_date[created_at.strftime("%Y-%m-%d")] += float(total)

        return {
            "total_revenue": float(total_revenue or 0),
            "total_orders": int(total_orders or 0),
            "top_products": [
                {"name": name, "total_sold": total_sold}
                for name, total_sold in top_products
            ],
            "recent_sales": [
                {"date": date, "amount": amount}
                for date, amount in sorted(sales_by_date.items())
            ]
        }
