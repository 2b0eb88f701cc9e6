"""
Admin dashboard figures, reduced in memory from the full order list.

Day buckets use the server's local midnight boundaries.
"""
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from schemas import ORDER_STATUSES

DAY_MS = 24 * 60 * 60 * 1000
RECENT_DAYS = 30
REVENUE_DAYS = 7
TOP_PRODUCTS = 5


def _ms(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


def daily_revenue(orders: List[dict], now: datetime, days: int = REVENUE_DAYS) -> List[Dict[str, Any]]:
    """Paid orders per local calendar day, oldest day first, today last."""
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    buckets = []
    for i in range(days - 1, -1, -1):
        start = today - timedelta(days=i)
        end = start + timedelta(days=1)
        lo, hi = _ms(start), _ms(end)
        day_orders = [o for o in orders if o.get("payment") and lo <= o.get("date", 0) < hi]
        buckets.append({
            "date": start.strftime("%Y-%m-%d"),
            "revenue": sum(o.get("amount", 0) for o in day_orders),
            "orders": len(day_orders),
        })
    return buckets


def top_products(orders: List[dict], limit: int = TOP_PRODUCTS) -> List[Dict[str, Any]]:
    counts = Counter()
    for order in orders:
        for item in order.get("items") or []:
            if item.get("name") and item.get("quantity"):
                counts[item["name"]] += item["quantity"]
    return [{"name": name, "count": count} for name, count in counts.most_common(limit)]


def build_analytics(orders: List[dict], now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or datetime.now()
    active = [o for o in orders if not o.get("cancelled")]
    cancelled = [o for o in orders if o.get("cancelled")]

    status_counts = {status: 0 for status in ORDER_STATUSES}
    for order in active:
        status = order.get("status") or ORDER_STATUSES[0]
        status_counts[status] = status_counts.get(status, 0) + 1

    cancellation_reasons = [
        {
            "reason": o["cancelReason"],
            "date": o.get("cancelDate"),
            "orderId": str(o.get("_id")),
            "amount": o.get("amount", 0),
        }
        for o in cancelled if o.get("cancelReason")
    ]

    recent_cutoff = _ms(now) - RECENT_DAYS * DAY_MS
    total_orders = len(active)
    delivered = status_counts.get("Delivered", 0)

    return {
        "totalOrders": total_orders,
        "totalRevenue": sum(o.get("amount", 0) for o in active if o.get("payment")),
        "pendingOrders": sum(1 for o in active if not o.get("payment")),
        "cancelledOrders": len(cancelled),
        "statusCounts": status_counts,
        "cancellationReasons": cancellation_reasons,
        "recentOrders": sum(1 for o in orders if o.get("date", 0) > recent_cutoff),
        "dailyRevenue": daily_revenue(active, now),
        "topProducts": top_products(orders),
        # half-up, not banker's rounding
        "completionRate": int(delivered * 100 / total_orders + 0.5) if total_orders else 0,
    }
