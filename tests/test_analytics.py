from datetime import datetime

from analytics import build_analytics, daily_revenue, top_products

NOW = datetime(2026, 3, 14, 15, 30)


def ms(*args):
    return int(datetime(*args).timestamp() * 1000)


def order(status="Order Placed", amount=100, payment=False, date=None, cancelled=False, reason=None, items=None):
    return {
        "_id": f"o{amount}{status}",
        "status": status,
        "amount": amount,
        "payment": payment,
        "date": date if date is not None else ms(2026, 3, 14, 9),
        "cancelled": cancelled,
        "cancelReason": reason,
        "cancelDate": ms(2026, 3, 13, 12) if cancelled else None,
        "items": items or [],
    }


def test_daily_revenue_buckets_by_local_day():
    orders = [
        order(amount=50, payment=True, date=ms(2026, 3, 14, 0, 0)),
        order(amount=70, payment=True, date=ms(2026, 3, 13, 23, 59)),
        order(amount=30, payment=False, date=ms(2026, 3, 14, 10)),
        order(amount=90, payment=True, date=ms(2026, 3, 1)),
    ]

    days = daily_revenue(orders, NOW)

    assert [d["date"] for d in days] == [
        "2026-03-08", "2026-03-09", "2026-03-10", "2026-03-11", "2026-03-12", "2026-03-13", "2026-03-14",
    ]
    assert days[-1] == {"date": "2026-03-14", "revenue": 50, "orders": 1}
    assert days[-2] == {"date": "2026-03-13", "revenue": 70, "orders": 1}
    assert sum(d["revenue"] for d in days) == 120


def test_top_products_sums_quantities():
    orders = [
        order(items=[{"name": "Shirt", "quantity": 2}, {"name": "Jeans", "quantity": 1}]),
        order(items=[{"name": "Jeans", "quantity": 4}, {"name": "Cap", "quantity": 0}]),
    ]
    assert top_products(orders) == [{"name": "Jeans", "count": 5}, {"name": "Shirt", "count": 2}]
    assert top_products(orders, limit=1) == [{"name": "Jeans", "count": 5}]


def test_build_analytics_summary():
    orders = [
        order(status="Delivered", amount=200, payment=True),
        order(status="Shipped", amount=150, payment=True),
        order(status="Order Placed", amount=80),
        order(status="Canceled", amount=60, cancelled=True, reason="Changed my mind"),
        order(status="Delivered", amount=40, payment=True, date=ms(2025, 12, 1)),
    ]

    result = build_analytics(orders, now=NOW)

    assert result["totalOrders"] == 4
    assert result["totalRevenue"] == 390
    assert result["pendingOrders"] == 1
    assert result["cancelledOrders"] == 1
    assert result["statusCounts"] == {
        "Order Placed": 1, "Packing": 0, "Shipped": 1, "Out for delivery": 0, "Delivered": 2,
    }
    assert result["cancellationReasons"] == [
        {"reason": "Changed my mind", "date": ms(2026, 3, 13, 12), "orderId": "o60Canceled", "amount": 60},
    ]
    assert result["recentOrders"] == 4
    assert result["completionRate"] == 50


def test_completion_rate_rounds_half_up():
    orders = [order(status="Delivered")] + [order(status="Packing", amount=i) for i in range(7)]
    # 1 of 8 delivered is 12.5%
    assert build_analytics(orders, now=NOW)["completionRate"] == 13


def test_empty_order_list():
    result = build_analytics([], now=NOW)
    assert result["totalOrders"] == 0
    assert result["completionRate"] == 0
    assert result["topProducts"] == []
    assert len(result["dailyRevenue"]) == 7
