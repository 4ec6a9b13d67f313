"""
Admin dashboard analytics

Everything is derived from the order, user, product and category
collections on each request. Orders are read once and bucketed in Python.
"""
from collections import Counter, defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo.database import Database


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _month_start(moment: datetime) -> datetime:
    return moment.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def _previous_month_start(moment: datetime) -> datetime:
    return _month_start(_month_start(moment) - timedelta(days=1))


def top_products(db: Database, orders: List[Dict[str, Any]], limit: int = 5) -> List[Dict[str, Any]]:
    sold: Counter = Counter()
    for order in orders:
        for item in order.get("items", []):
            sold[item["product_id"]] += item.get("quantity", 0)
    ranked = sold.most_common()
    ids = [ObjectId(pid) for pid, _ in ranked if ObjectId.is_valid(pid)]
    products = {str(p["_id"]): p for p in db["product"].find({"_id": {"$in": ids}}, {"name": 1, "images": 1})}
    result = []
    for pid, total in ranked:
        product = products.get(pid)
        if product is None:
            continue
        images = product.get("images") or []
        result.append({"id": pid, "name": product.get("name"), "total_sold": total,
                       "image": images[0] if images else None})
        if len(result) == limit:
            break
    return result


def daily_revenue(orders: List[Dict[str, Any]], now: datetime, days: int = 30) -> List[Dict[str, Any]]:
    today = now.date()
    first = today - timedelta(days=days - 1)
    buckets = {first + timedelta(days=i): 0.0 for i in range(days)}
    for order in orders:
        if not order.get("is_paid"):
            continue
        day = _utc(order["created_at"]).date()
        if day in buckets:
            buckets[day] += order.get("total_price", 0)
    return [{"date": day.isoformat(), "revenue": round(total, 2)} for day, total in buckets.items()]


def category_sales(db: Database, orders: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    product_ids = {item["product_id"] for order in orders for item in order.get("items", [])}
    ids = [ObjectId(pid) for pid in product_ids if ObjectId.is_valid(pid)]
    product_category = {str(p["_id"]): p.get("category") for p in db["product"].find({"_id": {"$in": ids}}, {"category": 1})}
    cat_ids = [ObjectId(c) for c in set(product_category.values()) if c and ObjectId.is_valid(c)]
    names = {str(c["_id"]): c.get("name") for c in db["category"].find({"_id": {"$in": cat_ids}}, {"name": 1})}

    totals: Dict[str, float] = defaultdict(float)
    for order in orders:
        for item in order.get("items", []):
            category_id = product_category.get(item["product_id"])
            if category_id in names:
                totals[category_id] += item.get("price", 0) * item.get("quantity", 0)
    rows = [{"id": cid, "name": names[cid], "total": round(total, 2)} for cid, total in totals.items()]
    return sorted(rows, key=lambda r: r["total"], reverse=True)


def dashboard(db: Database, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = _utc(now or datetime.now(timezone.utc))
    this_month = _month_start(now)
    last_month = _previous_month_start(now)

    orders = list(db["order"].find({}, {"items": 1, "total_price": 1, "is_paid": 1, "status": 1, "created_at": 1}))
    revenue_this_month = 0.0
    revenue_last_month = 0.0
    orders_this_month = 0
    for order in orders:
        created = _utc(order.get("created_at"))
        if created is None:
            continue
        if created >= this_month:
            orders_this_month += 1
        if not order.get("is_paid"):
            continue
        if created >= this_month:
            revenue_this_month += order.get("total_price", 0)
        elif created >= last_month:
            revenue_last_month += order.get("total_price", 0)

    customers = list(db["user"].find({"role": "user"}, {"created_at": 1}))
    new_customers = sum(1 for u in customers if u.get("created_at") and _utc(u["created_at"]) >= this_month)

    status_counts = Counter(order.get("status", "pending") for order in orders)

    return {
        "revenue": {"this_month": round(revenue_this_month, 2), "last_month": round(revenue_last_month, 2)},
        "orders": {"total": len(orders), "this_month": orders_this_month},
        "customers": {"total": len(customers), "new": new_customers},
        "top_products": top_products(db, orders),
        "revenue_data": daily_revenue(orders, now),
        "category_sales": category_sales(db, orders),
        "order_status": [{"status": s, "count": c} for s, c in sorted(status_counts.items())],
    }
