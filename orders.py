"""
Order placement and lifecycle

Placing an order turns the user's cart into an immutable order record:
item snapshots are copied, stock is reserved per product, the cart is
cleared and the user's spend counters are bumped.

Stock is reserved with a conditional ``$inc`` (only when enough is left),
so two checkouts cannot both take the last unit. If a later line cannot
be reserved, or anything else fails before the order is stored, the lines
reserved so far are released again.
"""
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database

from cart import resolve_items
from database import create_document, now_utc, object_id, paginate, serialize_doc
from errors import EmptyCart, Forbidden, InsufficientStock, NotFound, ValidationFailure
from schemas import ORDER_STATUSES, Order, OrderItem, ShippingAddress
import settings

logger = logging.getLogger("jaipurgadgets.orders")


def snapshot_cart(db: Database, cart: Optional[Dict[str, Any]]) -> Tuple[List[Tuple[Dict, OrderItem]], float]:
    """Copy each cart line into an order item. Returns ``([(product, item)], items_total)``."""
    if not cart or not cart.get("items"):
        raise EmptyCart()
    lines = []
    items_total = 0.0
    for line in resolve_items(db, cart):
        product = line["product"]
        if product is None:
            raise NotFound("A product in your cart is no longer available")
        images = product.get("images") or []
        item = OrderItem(
            product_id=str(product["_id"]),
            name=product["name"],
            price=product["price"],
            quantity=line["quantity"],
            image=images[0] if images else None,
        )
        items_total += item.price * item.quantity
        lines.append((product, item))
    return lines, round(items_total, 2)


def shipping_price_for(payment_method: str) -> float:
    return settings.COD_SHIPPING_FEE if payment_method == "cod" else 0.0


def reserve_stock(db: Database, product_id: ObjectId, quantity: int) -> bool:
    updated = db["product"].find_one_and_update(
        {"_id": product_id, "stock": {"$gte": quantity}},
        {"$inc": {"stock": -quantity, "sales_count": quantity}},
        return_document=ReturnDocument.AFTER,
    )
    return updated is not None


def release_stock(db: Database, reserved: List[Tuple[ObjectId, int]]) -> None:
    for product_id, quantity in reserved:
        db["product"].update_one({"_id": product_id}, {"$inc": {"stock": quantity, "sales_count": -quantity}})
    if reserved:
        logger.warning("Released stock for %d product(s) after a failed checkout", len(reserved))


def place_order(db: Database, user_id: str, shipping_address: Dict[str, Any], payment_method: str,
                discount: float = 0.0, coupon_code: Optional[str] = None) -> Dict[str, Any]:
    if discount < 0:
        raise ValidationFailure("Discount cannot be negative")
    address = ShippingAddress(**shipping_address)
    cart = db["cart"].find_one({"user_id": user_id})
    lines, items_price = snapshot_cart(db, cart)

    reserved: List[Tuple[ObjectId, int]] = []
    try:
        for product, item in lines:
            if not reserve_stock(db, product["_id"], item.quantity):
                raise InsufficientStock(product["name"])
            reserved.append((product["_id"], item.quantity))

        shipping_price = shipping_price_for(payment_method)
        total_price = round(items_price + shipping_price - discount, 2)
        now = now_utc()
        is_paid = payment_method != "cod"
        order = Order(
            user_id=user_id,
            items=[item for _, item in lines],
            shipping_address=address,
            payment_method=payment_method,
            items_price=items_price,
            shipping_price=shipping_price,
            discount=discount,
            coupon_code=coupon_code,
            total_price=total_price,
            is_paid=is_paid,
            paid_at=now if is_paid else None,
            status="pending",
            status_history=[{"status": "pending", "date": now}],
        )
        order_id = create_document(db, "order", order)
    except Exception:
        release_stock(db, reserved)
        raise

    db["cart"].update_one({"_id": cart["_id"]}, {"$set": {"items": [], "updated_at": now_utc()}})
    db["user"].update_one(
        {"_id": object_id(user_id)},
        {"$inc": {"total_orders": 1, "total_spent": total_price}},
    )
    logger.info("Order %s placed by user %s (%s, total %.2f)", order_id, user_id, payment_method, total_price)
    return serialize_doc(db["order"].find_one({"_id": ObjectId(order_id)}))


def list_orders(db: Database, user_id: str) -> List[Dict[str, Any]]:
    cursor = db["order"].find({"user_id": user_id}).sort("created_at", DESCENDING)
    return serialize_doc(list(cursor))


def find_order(db: Database, order_id: str) -> Dict[str, Any]:
    order = db["order"].find_one({"_id": object_id(order_id, "order ID")})
    if not order:
        raise NotFound("Order not found")
    return order


def get_order(db: Database, order_id: str, user: Dict[str, Any]) -> Dict[str, Any]:
    order = find_order(db, order_id)
    if order["user_id"] != str(user["_id"]) and user.get("role") != "admin":
        raise Forbidden("Not authorized")
    result = serialize_doc(order)
    owner = db["user"].find_one({"_id": object_id(order["user_id"])}, {"name": 1, "email": 1})
    if owner:
        result["user"] = serialize_doc(owner)
    return result


def update_order_status(db: Database, order_id: str, status: str, note: Optional[str] = None) -> Dict[str, Any]:
    """Admin status change. Any status may follow any other; the history keeps every change."""
    if status not in ORDER_STATUSES:
        raise ValidationFailure(f"Invalid order status: {status}")
    order = find_order(db, order_id)
    now = now_utc()
    changes: Dict[str, Any] = {"status": status, "updated_at": now}
    if status == "delivered":
        changes["is_delivered"] = True
        changes["delivered_at"] = now
    db["order"].update_one(
        {"_id": order["_id"]},
        {"$set": changes, "$push": {"status_history": {"status": status, "date": now, "note": note or ""}}},
    )
    logger.info("Order %s moved from %s to %s", order_id, order.get("status"), status)
    return serialize_doc(find_order(db, order_id))


def delete_order(db: Database, order_id: str) -> None:
    order = find_order(db, order_id)
    db["order"].delete_one({"_id": order["_id"]})


def admin_list_orders(db: Database, page: int = 1, limit: int = 10, status: Optional[str] = None,
                      search: Optional[str] = None) -> Dict[str, Any]:
    query: Dict[str, Any] = {}
    if status:
        query["status"] = status
    if search:
        clauses: List[Dict[str, Any]] = [{"shipping_address.name": {"$regex": re.escape(search), "$options": "i"}}]
        if ObjectId.is_valid(search):
            clauses.append({"_id": ObjectId(search)})
        query["$or"] = clauses
    page_data = paginate(db, "order", query, page, limit)
    orders = page_data.pop("items")
    owners = owner_summaries(db, [o["user_id"] for o in orders])
    result = []
    for order in orders:
        item = serialize_doc(order)
        item["user"] = owners.get(order["user_id"])
        result.append(item)
    return {"orders": result, **page_data}


def owner_summaries(db: Database, user_ids) -> Dict[str, Dict[str, Any]]:
    ids = [ObjectId(u) for u in set(user_ids) if u and ObjectId.is_valid(u)]
    if not ids:
        return {}
    found = db["user"].find({"_id": {"$in": ids}}, {"name": 1, "email": 1, "phone": 1})
    return {str(u["_id"]): serialize_doc(u) for u in found}
