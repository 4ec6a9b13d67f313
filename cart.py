"""
Shopping cart

One cart document per user, created lazily. Lines are
``{_id, product_id, quantity}`` with at most one line per product.
"""
from collections import OrderedDict
from typing import Any, Dict, Iterable, List

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import create_document, normalize_id, now_utc, object_id, serialize_doc
from errors import InsufficientStock, NotFound, ValidationFailure
from schemas import Cart


def get_or_create_cart(db: Database, user_id: str) -> Dict[str, Any]:
    cart = db["cart"].find_one({"user_id": user_id})
    if cart:
        return cart
    try:
        create_document(db, "cart", Cart(user_id=user_id))
    except DuplicateKeyError:
        # created by a concurrent request
        pass
    return db["cart"].find_one({"user_id": user_id})


def _products_by_id(db: Database, product_ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
    ids = [ObjectId(p) for p in set(product_ids) if ObjectId.is_valid(p)]
    if not ids:
        return {}
    return {str(p["_id"]): p for p in db["product"].find({"_id": {"$in": ids}})}


def resolve_items(db: Database, cart: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Cart lines joined with their product documents (``None`` if the product is gone)."""
    items = cart.get("items", [])
    products = _products_by_id(db, [i["product_id"] for i in items])
    return [{**item, "product": products.get(item["product_id"])} for item in items]


def cart_view(db: Database, cart: Dict[str, Any]) -> Dict[str, Any]:
    lines = resolve_items(db, cart)
    total = sum(line["product"]["price"] * line["quantity"] for line in lines if line["product"])
    view = serialize_doc({k: v for k, v in cart.items() if k != "items"})
    view["items"] = [serialize_doc(line) for line in lines]
    view["total"] = round(total, 2)
    return view


def _save_items(db: Database, cart: Dict[str, Any], items: List[Dict[str, Any]]) -> Dict[str, Any]:
    return db["cart"].find_one_and_update(
        {"_id": cart["_id"]},
        {"$set": {"items": items, "updated_at": now_utc()}},
        return_document=ReturnDocument.AFTER,
    )


def add_item(db: Database, user_id: str, product_id: str, quantity: int = 1) -> Dict[str, Any]:
    if quantity < 1:
        raise ValidationFailure("Quantity must be at least 1")
    product = db["product"].find_one({"_id": object_id(product_id, "product ID")})
    if not product:
        raise NotFound("Product not found")
    if product.get("stock", 0) < quantity:
        raise InsufficientStock(product["name"])
    product_id = str(product["_id"])

    cart = get_or_create_cart(db, user_id)
    items = list(cart.get("items", []))
    for item in items:
        if item["product_id"] == product_id:
            item["quantity"] += quantity
            break
    else:
        items.append({"_id": ObjectId(), "product_id": product_id, "quantity": quantity})
    return _save_items(db, cart, items)


def _find_line(cart: Dict[str, Any], item_id: str):
    for item in cart.get("items", []):
        if str(item["_id"]) == normalize_id(item_id):
            return item
    return None


def update_item_quantity(db: Database, user_id: str, item_id: str, quantity: int) -> Dict[str, Any]:
    if quantity < 1:
        raise ValidationFailure("Quantity must be at least 1")
    cart = get_or_create_cart(db, user_id)
    line = _find_line(cart, item_id)
    if line is None:
        raise NotFound("Item not found in cart")
    product = db["product"].find_one({"_id": object_id(line["product_id"], "product ID")})
    if not product:
        raise NotFound("Product not found")
    if product.get("stock", 0) < quantity:
        raise InsufficientStock(product["name"])

    items = [dict(i, quantity=quantity) if i is line else i for i in cart["items"]]
    return _save_items(db, cart, items)


def remove_item(db: Database, user_id: str, item_id: str) -> Dict[str, Any]:
    cart = get_or_create_cart(db, user_id)
    items = [i for i in cart.get("items", []) if str(i["_id"]) != normalize_id(item_id)]
    if len(items) == len(cart.get("items", [])):
        return cart
    return _save_items(db, cart, items)


def clear_cart(db: Database, user_id: str) -> Dict[str, Any]:
    cart = get_or_create_cart(db, user_id)
    return _save_items(db, cart, [])


def merge_items(server_items: List[Dict[str, Any]], guest_items: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Union of the two line lists keyed by product id, quantities summed.

    Server lines keep their ids and order; new products are appended in
    guest order. Inputs are not modified.
    """
    merged = OrderedDict((i["product_id"], dict(i)) for i in server_items)
    for guest in guest_items:
        pid = guest["product_id"]
        qty = int(guest["quantity"])
        if qty < 1:
            continue
        if pid in merged:
            merged[pid]["quantity"] += qty
        else:
            merged[pid] = {"_id": ObjectId(), "product_id": pid, "quantity": qty}
    return list(merged.values())


def merge_guest_cart(db: Database, user_id: str, guest_items: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    """Fold a client-held guest cart into the user's cart.

    Lines for unknown products are dropped. Stock is checked against the
    merged quantities before anything is written, then the whole item list
    is saved in one update.
    """
    guest_items = [dict(g, product_id=normalize_id(g["product_id"]))
                   for g in guest_items if ObjectId.is_valid(g.get("product_id", ""))]
    cart = get_or_create_cart(db, user_id)
    products = _products_by_id(db, [g["product_id"] for g in guest_items])
    guest_items = [g for g in guest_items if g["product_id"] in products]
    if not guest_items:
        return cart

    merged = merge_items(cart.get("items", []), guest_items)
    for line in merged:
        product = products.get(line["product_id"])
        if product is not None and product.get("stock", 0) < line["quantity"]:
            raise InsufficientStock(product["name"])
    return _save_items(db, cart, merged)
