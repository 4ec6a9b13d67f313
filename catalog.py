"""
Catalog: products and categories

Public reads plus the admin-side create/update/delete operations.
"""
import logging
import math
import re
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import create_document, normalize_id, now_utc, object_id, serialize_doc
from errors import DuplicateEntity, NotFound, ValidationFailure
from images import ImageStore, delete_product_images
from schemas import Category, Product

logger = logging.getLogger("jaipurgadgets.catalog")


def _sort_order(sort: Optional[str]):
    sort = (sort or "-created_at").strip()
    direction = DESCENDING if sort.startswith("-") else ASCENDING
    field = sort.lstrip("-+") or "created_at"
    return field, direction


def _category_summaries(db: Database, category_ids) -> Dict[str, Dict[str, Any]]:
    ids = [ObjectId(c) for c in set(category_ids) if c and ObjectId.is_valid(c)]
    if not ids:
        return {}
    summaries = {}
    for cat in db["category"].find({"_id": {"$in": ids}}):
        summaries[str(cat["_id"])] = {"id": str(cat["_id"]), "name": cat.get("name"), "icon": cat.get("icon")}
    return summaries


def with_categories(db: Database, products: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Serialize products with ``category`` resolved to ``{id, name, icon}``."""
    cats = _category_summaries(db, [p.get("category") for p in products])
    out = []
    for p in products:
        item = serialize_doc(p)
        item["category"] = cats.get(p.get("category"), p.get("category"))
        out.append(item)
    return out


def list_products(db: Database, page: int = 1, limit: int = 12, category: Optional[str] = None,
                  search: Optional[str] = None, min_price: Optional[float] = None,
                  max_price: Optional[float] = None, brand: Optional[str] = None,
                  sort: Optional[str] = "-created_at", status: Optional[str] = "active") -> Dict[str, Any]:
    page = max(page, 1)
    limit = max(limit, 1)
    query: Dict[str, Any] = {}
    if status:
        query["status"] = status
    if category:
        query["category"] = normalize_id(category)
    if search:
        pattern = re.escape(search)
        query["$or"] = [
            {"name": {"$regex": pattern, "$options": "i"}},
            {"description": {"$regex": pattern, "$options": "i"}},
        ]
    if min_price is not None or max_price is not None:
        query["price"] = {}
        if min_price is not None:
            query["price"]["$gte"] = float(min_price)
        if max_price is not None:
            query["price"]["$lte"] = float(max_price)
    if brand:
        query["brand"] = {"$regex": re.escape(brand), "$options": "i"}

    field, direction = _sort_order(sort)
    cursor = db["product"].find(query).sort(field, direction).skip((page - 1) * limit).limit(limit)
    products = list(cursor)
    total = db["product"].count_documents(query)
    return {
        "products": with_categories(db, products),
        "total_pages": math.ceil(total / limit),
        "current_page": page,
        "total": total,
    }


def find_product(db: Database, product_id: str) -> Dict[str, Any]:
    product = db["product"].find_one({"_id": object_id(product_id, "product ID")})
    if not product:
        raise NotFound("Product not found")
    return product


def get_product(db: Database, product_id: str) -> Dict[str, Any]:
    return with_categories(db, [find_product(db, product_id)])[0]


def list_categories(db: Database) -> List[Dict[str, Any]]:
    return serialize_doc(list(db["category"].find().sort("name", ASCENDING)))


# Admin: products

def _require_category(db: Database, category_id: str) -> str:
    """Return the stored form of the category id, or fail if there is no such category."""
    category = db["category"].find_one({"_id": object_id(category_id, "category ID")})
    if not category:
        raise ValidationFailure("Category does not exist")
    return str(category["_id"])


def create_product(db: Database, data: Dict[str, Any]) -> Dict[str, Any]:
    product = Product(**data)
    product.category = _require_category(db, product.category)
    product_id = create_document(db, "product", product)
    logger.info("Product %s created", product_id)
    return get_product(db, product_id)


def update_product(db: Database, product_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
    current = find_product(db, product_id)
    if "category" in changes:
        changes["category"] = _require_category(db, changes["category"])
    merged = {k: v for k, v in current.items() if k not in ("_id", "created_at", "updated_at")}
    merged.update(changes)
    Product(**merged)
    changes["updated_at"] = now_utc()
    db["product"].update_one({"_id": current["_id"]}, {"$set": changes})
    return get_product(db, product_id)


def delete_product(db: Database, product_id: str, image_store: ImageStore) -> None:
    product = find_product(db, product_id)
    delete_product_images(image_store, product.get("images", []))
    db["product"].delete_one({"_id": product["_id"]})
    db["review"].delete_many({"product_id": str(product["_id"])})
    logger.info("Product %s deleted", product_id)


# Admin: categories

def find_category(db: Database, category_id: str) -> Dict[str, Any]:
    category = db["category"].find_one({"_id": object_id(category_id, "category ID")})
    if not category:
        raise NotFound("Category not found")
    return category


def create_category(db: Database, data: Dict[str, Any]) -> Dict[str, Any]:
    category = Category(**{k: v for k, v in data.items() if v is not None})
    try:
        category_id = create_document(db, "category", category)
    except DuplicateKeyError:
        raise DuplicateEntity("Category with this name already exists")
    return serialize_doc(find_category(db, category_id))


def update_category(db: Database, category_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
    category = find_category(db, category_id)
    if not changes:
        return serialize_doc(category)
    changes["updated_at"] = now_utc()
    try:
        db["category"].update_one({"_id": category["_id"]}, {"$set": changes})
    except DuplicateKeyError:
        raise DuplicateEntity("Category with this name already exists")
    return serialize_doc(find_category(db, category_id))


def delete_category(db: Database, category_id: str) -> None:
    category = find_category(db, category_id)
    if db["product"].count_documents({"category": str(category["_id"])}) > 0:
        raise ValidationFailure("Cannot delete category with associated products")
    db["category"].delete_one({"_id": category["_id"]})
