"""
Product reviews

One review per (user, product), enforced by the unique index on the
review collection. The product keeps a running rating total next to the
count so the average is updated without re-reading every review.
"""
import logging
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from catalog import find_product
from database import create_document, normalize_id, object_id, serialize_doc
from errors import DuplicateReview, NotFound
from schemas import Review

logger = logging.getLogger("jaipurgadgets.reviews")


def store_average(db: Database, product_id: ObjectId, ratings: Dict[str, Any]) -> bool:
    """Write ``total / count`` as the average for the totals seen after an increment.

    The write only matches while the product still has exactly those totals.
    When a later review has moved them on, its own call writes the newer
    average and this one is a no-op.
    """
    if not ratings.get("count"):
        return False
    result = db["product"].update_one(
        {"_id": product_id, "ratings.total": ratings["total"], "ratings.count": ratings["count"]},
        {"$set": {"ratings.average": ratings["total"] / ratings["count"]}},
    )
    return result.matched_count == 1


def submit_review(db: Database, user: Dict[str, Any], product_id: str, rating: int,
                  comment: Optional[str] = None) -> Dict[str, Any]:
    product = find_product(db, product_id)
    review = Review(product_id=str(product["_id"]), user_id=str(user["_id"]), rating=rating, comment=comment)
    try:
        review_id = create_document(db, "review", review)
    except DuplicateKeyError:
        raise DuplicateReview()

    updated = db["product"].find_one_and_update(
        {"_id": product["_id"]},
        {"$inc": {"ratings.total": rating, "ratings.count": 1}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        db["review"].delete_one({"_id": ObjectId(review_id)})
        raise NotFound("Product not found")
    store_average(db, product["_id"], updated["ratings"])

    result = serialize_doc(db["review"].find_one({"_id": ObjectId(review_id)}))
    result["user"] = {"id": str(user["_id"]), "name": user.get("name")}
    return result


def recompute_ratings(db: Database, product_id: str) -> Dict[str, Any]:
    """Rebuild a product's rating aggregate from all of its reviews."""
    ratings = [r["rating"] for r in db["review"].find({"product_id": product_id}, {"rating": 1})]
    total = sum(ratings)
    aggregate = {
        "average": total / len(ratings) if ratings else 0,
        "count": len(ratings),
        "total": total,
    }
    db["product"].update_one({"_id": object_id(product_id, "product ID")}, {"$set": {"ratings": aggregate}})
    return aggregate


def list_reviews(db: Database, product_id: str) -> List[Dict[str, Any]]:
    reviews = list(db["review"].find({"product_id": normalize_id(product_id)}).sort("created_at", DESCENDING))
    user_ids = [ObjectId(r["user_id"]) for r in reviews if ObjectId.is_valid(r["user_id"])]
    names = {str(u["_id"]): u.get("name") for u in db["user"].find({"_id": {"$in": user_ids}}, {"name": 1})}
    result = []
    for review in reviews:
        item = serialize_doc(review)
        item["user"] = {"id": review["user_id"], "name": names.get(review["user_id"])}
        result.append(item)
    return result


def delete_review(db: Database, review_id: str) -> None:
    review = db["review"].find_one({"_id": object_id(review_id, "review ID")})
    if not review:
        raise NotFound("Review not found")
    db["review"].delete_one({"_id": review["_id"]})
    logger.info("Review %s on product %s deleted", review_id, review["product_id"])
    if db["product"].find_one({"_id": object_id(review["product_id"], "product ID")}, {"_id": 1}):
        recompute_ratings(db, review["product_id"])
