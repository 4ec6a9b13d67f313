"""
Enquiries

Customers outside the delivery area cannot place an order; their cart is
captured as an enquiry (a sales lead) instead. Same item snapshots as an
order, but stock, payment and the user's spend counters are left alone.
"""
import logging
import re
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import DESCENDING
from pymongo.database import Database

from database import create_document, now_utc, object_id, paginate, serialize_doc
from errors import NotFound, ValidationFailure
from orders import owner_summaries, snapshot_cart
from schemas import ENQUIRY_STATUSES, Address, Enquiry
import settings

logger = logging.getLogger("jaipurgadgets.enquiries")


def in_service_area(city: Optional[str]) -> bool:
    return bool(city) and city.strip().lower() == settings.SERVICE_CITY.lower()


def create_enquiry(db: Database, user: Dict[str, Any], shipping_address: Dict[str, Any],
                   customer_name: Optional[str] = None, customer_phone: Optional[str] = None,
                   customer_email: Optional[str] = None) -> Dict[str, Any]:
    user_id = str(user["_id"])
    address = Address(**shipping_address)
    cart = db["cart"].find_one({"user_id": user_id})
    lines, items_total = snapshot_cart(db, cart)

    name = customer_name or address.name
    phone = customer_phone or address.phone
    if not name or not phone:
        raise ValidationFailure("Customer name and phone are required")
    now = now_utc()
    enquiry = Enquiry(
        user_id=user_id,
        customer_name=name,
        customer_phone=phone,
        customer_email=customer_email or user.get("email"),
        items=[item for _, item in lines],
        shipping_address=address,
        total_price=items_total,
        status_history=[{"status": "pending", "date": now}],
    )
    enquiry_id = create_document(db, "enquiry", enquiry)

    db["cart"].update_one({"_id": cart["_id"]}, {"$set": {"items": [], "updated_at": now_utc()}})
    logger.info("Enquiry %s created by user %s from %s", enquiry_id, user_id, address.city)
    return serialize_doc(db["enquiry"].find_one({"_id": ObjectId(enquiry_id)}))


def list_enquiries(db: Database, user_id: str) -> List[Dict[str, Any]]:
    cursor = db["enquiry"].find({"user_id": user_id}).sort("created_at", DESCENDING)
    return serialize_doc(list(cursor))


def get_enquiry(db: Database, enquiry_id: str, user_id: str) -> Dict[str, Any]:
    enquiry = db["enquiry"].find_one({"_id": object_id(enquiry_id, "enquiry ID"), "user_id": user_id})
    if not enquiry:
        raise NotFound("Enquiry not found")
    return serialize_doc(enquiry)


def find_enquiry(db: Database, enquiry_id: str) -> Dict[str, Any]:
    enquiry = db["enquiry"].find_one({"_id": object_id(enquiry_id, "enquiry ID")})
    if not enquiry:
        raise NotFound("Enquiry not found")
    return enquiry


def update_enquiry_status(db: Database, enquiry_id: str, status: str, note: Optional[str] = None) -> Dict[str, Any]:
    if status not in ENQUIRY_STATUSES:
        raise ValidationFailure(f"Invalid enquiry status: {status}")
    enquiry = find_enquiry(db, enquiry_id)
    now = now_utc()
    changes: Dict[str, Any] = {"status": status, "updated_at": now}
    if note:
        changes["notes"] = note
    db["enquiry"].update_one(
        {"_id": enquiry["_id"]},
        {"$set": changes, "$push": {"status_history": {"status": status, "date": now, "note": note or ""}}},
    )
    logger.info("Enquiry %s moved from %s to %s", enquiry_id, enquiry.get("status"), status)
    return serialize_doc(find_enquiry(db, enquiry_id))


def delete_enquiry(db: Database, enquiry_id: str) -> None:
    enquiry = find_enquiry(db, enquiry_id)
    db["enquiry"].delete_one({"_id": enquiry["_id"]})


def admin_list_enquiries(db: Database, page: int = 1, limit: int = 10, status: Optional[str] = None,
                         search: Optional[str] = None) -> Dict[str, Any]:
    query: Dict[str, Any] = {}
    if status:
        query["status"] = status
    if search:
        pattern = re.escape(search)
        clauses: List[Dict[str, Any]] = [
            {"customer_name": {"$regex": pattern, "$options": "i"}},
            {"customer_phone": {"$regex": pattern}},
        ]
        if ObjectId.is_valid(search):
            clauses.append({"_id": ObjectId(search)})
        query["$or"] = clauses
    page_data = paginate(db, "enquiry", query, page, limit)
    enquiries = page_data.pop("items")
    owners = owner_summaries(db, [e.get("user_id") for e in enquiries])
    result = []
    for enquiry in enquiries:
        item = serialize_doc(enquiry)
        item["user"] = owners.get(enquiry.get("user_id"))
        result.append(item)
    return {"enquiries": result, **page_data}
