"""
User accounts: registration, login, profile, wishlist and admin user management.
"""
import logging
import re
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from catalog import find_product, with_categories
from database import create_document, normalize_id, now_utc, object_id, paginate, serialize_doc
from errors import DuplicateEntity, Forbidden, NotFound, Unauthorized, ValidationFailure
from schemas import Address, User
from security import create_token, hash_password, verify_password

logger = logging.getLogger("jaipurgadgets.accounts")


def public_user(user: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": str(user["_id"]),
        "name": user.get("name"),
        "email": user.get("email"),
        "role": user.get("role", "user"),
    }


def create_user(db: Database, name: str, email: str, password: str, phone: Optional[str] = None,
                role: str = "user") -> Dict[str, Any]:
    if not name or not email or not password:
        raise ValidationFailure("Name, email and password are required")
    email = email.strip().lower()
    if db["user"].find_one({"email": email}):
        raise DuplicateEntity("User with this email already exists")
    user = User(name=name, email=email, password_hash=hash_password(password), phone=phone, role=role)
    try:
        user_id = create_document(db, "user", user)
    except DuplicateKeyError:
        raise DuplicateEntity("User with this email already exists")
    logger.info("Created %s account %s", role, user_id)
    return db["user"].find_one({"_id": ObjectId(user_id)})


def register(db: Database, name: str, email: str, password: str, phone: Optional[str] = None) -> Dict[str, Any]:
    user = create_user(db, name, email, password, phone)
    return {"token": create_token(user), "user": public_user(user)}


def login(db: Database, email: str, password: str) -> Dict[str, Any]:
    user = db["user"].find_one({"email": email.strip().lower()})
    if not user or not verify_password(password, user.get("password_hash", "")):
        raise Unauthorized("Invalid credentials")
    if user.get("is_banned"):
        raise Forbidden("Your account has been banned")
    return {"token": create_token(user), "user": public_user(user)}


# Profile

def update_profile(db: Database, user: Dict[str, Any], name: Optional[str] = None, phone: Optional[str] = None,
                   addresses: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    changes: Dict[str, Any] = {}
    if name:
        changes["name"] = name
    if phone:
        changes["phone"] = phone
    if addresses is not None:
        changes["addresses"] = [Address(**a).model_dump() for a in addresses]
    if not changes:
        return serialize_doc(user)
    changes["updated_at"] = now_utc()
    updated = db["user"].find_one_and_update(
        {"_id": user["_id"]}, {"$set": changes}, return_document=ReturnDocument.AFTER
    )
    return serialize_doc(updated)


# Wishlist

def add_to_wishlist(db: Database, user: Dict[str, Any], product_id: str) -> List[str]:
    product = find_product(db, product_id)
    updated = db["user"].find_one_and_update(
        {"_id": user["_id"]},
        {"$addToSet": {"wishlist": str(product["_id"])}},
        return_document=ReturnDocument.AFTER,
    )
    return updated.get("wishlist", [])


def remove_from_wishlist(db: Database, user: Dict[str, Any], product_id: str) -> List[str]:
    updated = db["user"].find_one_and_update(
        {"_id": user["_id"]},
        {"$pull": {"wishlist": normalize_id(product_id)}},
        return_document=ReturnDocument.AFTER,
    )
    return updated.get("wishlist", [])


def get_wishlist(db: Database, user: Dict[str, Any]) -> List[Dict[str, Any]]:
    ids = [ObjectId(p) for p in user.get("wishlist", []) if ObjectId.is_valid(p)]
    if not ids:
        return []
    products = {str(p["_id"]): p for p in db["product"].find({"_id": {"$in": ids}})}
    ordered = [products[p] for p in user.get("wishlist", []) if p in products]
    return with_categories(db, ordered)


# Admin

def admin_list_users(db: Database, page: int = 1, limit: int = 10, search: Optional[str] = None) -> Dict[str, Any]:
    query: Dict[str, Any] = {"role": "user"}
    if search:
        pattern = re.escape(search)
        query["$or"] = [
            {"name": {"$regex": pattern, "$options": "i"}},
            {"email": {"$regex": pattern, "$options": "i"}},
        ]
    page_data = paginate(db, "user", query, page, limit)
    return {"users": serialize_doc(page_data.pop("items")), **page_data}


def toggle_ban(db: Database, user_id: str) -> Dict[str, Any]:
    user = db["user"].find_one({"_id": object_id(user_id, "user ID")})
    if not user:
        raise NotFound("User not found")
    banned = not user.get("is_banned", False)
    updated = db["user"].find_one_and_update(
        {"_id": user["_id"]},
        {"$set": {"is_banned": banned, "updated_at": now_utc()}},
        return_document=ReturnDocument.AFTER,
    )
    logger.info("User %s %s", user_id, "banned" if banned else "unbanned")
    return serialize_doc(updated)


def create_admin(db: Database, name: str, email: str, password: str, phone: Optional[str] = None) -> Dict[str, Any]:
    return public_user(create_user(db, name, email, password, phone, role="admin"))


def change_password(db: Database, user: Dict[str, Any], current_password: str, new_password: str) -> None:
    if not current_password or not new_password:
        raise ValidationFailure("Current password and new password are required")
    stored = db["user"].find_one({"_id": user["_id"]})
    if not stored:
        raise NotFound("User not found")
    if not verify_password(current_password, stored.get("password_hash", "")):
        raise Unauthorized("Current password is incorrect")
    db["user"].update_one(
        {"_id": stored["_id"]},
        {"$set": {"password_hash": hash_password(new_password), "updated_at": now_utc()}},
    )
