"""
Seed the store with its default categories and an admin account.

    python seed.py categories
    python seed.py admin --email admin@jaipurgadgets.com --password secret
"""
import argparse
import logging
from typing import Any, Dict

from bson import ObjectId
from pymongo.database import Database

import database
from database import create_document, ensure_indexes, now_utc
from schemas import User
from security import hash_password

logger = logging.getLogger("jaipurgadgets.seed")

DEFAULT_CATEGORIES = [
    {"name": "Mobile Phones", "icon": "📱", "description": "Latest smartphones and mobile devices",
     "image": "/images/categories/mobile.jpg"},
    {"name": "Watches", "icon": "⌚", "description": "Smart watches and traditional timepieces",
     "image": "/images/categories/watches.jpg"},
    {"name": "Earbuds", "icon": "🎧", "description": "Wireless earbuds and headphones",
     "image": "/images/categories/earbuds.jpg"},
    {"name": "Adapters", "icon": "🔌", "description": "Chargers, adapters, and cables",
     "image": "/images/categories/adapters.jpg"},
    {"name": "Laptops", "icon": "💻", "description": "Laptops and notebooks",
     "image": "/images/categories/laptops.jpg"},
    {"name": "Cameras", "icon": "📷", "description": "Digital cameras and accessories",
     "image": "/images/categories/cameras.jpg"},
    {"name": "Gaming", "icon": "🎮", "description": "Gaming consoles and accessories",
     "image": "/images/categories/gaming.jpg"},
    {"name": "Tablets", "icon": "📱", "description": "Tablets and iPads",
     "image": "/images/categories/tablets.jpg"},
    {"name": "Speakers", "icon": "🔊", "description": "Bluetooth speakers and sound systems",
     "image": "/images/categories/speakers.jpg"},
    {"name": "Power Banks", "icon": "🔋", "description": "Portable chargers and power banks",
     "image": "/images/categories/powerbanks.jpg"},
]


def seed_categories(db: Database) -> Dict[str, int]:
    created = updated = 0
    for data in DEFAULT_CATEGORIES:
        existing = db["category"].find_one({"name": data["name"]})
        if existing:
            db["category"].update_one({"_id": existing["_id"]}, {"$set": {**data, "updated_at": now_utc()}})
            updated += 1
        else:
            create_document(db, "category", data)
            created += 1
    logger.info("Categories seeded: %d created, %d updated", created, updated)
    return {"created": created, "updated": updated}


def create_admin(db: Database, name: str, email: str, password: str) -> Dict[str, Any]:
    """Create an admin account, or promote and reset the password of an existing one."""
    email = email.strip().lower()
    existing = db["user"].find_one({"email": email})
    if existing:
        db["user"].update_one(
            {"_id": existing["_id"]},
            {"$set": {"role": "admin", "is_banned": False, "password_hash": hash_password(password),
                      "updated_at": now_utc()}},
        )
        logger.info("Promoted %s to admin", email)
        return db["user"].find_one({"_id": existing["_id"]})
    user_id = create_document(db, "user", User(name=name, email=email, password_hash=hash_password(password), role="admin"))
    logger.info("Created admin %s", email)
    return db["user"].find_one({"_id": ObjectId(user_id)})


def main(argv=None):
    parser = argparse.ArgumentParser(description="Seed the Jaipur Gadgets database")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("categories", help="create or refresh the default categories")
    admin = sub.add_parser("admin", help="create or promote an admin account")
    admin.add_argument("--name", default="Admin")
    admin.add_argument("--email", required=True)
    admin.add_argument("--password", required=True)
    args = parser.parse_args(argv)

    db = database.db
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    ensure_indexes(db)
    if args.command == "categories":
        seed_categories(db)
    else:
        create_admin(db, args.name, args.email, args.password)


if __name__ == "__main__":
    main()
