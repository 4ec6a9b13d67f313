"""
MongoDB access

One client per process. Handlers receive the database through ``get_db``
so it can be swapped in tests.
"""
from datetime import datetime, timezone
from typing import Any, Dict

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

from errors import ValidationFailure
import settings

client = MongoClient(settings.DATABASE_URL)
db = client[settings.DATABASE_NAME]


def get_db() -> Database:
    return db


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def create_document(database: Database, collection_name: str, data) -> str:
    """Insert ``data`` (a model or a dict) with timestamps and return its id."""
    if isinstance(data, BaseModel):
        doc = data.model_dump()
    else:
        doc = dict(data)
    stamp = now_utc()
    doc.setdefault("created_at", stamp)
    doc["updated_at"] = stamp
    result = database[collection_name].insert_one(doc)
    return str(result.inserted_id)


def ensure_indexes(database: Database) -> None:
    database["user"].create_index("email", unique=True)
    database["category"].create_index("name", unique=True)
    database["cart"].create_index("user_id", unique=True)
    database["review"].create_index([("user_id", ASCENDING), ("product_id", ASCENDING)], unique=True)
    database["product"].create_index([("category", ASCENDING), ("status", ASCENDING)])
    database["order"].create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])
    database["enquiry"].create_index([("created_at", DESCENDING)])
    database["enquiry"].create_index("status")


def object_id(value: str, label: str = "ID") -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    if not isinstance(value, str):
        raise ValidationFailure(f"Invalid {label} format")
    try:
        return ObjectId(value)
    except InvalidId:
        raise ValidationFailure(f"Invalid {label} format")


def normalize_id(value: str) -> str:
    """Stored references are lowercase hex; other strings pass through unchanged."""
    if isinstance(value, str) and ObjectId.is_valid(value):
        return str(ObjectId(value))
    return value


def serialize_doc(doc):
    """Make a Mongo document JSON friendly: ``_id`` becomes ``id``, ids become strings."""
    if isinstance(doc, list):
        return [serialize_doc(d) for d in doc]
    if isinstance(doc, ObjectId):
        return str(doc)
    if not isinstance(doc, dict):
        return doc
    out = {}
    for k, v in doc.items():
        if k == "_id":
            out["id"] = str(v)
        elif k == "password_hash":
            continue
        else:
            out[k] = serialize_doc(v)
    return out


def paginate(database: Database, collection_name: str, query: Dict[str, Any], page: int = 1, limit: int = 10,
             sort_field: str = "created_at", direction: int = DESCENDING) -> Dict[str, Any]:
    page = max(page, 1)
    limit = max(limit, 1)
    cursor = database[collection_name].find(query).sort(sort_field, direction).skip((page - 1) * limit).limit(limit)
    total = database[collection_name].count_documents(query)
    return {
        "items": list(cursor),
        "total_pages": -(-total // limit),
        "current_page": page,
        "total": total,
    }
