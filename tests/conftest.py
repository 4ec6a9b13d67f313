import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

import main
from database import create_document, ensure_indexes, get_db
from images import ImageStore, get_image_store
from payments import PaymentGateways, get_payment_gateways
from schemas import Category, Product, User
from security import create_token


class RecordingImageStore(ImageStore):
    def __init__(self, fail=False):
        self.deleted = []
        self.fail = fail

    def delete(self, public_id):
        if self.fail:
            raise RuntimeError("storage unavailable")
        self.deleted.append(public_id)


@pytest.fixture
def db():
    database = mongomock.MongoClient()["jaipur_gadgets_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def gateways():
    return PaymentGateways()


@pytest.fixture
def image_store():
    return RecordingImageStore()


@pytest.fixture
def client(db, gateways, image_store):
    main.app.dependency_overrides[get_db] = lambda: db
    main.app.dependency_overrides[get_payment_gateways] = lambda: gateways
    main.app.dependency_overrides[get_image_store] = lambda: image_store
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(name=None, role="user", password_hash="not-a-real-hash", **extra):
        counter["n"] += 1
        name = name or f"User {counter['n']}"
        user = User(name=name, email=f"user{counter['n']}@example.com", password_hash=password_hash,
                    role=role, **extra)
        user_id = create_document(db, "user", user)
        return db["user"].find_one({"_id": ObjectId(user_id)})

    return _make


@pytest.fixture
def user(make_user):
    return make_user("Asha")


@pytest.fixture
def admin(make_user):
    return make_user("Admin", role="admin")


def auth(user):
    return {"Authorization": f"Bearer {create_token(user)}"}


@pytest.fixture
def category(db):
    category_id = create_document(db, "category", Category(name="Mobile Phones", icon="📱"))
    return db["category"].find_one({"_id": ObjectId(category_id)})


@pytest.fixture
def make_product(db, category):
    def _make(name="Widget", price=100.0, stock=10, **extra):
        data = {"description": f"{name} description", "images": [f"https://img.example.com/{name}.jpg"],
                "category": str(category["_id"])}
        data.update(extra)
        product_id = create_document(db, "product", Product(name=name, price=price, stock=stock, **data))
        return db["product"].find_one({"_id": ObjectId(product_id)})

    return _make


def fetch(db, collection, doc):
    return db[collection].find_one({"_id": doc["_id"]})


JAIPUR_ADDRESS = {
    "name": "Asha Sharma",
    "phone": "9876543210",
    "address": "12 MI Road",
    "city": "Jaipur",
    "state": "Rajasthan",
    "zip_code": "302001",
}

MUMBAI_ADDRESS = dict(JAIPUR_ADDRESS, city="Mumbai", state="Maharashtra", zip_code="400001")
