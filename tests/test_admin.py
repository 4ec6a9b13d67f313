from bson import ObjectId

from tests.conftest import RecordingImageStore, auth, fetch
import main
from images import get_image_store


def product_body(category, /, **extra):
    body = {"name": "Pixel 8", "description": "Android phone", "price": 59999, "category": str(category["_id"]),
            "brand": "Google", "stock": 7, "specifications": {"ram": "8GB"},
            "images": ["https://res.cloudinary.com/demo/image/upload/v1/jaipur-gadgets/products/pixel.jpg"]}
    body.update(extra)
    return body


def test_admin_routes_reject_customers(client, user):
    for path in ("/admin/analytics", "/admin/products", "/admin/orders", "/admin/users", "/admin/categories"):
        assert client.get(path, headers=auth(user)).status_code == 403


def test_admin_routes_require_credentials(client):
    assert client.get("/admin/analytics").status_code == 401
    res = client.get("/admin/analytics", headers={"Authorization": "Bearer garbage"})
    assert res.status_code == 401


def test_create_update_and_list_products(client, admin, category):
    res = client.post("/admin/products", json=product_body(category), headers=auth(admin))
    assert res.status_code == 201
    product = res.json()["product"]
    assert product["ratings"] == {"average": 0, "count": 0, "total": 0}
    assert product["sales_count"] == 0

    res = client.put(f"/admin/products/{product['id']}", json={"stock": 3, "featured": True}, headers=auth(admin))
    assert res.status_code == 200
    assert (res.json()["product"]["stock"], res.json()["product"]["featured"]) == (3, True)

    res = client.put(f"/admin/products/{product['id']}", json={"status": "archived"}, headers=auth(admin))
    assert res.status_code == 400

    listed = client.get("/admin/products", headers=auth(admin)).json()
    assert listed["total"] == 1


def test_create_product_validates(client, admin, category):
    res = client.post("/admin/products", json=product_body(category, price=-1), headers=auth(admin))
    assert res.status_code == 400
    res = client.post("/admin/products", json=product_body(category, category=str(ObjectId())), headers=auth(admin))
    assert res.status_code == 400
    assert res.json()["message"] == "Category does not exist"


def test_delete_product_cleans_up_images(client, db, admin, category, image_store):
    product_id = client.post("/admin/products", json=product_body(category), headers=auth(admin)).json()["product"]["id"]

    res = client.delete(f"/admin/products/{product_id}", headers=auth(admin))

    assert res.status_code == 200
    assert image_store.deleted == ["jaipur-gadgets/products/pixel"]
    assert db["product"].count_documents({}) == 0


def test_delete_product_survives_image_failures(client, db, admin, category):
    product_id = client.post("/admin/products", json=product_body(category), headers=auth(admin)).json()["product"]["id"]
    main.app.dependency_overrides[get_image_store] = lambda: RecordingImageStore(fail=True)

    res = client.delete(f"/admin/products/{product_id}", headers=auth(admin))

    assert res.status_code == 200
    assert db["product"].count_documents({}) == 0


def test_category_crud(client, db, admin):
    res = client.post("/admin/categories", json={"name": "Speakers", "icon": "🔊"}, headers=auth(admin))
    assert res.status_code == 201
    category_id = res.json()["category"]["id"]

    dup = client.post("/admin/categories", json={"name": "Speakers"}, headers=auth(admin))
    assert dup.status_code == 400

    res = client.put(f"/admin/categories/{category_id}", json={"description": "Loud"}, headers=auth(admin))
    assert res.json()["category"]["description"] == "Loud"
    assert res.json()["category"]["icon"] == "🔊"

    assert client.delete(f"/admin/categories/{category_id}", headers=auth(admin)).status_code == 200
    assert db["category"].count_documents({}) == 0


def test_category_with_products_cannot_be_deleted(client, db, admin, category, make_product):
    make_product()
    res = client.delete(f"/admin/categories/{category['_id']}", headers=auth(admin))
    assert res.status_code == 400
    assert res.json()["message"] == "Cannot delete category with associated products"
    assert fetch(db, "category", category) is not None


def test_ban_toggle_blocks_the_user(client, user, admin):
    res = client.put(f"/admin/users/{user['_id']}/ban", headers=auth(admin))
    assert res.json()["user"]["is_banned"] is True
    assert "password_hash" not in res.json()["user"]
    assert client.get("/cart", headers=auth(user)).status_code == 403

    res = client.put(f"/admin/users/{user['_id']}/ban", headers=auth(admin))
    assert res.json()["user"]["is_banned"] is False
    assert client.get("/cart", headers=auth(user)).status_code == 200


def test_list_users_only_customers(client, user, admin, make_user):
    make_user("Ravi Kumar")
    res = client.get("/admin/users", params={"search": "ravi"}, headers=auth(admin))
    assert [u["name"] for u in res.json()["users"]] == ["Ravi Kumar"]
    assert client.get("/admin/users", headers=auth(admin)).json()["total"] == 2


def test_create_admin_account(client, db, admin):
    body = {"name": "Second Admin", "email": "Ops@Example.com", "password": "s3cret!"}
    res = client.post("/admin/admins", json=body, headers=auth(admin))
    assert res.status_code == 201
    assert res.json()["user"]["role"] == "admin"
    assert res.json()["user"]["email"] == "ops@example.com"

    assert client.post("/admin/admins", json=body, headers=auth(admin)).status_code == 400


def test_admin_changes_own_password(client, db, make_user):
    from security import hash_password, verify_password

    admin = make_user("Root", role="admin", password_hash=hash_password("old-pass"))
    wrong = client.put("/admin/me/password", json={"current_password": "nope", "new_password": "new-pass"},
                       headers=auth(admin))
    assert wrong.status_code == 401

    res = client.put("/admin/me/password", json={"current_password": "old-pass", "new_password": "new-pass"},
                     headers=auth(admin))
    assert res.status_code == 200
    assert verify_password("new-pass", fetch(db, "user", admin)["password_hash"])


def test_uppercase_category_id_is_stored_canonically(client, db, admin, category):
    cid = str(category["_id"])
    res = client.post("/admin/products", json=product_body(category, category=cid.upper()), headers=auth(admin))
    assert res.status_code == 201
    product_id = res.json()["product"]["id"]
    assert db["product"].find_one({"_id": ObjectId(product_id)})["category"] == cid
    assert res.json()["product"]["category"]["name"] == "Mobile Phones"

    client.put(f"/admin/products/{product_id}", json={"category": cid.upper()}, headers=auth(admin))
    assert db["product"].find_one({"_id": ObjectId(product_id)})["category"] == cid

    res = client.delete(f"/admin/categories/{cid}", headers=auth(admin))
    assert res.status_code == 400
    assert fetch(db, "category", category) is not None
