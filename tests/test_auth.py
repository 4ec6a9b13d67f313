from tests.conftest import auth


def test_register_login_and_me(client):
    res = client.post("/auth/register", json={"name": "Asha", "email": "Asha@Example.com", "password": "secret1"})
    assert res.status_code == 201
    assert res.json()["user"]["role"] == "user"
    assert res.json()["user"]["email"] == "asha@example.com"

    res = client.post("/auth/login", json={"email": "asha@example.com", "password": "secret1"})
    assert res.status_code == 200
    token = res.json()["token"]

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["user"]["name"] == "Asha"
    assert me.json()["user"]["total_orders"] == 0
    assert "password_hash" not in me.json()["user"]


def test_register_duplicate_email(client):
    body = {"name": "Asha", "email": "asha@example.com", "password": "secret1"}
    client.post("/auth/register", json=body)
    res = client.post("/auth/register", json=body)
    assert res.status_code == 400
    assert res.json()["message"] == "User with this email already exists"


def test_login_wrong_password(client):
    client.post("/auth/register", json={"name": "Asha", "email": "asha@example.com", "password": "secret1"})
    res = client.post("/auth/login", json={"email": "asha@example.com", "password": "wrong"})
    assert res.status_code == 401
    assert res.json() == {"success": False, "message": "Invalid credentials"}


def test_banned_user_cannot_log_in(client, db):
    client.post("/auth/register", json={"name": "Asha", "email": "asha@example.com", "password": "secret1"})
    db["user"].update_one({"email": "asha@example.com"}, {"$set": {"is_banned": True}})
    res = client.post("/auth/login", json={"email": "asha@example.com", "password": "secret1"})
    assert res.status_code == 403


def test_profile_update(client, user):
    body = {"name": "Asha S", "phone": "999", "addresses": [{"name": "Home", "city": "Jaipur"}]}
    res = client.put("/users/profile", json=body, headers=auth(user))
    assert res.status_code == 200
    profile = client.get("/users/profile", headers=auth(user)).json()["user"]
    assert profile["name"] == "Asha S"
    assert profile["phone"] == "999"
    assert profile["addresses"][0]["city"] == "Jaipur"
    assert profile["addresses"][0]["country"] == "India"


def test_health(client):
    assert client.get("/health").json() == {"status": "OK", "message": "Server is running"}
