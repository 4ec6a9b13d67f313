import pytest
from bson import ObjectId

import reviews
from errors import NotFound
from reviews import store_average, submit_review
from tests.conftest import auth, fetch


def review(client, user, product, rating, comment="ok"):
    body = {"product_id": str(product["_id"]), "rating": rating, "comment": comment}
    return client.post("/reviews", json=body, headers=auth(user))


def test_average_is_mean_of_all_ratings(client, db, make_user, make_product):
    phone = make_product()
    ratings = [5, 4, 2, 4]
    for rating in ratings:
        assert review(client, make_user(), phone, rating).status_code == 201

    stored = fetch(db, "product", phone)["ratings"]
    assert stored["count"] == len(ratings)
    assert stored["average"] == sum(ratings) / len(ratings)


def test_second_review_by_same_user_is_rejected(client, db, user, make_product):
    phone = make_product()
    review(client, user, phone, 5)
    before = fetch(db, "product", phone)["ratings"]

    res = review(client, user, phone, 1)

    assert res.status_code == 400
    assert res.json()["message"] == "You have already reviewed this product"
    assert fetch(db, "product", phone)["ratings"] == before
    assert db["review"].count_documents({}) == 1


def test_same_user_may_review_different_products(client, user, make_product):
    assert review(client, user, make_product(name="A"), 3).status_code == 201
    assert review(client, user, make_product(name="B"), 4).status_code == 201


def test_rating_must_be_between_one_and_five(client, user, make_product):
    phone = make_product()
    assert review(client, user, phone, 0).status_code == 400
    assert review(client, user, phone, 6).status_code == 400


def test_review_unknown_product(client, user):
    res = client.post("/reviews", json={"product_id": str(ObjectId()), "rating": 4}, headers=auth(user))
    assert res.status_code == 404


def test_list_reviews_is_public_and_names_reviewers(client, user, make_product):
    phone = make_product()
    review(client, user, phone, 4, "Great battery")

    res = client.get(f"/reviews/product/{phone['_id']}")

    assert res.status_code == 200
    [item] = res.json()["reviews"]
    assert item["comment"] == "Great battery"
    assert item["user"]["name"] == "Asha"


def test_admin_delete_review_recomputes_ratings(client, db, admin, make_user, make_product):
    phone = make_product()
    review(client, make_user(), phone, 5)
    review_id = review(client, make_user(), phone, 1).json()["review"]["id"]

    res = client.delete(f"/admin/reviews/{review_id}", headers=auth(admin))

    assert res.status_code == 200
    assert fetch(db, "product", phone)["ratings"] == {"average": 5, "count": 1, "total": 5}


def test_uppercase_product_id_is_the_same_product(client, db, user, make_product):
    phone = make_product()
    pid = str(phone["_id"])
    assert review(client, user, phone, 3).status_code == 201

    res = client.post("/reviews", json={"product_id": pid.upper(), "rating": 5}, headers=auth(user))

    assert res.status_code == 400
    assert db["review"].count_documents({}) == 1
    assert db["review"].find_one()["product_id"] == pid
    assert fetch(db, "product", phone)["ratings"]["count"] == 1
    assert len(client.get(f"/reviews/product/{pid.upper()}").json()["reviews"]) == 1


def test_stale_average_does_not_overwrite_newer_totals(db, make_product):
    phone = make_product()
    db["product"].update_one({"_id": phone["_id"]}, {"$set": {"ratings": {"average": 4.5, "total": 9, "count": 2}}})

    assert store_average(db, phone["_id"], {"total": 5, "count": 1}) is False
    assert fetch(db, "product", phone)["ratings"]["average"] == 4.5

    db["product"].update_one({"_id": phone["_id"]}, {"$inc": {"ratings.total": 1, "ratings.count": 1}})
    assert store_average(db, phone["_id"], {"total": 10, "count": 3}) is True
    assert fetch(db, "product", phone)["ratings"]["average"] == 10 / 3


def test_review_for_product_deleted_mid_submit(db, user, make_product, monkeypatch):
    phone = make_product()

    def find_then_delete(database, product_id):
        product = database["product"].find_one({"_id": phone["_id"]})
        database["product"].delete_one({"_id": phone["_id"]})
        return product

    monkeypatch.setattr(reviews, "find_product", find_then_delete)

    with pytest.raises(NotFound):
        submit_review(db, user, str(phone["_id"]), 4)
    assert db["review"].count_documents({}) == 0
