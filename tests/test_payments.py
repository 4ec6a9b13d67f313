from types import SimpleNamespace

from bson import ObjectId

import payments
from payments import StripeGateway
from tests.conftest import JAIPUR_ADDRESS, auth


class FakeStripe:
    def create_payment_intent(self, order):
        return {"client_secret": f"secret_{order['_id']}"}


class FakeRazorpay:
    def create_order(self, order):
        return {"order_id": "order_rzp_1", "amount": payments.amount_in_minor_units(order["total_price"]),
                "currency": "INR"}


def placed_order(client, user, make_product):
    client.post("/cart", json={"product_id": str(make_product(price=99.99)["_id"]), "quantity": 1}, headers=auth(user))
    res = client.post("/orders", json={"shipping_address": JAIPUR_ADDRESS, "payment_method": "cod"}, headers=auth(user))
    return res.json()["order"]["id"]


def test_unconfigured_providers_return_503(client, user, make_product):
    order_id = placed_order(client, user, make_product)
    res = client.post("/payments/stripe/create-payment-intent", json={"order_id": order_id}, headers=auth(user))
    assert res.status_code == 503
    assert res.json()["success"] is False
    res = client.post("/payments/razorpay/create-order", json={"order_id": order_id}, headers=auth(user))
    assert res.status_code == 503


def test_stripe_intent(client, gateways, user, make_product):
    gateways.stripe = FakeStripe()
    order_id = placed_order(client, user, make_product)
    res = client.post("/payments/stripe/create-payment-intent", json={"order_id": order_id}, headers=auth(user))
    assert res.status_code == 200
    assert res.json() == {"success": True, "client_secret": f"secret_{order_id}"}


def test_razorpay_order(client, gateways, user, make_product):
    gateways.razorpay = FakeRazorpay()
    order_id = placed_order(client, user, make_product)
    res = client.post("/payments/razorpay/create-order", json={"order_id": order_id}, headers=auth(user))
    assert res.json() == {"success": True, "order_id": "order_rzp_1", "amount": 24999, "currency": "INR"}


def test_payment_for_someone_elses_order(client, gateways, user, make_user, make_product):
    gateways.stripe = FakeStripe()
    order_id = placed_order(client, user, make_product)
    other = make_user("Ravi")
    res = client.post("/payments/stripe/create-payment-intent", json={"order_id": order_id}, headers=auth(other))
    assert res.status_code == 404
    res = client.post("/payments/stripe/create-payment-intent", json={"order_id": str(ObjectId())},
                      headers=auth(user))
    assert res.status_code == 404


def test_stripe_gateway_passes_key_per_call(monkeypatch):
    calls = {}

    def create(**kwargs):
        calls.update(kwargs)
        return SimpleNamespace(client_secret="pi_secret")

    monkeypatch.setattr(payments.stripe.PaymentIntent, "create", create)
    gateway = StripeGateway("sk_test_123", "INR")
    order_id = ObjectId()

    result = gateway.create_payment_intent({"_id": order_id, "total_price": 350})

    assert result == {"client_secret": "pi_secret"}
    assert calls == {"amount": 35000, "currency": "inr", "metadata": {"order_id": str(order_id)},
                     "api_key": "sk_test_123"}


def test_amount_in_minor_units():
    assert payments.amount_in_minor_units(99.99) == 9999
    assert payments.amount_in_minor_units(0) == 0
