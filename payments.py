"""
Optional payment providers

Each provider is a small gateway object built from its keys. A provider
without keys is simply absent from ``PaymentGateways`` and requests for
it fail with ``Unconfigured``.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import stripe
from pymongo.database import Database

from errors import NotFound, Unconfigured
from orders import find_order
import settings

logger = logging.getLogger("jaipurgadgets.payments")


def amount_in_minor_units(total: float) -> int:
    return int(round(total * 100))


class StripeGateway:
    def __init__(self, secret_key: str, currency: str = "INR"):
        self.secret_key = secret_key
        self.currency = currency.lower()

    def create_payment_intent(self, order: Dict[str, Any]) -> Dict[str, Any]:
        intent = stripe.PaymentIntent.create(
            amount=amount_in_minor_units(order["total_price"]),
            currency=self.currency,
            metadata={"order_id": str(order["_id"])},
            api_key=self.secret_key,
        )
        return {"client_secret": intent.client_secret}


class RazorpayGateway:
    def __init__(self, key_id: str, key_secret: str, currency: str = "INR"):
        import razorpay
        self.client = razorpay.Client(auth=(key_id, key_secret))
        self.currency = currency.upper()

    def create_order(self, order: Dict[str, Any]) -> Dict[str, Any]:
        created = self.client.order.create(data={
            "amount": amount_in_minor_units(order["total_price"]),
            "currency": self.currency,
            "receipt": str(order["_id"]),
        })
        return {"order_id": created["id"], "amount": created["amount"], "currency": created["currency"]}


@dataclass
class PaymentGateways:
    stripe: Optional[StripeGateway] = None
    razorpay: Optional[RazorpayGateway] = None


def build_gateways() -> PaymentGateways:
    gateways = PaymentGateways()
    if settings.STRIPE_SECRET_KEY:
        gateways.stripe = StripeGateway(settings.STRIPE_SECRET_KEY, settings.PAYMENT_CURRENCY)
    if settings.RAZORPAY_KEY_ID and settings.RAZORPAY_KEY_SECRET:
        gateways.razorpay = RazorpayGateway(settings.RAZORPAY_KEY_ID, settings.RAZORPAY_KEY_SECRET,
                                            settings.PAYMENT_CURRENCY)
    logger.info("Payment providers: stripe=%s razorpay=%s", bool(gateways.stripe), bool(gateways.razorpay))
    return gateways


_gateways: Optional[PaymentGateways] = None


def get_payment_gateways() -> PaymentGateways:
    global _gateways
    if _gateways is None:
        _gateways = build_gateways()
    return _gateways


def _owned_order(db: Database, order_id: str, user_id: str) -> Dict[str, Any]:
    try:
        order = find_order(db, order_id)
    except NotFound:
        order = None
    if order is None or order["user_id"] != user_id:
        raise NotFound("Order not found")
    return order


def stripe_payment_intent(db: Database, gateways: PaymentGateways, order_id: str, user_id: str) -> Dict[str, Any]:
    if gateways.stripe is None:
        raise Unconfigured("Stripe is not configured. Please add STRIPE_SECRET_KEY to your .env file.")
    order = _owned_order(db, order_id, user_id)
    return gateways.stripe.create_payment_intent(order)


def razorpay_order(db: Database, gateways: PaymentGateways, order_id: str, user_id: str) -> Dict[str, Any]:
    if gateways.razorpay is None:
        raise Unconfigured(
            "Razorpay is not configured. Please add RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET to your .env file."
        )
    order = _owned_order(db, order_id, user_id)
    return gateways.razorpay.create_order(order)
