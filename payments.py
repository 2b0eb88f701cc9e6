"""
Payment gateway calls: Stripe Checkout Sessions and Razorpay Orders.

Both go through the vendor SDKs. The Razorpay client talks to its API over
requests, so transport failures surface as requests exceptions.
"""
import logging
from typing import Any, Dict, List

import razorpay
import requests
import stripe
from razorpay.errors import BadRequestError, GatewayError, ServerError

import config
from errors import GatewayNotConfigured, PaymentGatewayError

logger = logging.getLogger(__name__)


def ensure_stripe():
    if config.is_placeholder(config.STRIPE_SECRET_KEY):
        raise GatewayNotConfigured("Stripe")


def ensure_razorpay():
    if config.is_placeholder(config.RAZORPAY_KEY_ID) or config.is_placeholder(config.RAZORPAY_KEY_SECRET):
        raise GatewayNotConfigured("Razorpay")


def to_minor_units(amount: float) -> int:
    return int(round(float(amount) * 100))


# --- Stripe ---

def stripe_line_items(items: List[Dict[str, Any]], currency: str, delivery_charge: float) -> List[Dict[str, Any]]:
    line_items = [
        {
            "price_data": {
                "currency": currency.lower(),
                "product_data": {"name": it["name"]},
                "unit_amount": to_minor_units(it["price"]),
            },
            "quantity": it["quantity"],
        }
        for it in items
    ]
    line_items.append({
        "price_data": {
            "currency": currency.lower(),
            "product_data": {"name": "Delivery Charges"},
            "unit_amount": to_minor_units(delivery_charge),
        },
        "quantity": 1,
    })
    return line_items


def create_stripe_session(order_id: str, items: List[Dict[str, Any]], origin: str) -> Dict[str, str]:
    ensure_stripe()
    stripe.api_key = config.STRIPE_SECRET_KEY
    try:
        session = stripe.checkout.Session.create(
            mode="payment",
            line_items=stripe_line_items(items, config.CURRENCY, config.DELIVERY_CHARGE),
            success_url=f"{origin}/verify?success=true&orderId={order_id}",
            cancel_url=f"{origin}/verify?success=false&orderId={order_id}",
        )
    except stripe.StripeError as e:
        logger.error("Stripe session creation failed for order %s: %s", order_id, e)
        raise PaymentGatewayError(getattr(e, "user_message", None) or str(e))
    logger.info("Stripe session %s created for order %s", session.id, order_id)
    return {"id": session.id, "url": session.url}


# --- Razorpay ---

RAZORPAY_ERRORS = (BadRequestError, GatewayError, ServerError)


def razorpay_client() -> razorpay.Client:
    ensure_razorpay()
    return razorpay.Client(auth=(config.RAZORPAY_KEY_ID, config.RAZORPAY_KEY_SECRET))


def create_razorpay_order(amount: float, receipt: str) -> Dict[str, Any]:
    client = razorpay_client()
    payload = {
        "amount": to_minor_units(amount),
        "currency": config.CURRENCY.upper(),
        "receipt": receipt,
    }
    try:
        order = client.order.create(data=payload)
    except RAZORPAY_ERRORS as e:
        logger.error("Razorpay order creation rejected for %s: %s", receipt, e)
        raise PaymentGatewayError(str(e) or "Payment gateway error")
    except requests.RequestException as e:
        logger.error("Razorpay order creation failed for %s: %s", receipt, e)
        raise PaymentGatewayError("Payment gateway unavailable")
    logger.info("Razorpay order %s created for receipt %s", order.get("id"), receipt)
    return order


def fetch_razorpay_order(razorpay_order_id: str) -> Dict[str, Any]:
    client = razorpay_client()
    try:
        return client.order.fetch(razorpay_order_id)
    except RAZORPAY_ERRORS as e:
        logger.error("Razorpay order lookup rejected for %s: %s", razorpay_order_id, e)
        raise PaymentGatewayError(str(e) or "Payment gateway error")
    except requests.RequestException as e:
        logger.error("Razorpay order lookup failed for %s: %s", razorpay_order_id, e)
        raise PaymentGatewayError("Payment gateway unavailable")
