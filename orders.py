"""
Order routes: placement for COD / Stripe / Razorpay, payment verification,
status progression, cancellation and the admin analytics summary.
"""
import logging
import time
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends, Header
from pydantic import BaseModel, Field
from pymongo import ReturnDocument

import config
import payments
from analytics import build_analytics
from auth import current_user_id, require_admin
from database import collection, create_document, get_documents, serialize_document, to_object_id
from errors import Conflict, InvalidRequest, NotAuthorized, NotFound
from inventory import release_stock, reserve_stock
from schemas import CANCELED, ORDER_STATUSES, SHIPPED_STATUSES, Order, OrderItem

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/order", tags=["order"])


def now_ms() -> int:
    return int(time.time() * 1000)


# ----- Payloads -----

class PlaceOrderRequest(BaseModel):
    items: List[OrderItem]
    amount: float = Field(..., ge=0)
    address: Dict[str, Any] = Field(default_factory=dict)


class VerifyStripeRequest(BaseModel):
    orderId: str
    success: Union[bool, str]


class VerifyRazorpayRequest(BaseModel):
    razorpay_order_id: str


class StatusUpdateRequest(BaseModel):
    orderId: str
    status: str


class CancelRequest(BaseModel):
    orderId: str
    cancelReason: Optional[str] = None


# ----- Helpers -----

def clear_cart(user_id: str):
    collection("user").update_one({"_id": to_object_id(user_id)}, {"$set": {"cartData": {}}})


def create_order(user_id: str, req: PlaceOrderRequest, method: str) -> str:
    """Reserve stock for every line, then store the unpaid order."""
    if not req.items:
        raise InvalidRequest("Cart is empty")
    items = [item.model_dump(by_alias=True) for item in req.items]
    reserve_stock(items)

    order = Order(
        userId=user_id,
        items=req.items,
        address=req.address,
        amount=req.amount,
        paymentMethod=method,
        payment=False,
        date=now_ms(),
    )
    try:
        order_id = create_document("order", order)
    except Exception:
        release_stock(items)
        raise
    logger.info("Order %s placed by %s via %s", order_id, user_id, method)
    return order_id


def discard_unpaid_order(order_id: str, method: str, user_id: Optional[str] = None) -> bool:
    """
    Delete an order whose gateway payment never completed and hand its stock
    back. Only unpaid, unprocessed orders of that gateway qualify, and only
    the caller that actually deletes the document restores stock.
    """
    query = {
        "_id": to_object_id(order_id),
        "paymentMethod": method,
        "payment": False,
        "status": ORDER_STATUSES[0],
        "cancelled": {"$ne": True},
    }
    if user_id is not None:
        query["userId"] = user_id
    order = collection("order").find_one_and_delete(query)
    if order is None:
        return False
    release_stock(order.get("items") or [])
    logger.info("Discarded unpaid order %s", order_id)
    return True


def mark_paid(order_id: str, method: str, user_id: Optional[str] = None):
    query = {"_id": to_object_id(order_id), "paymentMethod": method, "cancelled": {"$ne": True}}
    if user_id is not None:
        query["userId"] = user_id
    result = collection("order").update_one(query, {"$set": {"payment": True}})
    if result.matched_count == 0:
        raise NotFound("Order not found")


def cancel_order_document(order: dict, reason: Optional[str]) -> dict:
    if order.get("cancelled"):
        raise Conflict("Order already cancelled")
    if order.get("status") in SHIPPED_STATUSES:
        raise Conflict("Cannot cancel order that has been shipped or delivered")

    updated = collection("order").find_one_and_update(
        {"_id": order["_id"], "cancelled": {"$ne": True}, "status": {"$nin": list(SHIPPED_STATUSES)}},
        {"$set": {
            "cancelled": True,
            "cancelReason": reason,
            "cancelDate": now_ms(),
            "status": CANCELED,
        }},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        # lost a race with another cancellation or a shipment
        raise Conflict("Order can no longer be cancelled")
    release_stock(order.get("items") or [])
    logger.info("Order %s cancelled: %s", order["_id"], reason)
    return updated


# ----- Placement -----

@router.post("/place")
def place_order(req: PlaceOrderRequest, user_id: str = Depends(current_user_id)):
    create_order(user_id, req, "COD")
    clear_cart(user_id)
    return {"success": True, "message": "Order Placed"}


@router.post("/stripe")
def place_order_stripe(
    req: PlaceOrderRequest,
    user_id: str = Depends(current_user_id),
    origin: Optional[str] = Header(None),
):
    payments.ensure_stripe()
    order_id = create_order(user_id, req, "Stripe")
    items = [item.model_dump(by_alias=True) for item in req.items]
    try:
        session = payments.create_stripe_session(order_id, items, origin or config.FRONTEND_URL or "")
    except Exception:
        discard_unpaid_order(order_id, "Stripe")
        raise
    return {"success": True, "session_url": session["url"]}


@router.post("/razorpay")
def place_order_razorpay(req: PlaceOrderRequest, user_id: str = Depends(current_user_id)):
    payments.ensure_razorpay()
    order_id = create_order(user_id, req, "Razorpay")
    try:
        gateway_order = payments.create_razorpay_order(req.amount, order_id)
    except Exception:
        discard_unpaid_order(order_id, "Razorpay")
        raise
    return {"success": True, "order": gateway_order}


# ----- Verification -----

@router.post("/verifyStripe")
def verify_stripe(req: VerifyStripeRequest, user_id: str = Depends(current_user_id)):
    if str(req.success).lower() == "true":
        mark_paid(req.orderId, "Stripe", user_id)
        clear_cart(user_id)
        return {"success": True}
    discard_unpaid_order(req.orderId, "Stripe", user_id)
    return {"success": False, "message": "Payment cancelled"}


@router.post("/verifyRazorpay")
def verify_razorpay(req: VerifyRazorpayRequest, user_id: str = Depends(current_user_id)):
    info = payments.fetch_razorpay_order(req.razorpay_order_id)
    receipt = info.get("receipt")
    if not receipt:
        raise NotFound("Order not found")
    if info.get("status") == "paid":
        mark_paid(receipt, "Razorpay", user_id)
        clear_cart(user_id)
        return {"success": True, "message": "Payment Successful"}
    discard_unpaid_order(receipt, "Razorpay", user_id)
    logger.info("Razorpay order %s not paid (status %s)", req.razorpay_order_id, info.get("status"))
    return {"success": False, "message": "Payment Failed"}


# ----- Listing -----

@router.post("/list")
def all_orders(admin: str = Depends(require_admin)):
    orders = get_documents("order")
    return {"success": True, "orders": [serialize_document(o) for o in orders]}


@router.post("/userorders")
def user_orders(user_id: str = Depends(current_user_id)):
    orders = get_documents("order", {"userId": user_id})
    return {"success": True, "orders": [serialize_document(o) for o in orders]}


# ----- Status / cancellation -----

@router.post("/status")
def update_status(req: StatusUpdateRequest, admin: str = Depends(require_admin)):
    orders = collection("order")
    order = orders.find_one({"_id": to_object_id(req.orderId)})
    if not order:
        raise NotFound("Order not found")
    if order.get("cancelled"):
        raise Conflict("Order already cancelled")

    if req.status == CANCELED:
        cancel_order_document(order, "Canceled by admin")
        return {"success": True, "message": "Status Updated"}

    if req.status not in ORDER_STATUSES:
        raise InvalidRequest(f"Unknown status: {req.status}")
    current = order.get("status") or ORDER_STATUSES[0]
    if current == "Delivered" and req.status != current:
        raise Conflict("Order already delivered")
    if ORDER_STATUSES.index(req.status) < ORDER_STATUSES.index(current):
        raise Conflict(f"Cannot move order from {current} back to {req.status}")

    update = {"status": req.status}
    # cash is collected on delivery
    if req.status == "Delivered" and order.get("paymentMethod") == "COD" and not order.get("payment"):
        update["payment"] = True

    result = orders.update_one(
        {"_id": order["_id"], "status": order.get("status"), "cancelled": {"$ne": True}},
        {"$set": update},
    )
    if result.matched_count == 0:
        raise Conflict("Order was modified, please refresh and retry")
    logger.info("Order %s status %s -> %s", order["_id"], current, req.status)
    return {"success": True, "message": "Status Updated"}


@router.post("/cancel")
def cancel_order(req: CancelRequest, user_id: str = Depends(current_user_id)):
    order = collection("order").find_one({"_id": to_object_id(req.orderId)})
    if not order:
        raise NotFound("Order not found")
    if order.get("userId") != user_id:
        raise NotAuthorized("Unauthorized")
    reason = (req.cancelReason or "").strip() or None
    cancel_order_document(order, reason)
    return {"success": True, "message": "Order cancelled successfully"}


# ----- Analytics -----

@router.get("/analytics")
def get_analytics(admin: str = Depends(require_admin)):
    orders = get_documents("order")
    return {"success": True, "analytics": build_analytics(orders)}
