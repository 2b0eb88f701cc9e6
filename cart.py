"""Cart routes. The cart lives on the user document as {productId: {size: quantity}}."""
from bson import ObjectId
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, field_validator

from auth import current_user_id
from database import collection, to_object_id
from errors import NotFound
from schemas import check_size_label

router = APIRouter(prefix="/api/cart", tags=["cart"])


class CartAddRequest(BaseModel):
    itemId: str
    size: str

    @field_validator("itemId")
    @classmethod
    def check_item(cls, v: str) -> str:
        # used as a field path under cartData
        if not ObjectId.is_valid(v):
            raise ValueError("Invalid ID format")
        return v

    @field_validator("size")
    @classmethod
    def check_size(cls, v: str) -> str:
        return check_size_label(v)


class CartUpdateRequest(CartAddRequest):
    quantity: int = Field(..., ge=0)


def get_cart(user_id: str) -> dict:
    user = collection("user").find_one({"_id": to_object_id(user_id)}, {"cartData": 1})
    if not user:
        raise NotFound("User not found")
    return user.get("cartData") or {}


@router.post("/add")
def add_to_cart(req: CartAddRequest, user_id: str = Depends(current_user_id)):
    result = collection("user").update_one(
        {"_id": to_object_id(user_id)},
        {"$inc": {f"cartData.{req.itemId}.{req.size}": 1}},
    )
    if result.matched_count == 0:
        raise NotFound("User not found")
    return {"success": True, "message": "Added To Cart"}


@router.post("/update")
def update_cart(req: CartUpdateRequest, user_id: str = Depends(current_user_id)):
    cart = get_cart(user_id)
    sizes = dict(cart.get(req.itemId) or {})
    if req.quantity > 0:
        sizes[req.size] = req.quantity
    else:
        sizes.pop(req.size, None)
    if sizes:
        cart[req.itemId] = sizes
    else:
        cart.pop(req.itemId, None)
    collection("user").update_one({"_id": to_object_id(user_id)}, {"$set": {"cartData": cart}})
    return {"success": True, "message": "Cart Updated"}


@router.post("/get")
def get_user_cart(user_id: str = Depends(current_user_id)):
    return {"success": True, "cartData": get_cart(user_id)}
