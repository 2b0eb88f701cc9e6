"""Wishlist routes. Items are product ObjectIds kept on the user document."""
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from auth import current_user_id
from database import collection, serialize_document, to_object_id
from errors import Conflict, NotFound

router = APIRouter(prefix="/api/wishlist", tags=["wishlist"])


class WishlistItem(BaseModel):
    itemId: str


@router.post("/add")
def add_to_wishlist(req: WishlistItem, user_id: str = Depends(current_user_id)):
    user_oid, item_oid = to_object_id(user_id), to_object_id(req.itemId)
    users = collection("user")
    if not users.find_one({"_id": user_oid}, {"_id": 1}):
        raise NotFound("User not found")
    if not collection("product").find_one({"_id": item_oid}, {"_id": 1}):
        raise NotFound("Product not found")
    if users.find_one({"_id": user_oid, "wishlistItems": item_oid}, {"_id": 1}):
        raise Conflict("Item already in wishlist")
    users.update_one({"_id": user_oid}, {"$addToSet": {"wishlistItems": item_oid}})
    return {"success": True, "message": "Added to wishlist"}


@router.post("/remove")
def remove_from_wishlist(req: WishlistItem, user_id: str = Depends(current_user_id)):
    result = collection("user").update_one(
        {"_id": to_object_id(user_id)}, {"$pull": {"wishlistItems": to_object_id(req.itemId)}}
    )
    if result.matched_count == 0:
        raise NotFound("User not found")
    return {"success": True, "message": "Removed from wishlist"}


@router.post("/get")
def get_user_wishlist(user_id: str = Depends(current_user_id)):
    user = collection("user").find_one({"_id": to_object_id(user_id)}, {"wishlistItems": 1})
    if not user:
        raise NotFound("User not found")
    products = collection("product").find({"_id": {"$in": user.get("wishlistItems") or []}})
    return {"success": True, "wishlistData": [serialize_document(p) for p in products]}
