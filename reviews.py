"""
Product review routes, mounted next to the catalog under /api/product.

Every review change recomputes the product's rating and reviewCount.
"""
import logging
import math
import re
import time
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from pymongo import ReturnDocument

from auth import current_user_id, require_admin
from database import collection, create_document, serialize_document, to_object_id
from errors import Conflict, InvalidRequest, NotFound
from schemas import Review

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/product", tags=["review"])


class AddReviewRequest(BaseModel):
    productId: str
    rating: int = Field(..., ge=1, le=5)
    comment: str = Field(..., min_length=1, max_length=1000)
    recommend: bool = True
    images: List[str] = Field(default_factory=list)


class UpdateReviewRequest(BaseModel):
    reviewId: str
    rating: int = Field(..., ge=1, le=5)
    comment: str = Field(..., min_length=1, max_length=1000)
    recommend: bool = True
    images: List[str] = Field(default_factory=list)


class AdminUpdateReviewRequest(BaseModel):
    reviewId: str
    rating: Optional[int] = Field(None, ge=1, le=5)
    comment: Optional[str] = Field(None, min_length=1, max_length=1000)
    recommend: Optional[bool] = None
    reported: Optional[bool] = None


class ReviewIdRequest(BaseModel):
    reviewId: str


class ProductIdRequest(BaseModel):
    productId: str


class BulkDeleteRequest(BaseModel):
    reviewIds: List[str]


def update_product_rating(product_id):
    product_id = to_object_id(product_id)
    ratings = [r["rating"] for r in collection("review").find({"productId": product_id}, {"rating": 1})]
    if not ratings:
        update = {"rating": 0, "reviewCount": 0}
    else:
        update = {"rating": round(sum(ratings) / len(ratings), 1), "reviewCount": len(ratings)}
    collection("product").update_one({"_id": product_id}, {"$set": update})


def populate(reviews: List[dict], user_fields=("name",), with_product=False) -> List[dict]:
    """Replace userId (and optionally productId) with a small embedded document."""
    user_ids = {r["userId"] for r in reviews}
    users: Dict = {
        u["_id"]: u for u in collection("user").find({"_id": {"$in": list(user_ids)}}, {f: 1 for f in user_fields})
    }
    products: Dict = {}
    if with_product:
        product_ids = {r["productId"] for r in reviews}
        products = {
            p["_id"]: p
            for p in collection("product").find({"_id": {"$in": list(product_ids)}}, {"name": 1, "category": 1})
        }
    out = []
    for r in reviews:
        r = dict(r)
        r["userId"] = users.get(r["userId"], {"_id": r["userId"]})
        if with_product:
            r["productId"] = products.get(r["productId"], {"_id": r["productId"]})
        out.append(serialize_document(r))
    return out


# ----- Customer routes -----

@router.post("/reviews")
def get_product_reviews(req: ProductIdRequest, page: int = 1, limit: int = 10):
    page, limit = max(page, 1), max(limit, 1)
    query = {"productId": to_object_id(req.productId)}
    reviews = collection("review")
    total = reviews.count_documents(query)
    docs = list(reviews.find(query).sort("date", -1).skip((page - 1) * limit).limit(limit))
    return {
        "success": True,
        "reviews": populate(docs),
        "totalReviews": total,
        "currentPage": page,
        "totalPages": math.ceil(total / limit),
    }


@router.post("/add-review")
def add_product_review(req: AddReviewRequest, user_id: str = Depends(current_user_id)):
    user_oid = to_object_id(user_id)
    product_oid = to_object_id(req.productId)
    if not collection("product").find_one({"_id": product_oid}, {"_id": 1}):
        raise NotFound("Product not found")
    if collection("review").find_one({"userId": user_oid, "productId": product_oid}):
        raise Conflict("You have already reviewed this product")

    purchased = collection("order").find_one(
        {"userId": user_id, "items._id": req.productId, "payment": True}, {"_id": 1}
    )
    review = Review(
        userId=user_oid,
        productId=product_oid,
        rating=req.rating,
        comment=req.comment.strip(),
        images=req.images,
        recommend=req.recommend,
        verified=purchased is not None,
        date=int(time.time() * 1000),
    )
    review_id = create_document("review", review)
    update_product_rating(product_oid)
    doc = collection("review").find_one({"_id": to_object_id(review_id)})
    return {"success": True, "message": "Review added successfully", "review": serialize_document(doc)}


@router.post("/update-review")
def update_product_review(req: UpdateReviewRequest, user_id: str = Depends(current_user_id)):
    update = {"rating": req.rating, "comment": req.comment.strip(), "recommend": req.recommend}
    if req.images:
        update["images"] = req.images
    doc = collection("review").find_one_and_update(
        {"_id": to_object_id(req.reviewId), "userId": to_object_id(user_id)},
        {"$set": update},
        return_document=ReturnDocument.AFTER,
    )
    if not doc:
        raise NotFound("Review not found or unauthorized")
    update_product_rating(doc["productId"])
    return {"success": True, "message": "Review updated successfully", "review": serialize_document(doc)}


@router.post("/delete-review")
def delete_product_review(req: ReviewIdRequest, user_id: str = Depends(current_user_id)):
    doc = collection("review").find_one_and_delete(
        {"_id": to_object_id(req.reviewId), "userId": to_object_id(user_id)}
    )
    if not doc:
        raise NotFound("Review not found or unauthorized")
    update_product_rating(doc["productId"])
    return {"success": True, "message": "Review deleted successfully"}


@router.post("/user-review")
def get_user_review_for_product(req: ProductIdRequest, user_id: str = Depends(current_user_id)):
    doc = collection("review").find_one(
        {"userId": to_object_id(user_id), "productId": to_object_id(req.productId)}
    )
    return {"success": True, "hasReviewed": doc is not None, "review": serialize_document(doc)}


@router.post("/review-helpful")
def mark_review_helpful(req: ReviewIdRequest, user_id: str = Depends(current_user_id)):
    review_oid, user_oid = to_object_id(req.reviewId), to_object_id(user_id)
    doc = collection("review").find_one_and_update(
        {"_id": review_oid, "helpfulVotes": {"$ne": user_oid}},
        {"$inc": {"helpful": 1}, "$push": {"helpfulVotes": user_oid}},
        return_document=ReturnDocument.AFTER,
    )
    if doc is None:
        if not collection("review").find_one({"_id": review_oid}, {"_id": 1}):
            raise NotFound("Review not found")
        raise Conflict("You have already voted for this review")
    return {"success": True, "message": "Review marked as helpful", "review": serialize_document(doc)}


# ----- Admin routes -----

@router.get("/all-reviews")
def get_all_reviews(
    page: int = 1,
    limit: int = 20,
    search: str = "",
    rating: Optional[int] = None,
    reported: bool = False,
    admin: str = Depends(require_admin),
):
    page, limit = max(page, 1), max(limit, 1)
    query: dict = {}
    if search:
        query["comment"] = {"$regex": re.escape(search), "$options": "i"}
    if rating:
        query["rating"] = rating
    if reported:
        query["reported"] = True

    reviews = collection("review")
    total = reviews.count_documents(query)
    docs = list(reviews.find(query).sort("date", -1).skip((page - 1) * limit).limit(limit))
    breakdown = [{"_id": i, "count": reviews.count_documents({**query, "rating": i})} for i in range(1, 6)]

    return {
        "success": True,
        "reviews": populate(docs, user_fields=("name", "email"), with_product=True),
        "totalReviews": total,
        "currentPage": page,
        "totalPages": math.ceil(total / limit),
        "stats": {
            "total": reviews.count_documents({}),
            "reported": reviews.count_documents({"reported": True}),
            "verified": reviews.count_documents({"verified": True}),
            "ratingBreakdown": breakdown,
        },
    }


@router.post("/admin-update-review")
def admin_update_review(req: AdminUpdateReviewRequest, admin: str = Depends(require_admin)):
    update = req.model_dump(exclude_unset=True, exclude={"reviewId"})
    if "comment" in update:
        update["comment"] = update["comment"].strip()
    review_oid = to_object_id(req.reviewId)
    if update:
        doc = collection("review").find_one_and_update(
            {"_id": review_oid}, {"$set": update}, return_document=ReturnDocument.AFTER
        )
    else:
        doc = collection("review").find_one({"_id": review_oid})
    if not doc:
        raise NotFound("Review not found")
    update_product_rating(doc["productId"])
    return {
        "success": True,
        "message": "Review updated successfully",
        "review": populate([doc], user_fields=("name", "email"), with_product=True)[0],
    }


@router.post("/admin-delete-review")
def admin_delete_review(req: ReviewIdRequest, admin: str = Depends(require_admin)):
    doc = collection("review").find_one_and_delete({"_id": to_object_id(req.reviewId)})
    if not doc:
        raise NotFound("Review not found")
    update_product_rating(doc["productId"])
    return {"success": True, "message": "Review deleted successfully"}


@router.post("/admin-bulk-delete-reviews")
def admin_bulk_delete_reviews(req: BulkDeleteRequest, admin: str = Depends(require_admin)):
    if not req.reviewIds:
        raise InvalidRequest("Invalid review IDs")
    ids = [to_object_id(i) for i in req.reviewIds]
    reviews = collection("review")
    # collect products before the documents are gone
    affected = reviews.distinct("productId", {"_id": {"$in": ids}})
    result = reviews.delete_many({"_id": {"$in": ids}})
    for product_id in affected:
        update_product_rating(product_id)
    logger.info("Admin bulk-deleted %d review(s)", result.deleted_count)
    return {
        "success": True,
        "message": f"{result.deleted_count} reviews deleted successfully",
        "deletedCount": result.deleted_count,
    }
