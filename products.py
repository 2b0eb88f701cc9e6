"""Catalog and inventory routes."""
import json
import logging
import math
import time
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, field_validator
from pymongo import ReturnDocument

from auth import require_admin
from database import collection, create_document, serialize_document, to_object_id
from errors import Conflict, InvalidRequest, NotFound
from inventory import total_stock
from schemas import Product, check_size_label

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/product", tags=["product"])


def product_out(doc: dict) -> dict:
    out = serialize_document(doc)
    out["stock"] = total_stock(doc)
    return out


def _parse_json(v):
    # The admin form posts sizes / sizeStock as JSON-encoded strings
    if isinstance(v, str):
        return json.loads(v)
    return v


def _check_size_stock(v: Optional[Dict[str, int]]) -> Optional[Dict[str, int]]:
    if v is None:
        return v
    for size, qty in v.items():
        check_size_label(size)
        if qty < 0:
            raise ValueError(f"Stock for size {size} cannot be negative")
    return v


# ----- Payloads -----

class AddProductRequest(BaseModel):
    name: str
    description: str
    price: float = Field(..., ge=0)
    category: str
    subCategory: str
    sizes: List[str] = Field(default_factory=list)
    sizeStock: Dict[str, int] = Field(default_factory=dict)
    bestseller: bool = False
    minStock: int = Field(5, ge=0)
    sku: Optional[str] = None
    image: List[str] = Field(default_factory=list)

    parse_json_fields = field_validator("sizes", "sizeStock", mode="before")(_parse_json)
    check_sizes = field_validator("sizeStock")(_check_size_stock)


class UpdateProductRequest(BaseModel):
    productId: str
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    category: Optional[str] = None
    subCategory: Optional[str] = None
    sizes: Optional[List[str]] = None
    sizeStock: Optional[Dict[str, int]] = None
    bestseller: Optional[bool] = None
    minStock: Optional[int] = Field(None, ge=0)
    sku: Optional[str] = None
    isActive: Optional[bool] = None
    image: Optional[List[str]] = None

    parse_json_fields = field_validator("sizes", "sizeStock", mode="before")(_parse_json)
    check_sizes = field_validator("sizeStock")(_check_size_stock)


class InventoryUpdate(BaseModel):
    productId: str
    sizeStock: Optional[Dict[str, int]] = None
    minStock: Optional[int] = Field(None, ge=0)
    sku: Optional[str] = None
    isActive: Optional[bool] = None

    parse_json_fields = field_validator("sizeStock", mode="before")(_parse_json)
    check_sizes = field_validator("sizeStock")(_check_size_stock)


class BulkInventoryRequest(BaseModel):
    updates: List[InventoryUpdate]


class ProductIdRequest(BaseModel):
    productId: str


class RemoveProductRequest(BaseModel):
    id: str


# ----- Helpers -----

def ensure_unique_sku(sku: Optional[str], product_id=None):
    if not sku:
        return
    query = {"sku": sku}
    if product_id is not None:
        query["_id"] = {"$ne": product_id}
    if collection("product").find_one(query):
        raise Conflict("SKU already in use")


def apply_update(product_id: str, updates: dict) -> dict:
    oid = to_object_id(product_id)
    if "sku" in updates:
        ensure_unique_sku(updates["sku"], oid)
    if not updates:
        doc = collection("product").find_one({"_id": oid})
    else:
        doc = collection("product").find_one_and_update(
            {"_id": oid}, {"$set": updates}, return_document=ReturnDocument.AFTER
        )
    if not doc:
        raise NotFound("Product not found")
    return doc


# ----- Routes -----

@router.post("/add")
def add_product(req: AddProductRequest, admin: str = Depends(require_admin)):
    ensure_unique_sku(req.sku)
    product = Product(date=int(time.time() * 1000), **req.model_dump())
    product_id = create_document("product", product)
    logger.info("Product %s added (%s)", product_id, req.name)
    return {"success": True, "message": "Product Added", "productId": product_id}


@router.get("/list")
def list_products(page: int = 1, limit: int = 10):
    page, limit = max(page, 1), max(limit, 1)
    products = collection("product")
    total = products.count_documents({})
    docs = products.find({}).sort("date", -1).skip((page - 1) * limit).limit(limit)
    return {
        "success": True,
        "products": [product_out(d) for d in docs],
        "totalPages": math.ceil(total / limit),
        "currentPage": page,
        "totalProducts": total,
    }


@router.post("/remove")
def remove_product(req: RemoveProductRequest, admin: str = Depends(require_admin)):
    result = collection("product").delete_one({"_id": to_object_id(req.id)})
    if result.deleted_count == 0:
        raise NotFound("Product not found")
    return {"success": True, "message": "Product Removed"}


@router.post("/single")
def single_product(req: ProductIdRequest):
    doc = collection("product").find_one({"_id": to_object_id(req.productId)})
    if not doc:
        raise NotFound("Product not found")
    return {"success": True, "product": product_out(doc)}


@router.post("/update")
def update_product(req: UpdateProductRequest, admin: str = Depends(require_admin)):
    updates = req.model_dump(exclude_unset=True, exclude={"productId"})
    doc = apply_update(req.productId, updates)
    return {"success": True, "message": "Product updated successfully", "product": product_out(doc)}


@router.post("/update-inventory")
def update_inventory(req: InventoryUpdate, admin: str = Depends(require_admin)):
    updates = req.model_dump(exclude_unset=True, exclude={"productId"})
    doc = apply_update(req.productId, updates)
    return {"success": True, "message": "Inventory updated successfully", "product": product_out(doc)}


@router.post("/bulk-update-inventory")
def bulk_update_inventory(req: BulkInventoryRequest, admin: str = Depends(require_admin)):
    results = []
    for update in req.updates:
        try:
            doc = apply_update(update.productId, update.model_dump(exclude_unset=True, exclude={"productId"}))
        except (InvalidRequest, NotFound, Conflict) as e:
            results.append({"productId": update.productId, "success": False, "message": e.message})
        else:
            results.append({"productId": update.productId, "success": True, "product": product_out(doc)})
    return {"success": True, "message": "Bulk inventory update completed", "results": results}


@router.get("/low-stock")
def low_stock_products(admin: str = Depends(require_admin)):
    docs = collection("product").find({"isActive": {"$ne": False}})
    low = [d for d in docs if total_stock(d) <= d.get("minStock", 5)]
    low.sort(key=total_stock)
    return {"success": True, "products": [product_out(d) for d in low]}
