"""
Database Schemas

Each Pydantic model describes a document in a MongoDB collection; the
collection name is the lowercase class name:
- User -> "user"
- Product -> "product"
- Order -> "order"
- Review -> "review"

Field names mirror the documents exactly (camelCase), since the storefront
and admin clients read them as-is.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

ORDER_STATUSES = ["Order Placed", "Packing", "Shipped", "Out for delivery", "Delivered"]
CANCELED = "Canceled"
# Orders in these states can no longer be cancelled
SHIPPED_STATUSES = {"Shipped", "Out for delivery", "Delivered"}

PAYMENT_METHODS = ("COD", "Stripe", "Razorpay")


def check_size_label(size: str) -> str:
    # Size labels become field paths (sizeStock.<size>)
    size = size.strip()
    if not size or "." in size or size.startswith("$"):
        raise ValueError(f"Invalid size label: {size!r}")
    return size


class Product(BaseModel):
    """
    Catalog entry
    Collection name: "product"

    There is no stored stock total; it is always derived from sizeStock.
    """
    name: str
    description: str
    price: float = Field(..., ge=0)
    image: List[str] = Field(default_factory=list, description="Image URLs")
    category: str
    subCategory: str
    sizes: List[str] = Field(default_factory=list)
    bestseller: bool = False
    date: int = Field(..., description="Creation time, epoch milliseconds")
    sizeStock: Dict[str, int] = Field(default_factory=dict, description="Available units per size")
    minStock: int = Field(5, ge=0, description="Reorder threshold")
    sku: Optional[str] = None
    isActive: bool = True
    rating: float = Field(0, ge=0, le=5)
    reviewCount: int = 0

    @field_validator("sizeStock")
    @classmethod
    def check_size_stock(cls, v: Dict[str, int]) -> Dict[str, int]:
        for size, qty in v.items():
            check_size_label(size)
            if qty < 0:
                raise ValueError(f"Stock for size {size} cannot be negative")
        return v


class OrderItem(BaseModel):
    """Snapshot of a product line at order time."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id", description="Product _id")
    name: str
    price: float = Field(..., ge=0)
    size: str
    quantity: int = Field(..., ge=1)
    category: Optional[str] = None
    image: List[str] = Field(default_factory=list)

    @field_validator("size")
    @classmethod
    def check_size(cls, v: str) -> str:
        return check_size_label(v)


class Order(BaseModel):
    """
    Placed order
    Collection name: "order"
    """
    userId: str
    items: List[OrderItem]
    address: Dict[str, Any]
    amount: float = Field(..., ge=0)
    paymentMethod: str = Field(..., description="COD, Stripe or Razorpay")
    payment: bool = False
    status: str = ORDER_STATUSES[0]
    date: int = Field(..., description="Placement time, epoch milliseconds")
    cancelled: bool = False
    cancelReason: Optional[str] = None
    cancelDate: Optional[int] = None

    @field_validator("paymentMethod")
    @classmethod
    def check_payment_method(cls, v: str) -> str:
        if v not in PAYMENT_METHODS:
            raise ValueError(f"Unknown payment method: {v}")
        return v


class User(BaseModel):
    """
    Customer account
    Collection name: "user"
    """
    name: str
    email: str
    phone: Optional[str] = None
    password: str = Field(..., description="bcrypt hash")
    cartData: Dict[str, Dict[str, int]] = Field(default_factory=dict, description="productId -> size -> quantity")
    wishlistItems: List[Any] = Field(default_factory=list, description="Product ObjectIds")
    isBlocked: bool = False
    profile: Dict[str, Any] = Field(default_factory=dict)


class Review(BaseModel):
    """
    Product review, one per user per product
    Collection name: "review"
    """
    userId: Any
    productId: Any
    rating: int = Field(..., ge=1, le=5)
    comment: str = Field(..., min_length=1, max_length=1000)
    images: List[str] = Field(default_factory=list)
    recommend: bool = True
    verified: bool = False
    helpful: int = 0
    helpfulVotes: List[Any] = Field(default_factory=list)
    reported: bool = False
    date: int
