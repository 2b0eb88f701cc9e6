"""
Per-size stock reservation.

Each line item is claimed with a single conditional ``$inc`` that only
matches while the size still has enough units, so two checkouts racing for
the last units cannot both win. When one line cannot be claimed, the lines
already claimed in the same call are handed back before the error
propagates: a reservation commits whole or not at all.
"""
import logging
from typing import Iterable, List, Mapping

from database import collection, to_object_id
from errors import InsufficientStock, NotFound

logger = logging.getLogger(__name__)


def _line(item) -> Mapping:
    if hasattr(item, "model_dump"):
        return item.model_dump(by_alias=True)
    return item


def total_stock(product: Mapping) -> int:
    return sum(int(qty or 0) for qty in (product.get("sizeStock") or {}).values())


def _claim(item: Mapping) -> None:
    products = collection("product")
    product_id = to_object_id(item["_id"])
    size, quantity = item["size"], int(item["quantity"])
    field = f"sizeStock.{size}"

    result = products.update_one(
        {"_id": product_id, "isActive": {"$ne": False}, field: {"$gte": quantity}},
        {"$inc": {field: -quantity}},
    )
    if result.matched_count == 1:
        return

    product = products.find_one({"_id": product_id})
    name = item.get("name") or str(product_id)
    if product is None:
        raise NotFound(f"Product {name} not found")
    available = 0
    if product.get("isActive", True):
        available = int((product.get("sizeStock") or {}).get(size, 0))
    raise InsufficientStock(product.get("name", name), size, available, quantity)


def release_stock(items: Iterable) -> None:
    products = collection("product")
    for item in map(_line, items):
        products.update_one(
            {"_id": to_object_id(item["_id"])},
            {"$inc": {f"sizeStock.{item['size']}": int(item["quantity"])}},
        )
        logger.info("Released %s x %s (%s)", item["quantity"], item["_id"], item["size"])


def reserve_stock(items: Iterable) -> None:
    """Decrement sizeStock for every item, or for none of them."""
    claimed: List[Mapping] = []
    try:
        for item in map(_line, items):
            _claim(item)
            claimed.append(item)
    except Exception as e:
        if claimed:
            logger.info("Rolling back %d reserved line(s): %s", len(claimed), e)
            release_stock(claimed)
        raise
    logger.info("Reserved stock for %d line(s)", len(claimed))
