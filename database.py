"""
MongoDB access helpers.

``db`` stays None when DATABASE_URL / DATABASE_NAME are not set so the API
can still boot and report its state on /test.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import MongoClient

import config
from errors import DatabaseUnavailable, InvalidRequest

logger = logging.getLogger(__name__)

client = None
db = None

if config.DATABASE_URL and config.DATABASE_NAME:
    client = MongoClient(config.DATABASE_URL)
    db = client[config.DATABASE_NAME]
else:
    logger.warning("DATABASE_URL/DATABASE_NAME not set, running without a database")


def collection(name: str):
    if db is None:
        raise DatabaseUnavailable("Database not configured")
    return db[name]


def create_document(collection_name: str, data: Union[BaseModel, dict]) -> str:
    """Insert a document stamped with created_at/updated_at and return its id."""
    if isinstance(data, BaseModel):
        doc = data.model_dump(by_alias=True)
    else:
        doc = dict(data)
    now = datetime.now(timezone.utc)
    doc["created_at"] = now
    doc["updated_at"] = now
    result = collection(collection_name).insert_one(doc)
    return str(result.inserted_id)


def get_documents(collection_name: str, filter_dict: Optional[dict] = None, limit: Optional[int] = None) -> List[dict]:
    cursor = collection(collection_name).find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def to_object_id(value: Any) -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        raise InvalidRequest("Invalid ID format")


def serialize_document(doc: Any, exclude: tuple = ()) -> Any:
    # Both clients read "_id", so it is kept and stringified rather than renamed.
    if isinstance(doc, ObjectId):
        return str(doc)
    if isinstance(doc, dict):
        return {k: serialize_document(v) for k, v in doc.items() if k not in exclude}
    if isinstance(doc, list):
        return [serialize_document(v) for v in doc]
    return doc


def ping() -> Dict[str, Any]:
    if client is None:
        return {"connected": False, "error": "Database not configured"}
    try:
        client.admin.command("ping")
        return {"connected": True}
    except Exception as e:
        return {"connected": False, "error": str(e)[:80]}
