import logging
import os
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import MongoClient

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")


def is_placeholder(value: Optional[str]) -> bool:
    if not value:
        return True
    value = value.strip()
    return not value or value.upper().startswith("YOUR_") or (value.startswith("<") and value.endswith(">"))


def connect(url: Optional[str], name: Optional[str]):
    """Return ``(db, error)``; ``db`` is None when the configuration is unusable."""
    if is_placeholder(url):
        return None, "DATABASE_URL is not set"
    if is_placeholder(name):
        return None, "DATABASE_NAME is not set"
    client = MongoClient(url, serverSelectionTimeoutMS=5000)
    return client[name], None


db, config_error = connect(DATABASE_URL, DATABASE_NAME)
if config_error:
    logger.warning("Database disabled: %s", config_error)


def _require_db():
    if db is None:
        raise RuntimeError(f"Database not configured: {config_error}")
    return db


def create_document(collection_name: str, data: Dict[str, Any]) -> str:
    """Insert a document and return its id as a string."""
    doc = {k: v for k, v in data.items() if k not in ("id", "_id")}
    result = _require_db()[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    sort: Optional[List] = None,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    cursor = _require_db()[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def update_document(collection_name: str, doc_id: ObjectId, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Apply ``$set`` updates and return the document after the update, or None if missing."""
    collection = _require_db()[collection_name]
    if updates:
        result = collection.update_one({"_id": doc_id}, {"$set": updates})
        if result.matched_count == 0:
            return None
    return collection.find_one({"_id": doc_id})


def delete_document(collection_name: str, doc_id: ObjectId) -> bool:
    return _require_db()[collection_name].delete_one({"_id": doc_id}).deleted_count > 0
