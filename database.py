"""
MongoDB access helpers.

`db` is the module-level database handle (None when DATABASE_URL is not set).
Callers go through `database.db` at call time so it can be swapped out, e.g.
for an in-memory client in tests.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient, ReturnDocument

import config

logger = logging.getLogger(__name__)

_client: Optional[MongoClient] = MongoClient(config.DATABASE_URL) if config.DATABASE_URL else None
db = _client[config.DATABASE_NAME] if _client is not None else None


class DatabaseUnavailable(RuntimeError):
    pass


def require_db():
    if db is None:
        raise DatabaseUnavailable("Database not configured")
    return db


def create_document(collection_name: str, data: Union[BaseModel, dict]) -> str:
    """Insert a document with createdAt/updatedAt stamps and return its id."""
    database = require_db()
    if isinstance(data, BaseModel):
        doc = data.model_dump(by_alias=True)
    else:
        doc = dict(data)
    now = datetime.now(timezone.utc)
    doc.setdefault("createdAt", now)
    doc["updatedAt"] = now
    result = database[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(collection_name: str, filter_dict: Optional[dict] = None, limit: Optional[int] = None,
                  sort: Optional[list] = None) -> List[dict]:
    database = require_db()
    cursor = database[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def find_by_id(collection_name: str, object_id: ObjectId) -> Optional[dict]:
    return require_db()[collection_name].find_one({"_id": object_id})


def update_document(collection_name: str, object_id: ObjectId, changes: dict) -> Optional[dict]:
    """Apply a $set of `changes` and return the updated document (None if missing)."""
    changes = {**changes, "updatedAt": datetime.now(timezone.utc)}
    return require_db()[collection_name].find_one_and_update(
        {"_id": object_id},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )


def delete_document(collection_name: str, object_id: ObjectId) -> bool:
    """Delete by id with no further checks. Returns whether a document was removed."""
    res = require_db()[collection_name].delete_one({"_id": object_id})
    return res.deleted_count > 0


def ensure_indexes() -> None:
    require_db()["user"].create_index([("email", ASCENDING)], unique=True)


def parse_object_id(value: str) -> Optional[ObjectId]:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def serialize_doc(doc: Optional[dict], exclude: tuple = ()) -> Optional[dict]:
    if not doc:
        return doc
    d: Dict[str, Any] = {k: v for k, v in doc.items() if k not in exclude}
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    # Convert datetimes to isoformat for JSON
    for k, v in list(d.items()):
        if isinstance(v, datetime):
            d[k] = v.isoformat()
        elif isinstance(v, ObjectId):
            d[k] = str(v)
    return d
