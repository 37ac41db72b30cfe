"""
MongoDB access helpers

The client is created once at startup (see main.create_app) and the
database handle is exposed to routes through the get_db dependency.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from bson.objectid import ObjectId
from fastapi import Request
from pydantic import BaseModel
from pymongo import MongoClient

from errors import ServerError, ValidationError

logger = logging.getLogger(__name__)


def connect(database_url: Optional[str], database_name: Optional[str]):
    """Return (client, db), or (None, None) when the database is not configured."""
    if not database_url or not database_name:
        logger.warning("DATABASE_URL / DATABASE_NAME not set, running without a database")
        return None, None
    client = MongoClient(database_url)
    logger.info("Connected to MongoDB database %s", database_name)
    return client, client[database_name]


def get_db(request: Request):
    db = request.app.state.db
    if db is None:
        raise ServerError("Database not available")
    return db


def utcnow() -> datetime:
    # pymongo hands back naive UTC datetimes, store them the same way
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_object_id(id_str: str) -> ObjectId:
    try:
        return ObjectId(id_str)
    except Exception:
        raise ValidationError("Invalid id")


def serialize_doc(doc):
    if not doc:
        return doc
    doc = dict(doc)
    _id = doc.get("_id")
    if isinstance(_id, ObjectId):
        doc["_id"] = str(_id)
    for k, v in list(doc.items()):
        if isinstance(v, datetime):
            doc[k] = v.isoformat()
        elif isinstance(v, list):
            doc[k] = [serialize_doc(i) if isinstance(i, dict) else i for i in v]
        elif isinstance(v, dict):
            doc[k] = serialize_doc(v)
    return doc


def create_document(db, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = dict(data)
    now = utcnow()
    data_dict.setdefault("createdAt", now)
    data_dict["updatedAt"] = now
    result = db[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(db, collection_name: str, filter_dict: Optional[dict] = None, limit: Optional[int] = None):
    cursor = db[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def ensure_indexes(db):
    db["user"].create_index("email", unique=True)
    db["user"].create_index("userId", unique=True)
    db["product"].create_index("id", unique=True)
    db["order"].create_index("shippingAddress.email")
