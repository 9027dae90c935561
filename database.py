"""
MongoDB access helpers.

Collections:
- users        accounts of every role (customer, vendor, driver, admin)
- restaurants  vendor storefronts
- menuitems    items owned by a restaurant
- orders       purchase snapshots
- deliveries   fulfilment records, at most one per order
"""

import logging
from datetime import datetime, timezone, date
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import HTTPException
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

import config

logger = logging.getLogger(__name__)

USERS = "users"
RESTAURANTS = "restaurants"
MENU_ITEMS = "menuitems"
ORDERS = "orders"
DELIVERIES = "deliveries"

_client: Optional[MongoClient] = None
db: Optional[Database] = None

if config.DATABASE_URL and config.DATABASE_NAME:
    _client = MongoClient(config.DATABASE_URL)
    db = _client[config.DATABASE_NAME]


def get_db() -> Database:
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return db


def utcnow() -> datetime:
    """Naive UTC timestamp, the form pymongo hands datetimes back in."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_object_id(id_str: Any) -> ObjectId:
    if isinstance(id_str, ObjectId):
        return id_str
    try:
        return ObjectId(str(id_str))
    except (InvalidId, TypeError):
        raise HTTPException(status_code=400, detail="Invalid id format")


def maybe_object_id(value: Any) -> Optional[ObjectId]:
    """Like to_object_id but returns None for empty or malformed values."""
    if value is None or value == "":
        return None
    if isinstance(value, ObjectId):
        return value
    if ObjectId.is_valid(str(value)):
        return ObjectId(str(value))
    return None


def create_document(database: Database, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = dict(data)
    now = utcnow()
    data_dict.setdefault("created_at", now)
    data_dict["updated_at"] = now
    result = database[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(
    database: Database,
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
    sort: Optional[List] = None,
) -> List[Dict[str, Any]]:
    cursor = database[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def serialize(value: Any) -> Any:
    """Make a Mongo document JSON friendly: ObjectId -> str, _id -> id, datetimes -> ISO."""
    if isinstance(value, dict):
        out = {}
        for key, item in value.items():
            if key == "_id":
                out["id"] = serialize(item)
            else:
                out[key] = serialize(item)
        return out
    if isinstance(value, (list, tuple)):
        return [serialize(v) for v in value]
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def ensure_indexes(database: Database) -> None:
    database[USERS].create_index("email", unique=True)
    # admins may have no phone; null must not collide
    database[USERS].create_index(
        "phone", unique=True, partialFilterExpression={"phone": {"$type": "string"}}
    )
    database[USERS].create_index("role")
    database[RESTAURANTS].create_index("vendor_id")
    database[RESTAURANTS].create_index([("is_active", ASCENDING), ("status", ASCENDING)])
    database[MENU_ITEMS].create_index([("restaurant_id", ASCENDING), ("category", ASCENDING)])
    database[ORDERS].create_index("order_number", unique=True)
    database[ORDERS].create_index("customer_id")
    database[ORDERS].create_index("driver_id")
    database[ORDERS].create_index("restaurant_id")
    database[ORDERS].create_index([("created_at", DESCENDING)])
    database[DELIVERIES].create_index("order_id", unique=True)
    database[DELIVERIES].create_index("driver_id")
    logger.info("MongoDB indexes ensured on %s", database.name)
