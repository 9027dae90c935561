import re
from typing import Any, Dict, Iterable, Optional

from pymongo.database import Database

from database import USERS, maybe_object_id, serialize, to_object_id
from errors import Conflict, NotFound


def ok(data: Any = None, message: Optional[str] = None, **extra) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = serialize(data)
    body.update(extra)
    return body


def find_or_404(db: Database, collection: str, doc_id: str, message: str,
                extra_filter: Optional[Dict[str, Any]] = None, projection=None) -> Dict[str, Any]:
    doc = db[collection].find_one({"_id": to_object_id(doc_id), **(extra_filter or {})}, projection)
    if not doc:
        raise NotFound(message)
    return doc


def lookup(db: Database, collection: str, ref_id: Any, fields: Iterable[str]) -> Optional[Dict[str, Any]]:
    """Resolve a stored reference. Dangling or malformed references give None."""
    oid = maybe_object_id(ref_id)
    if oid is None:
        return None
    doc = db[collection].find_one({"_id": oid}, {f: 1 for f in fields})
    return serialize(doc) if doc else None


def ensure_unique_contact(db: Database, email: Optional[str] = None, phone: Optional[str] = None,
                          exclude_id=None) -> None:
    not_self = {"_id": {"$ne": exclude_id}} if exclude_id is not None else {}
    if email and db[USERS].find_one({"email": email.lower(), **not_self}):
        raise Conflict("A user with this email already exists")
    if phone and db[USERS].find_one({"phone": phone, **not_self}):
        raise Conflict("A user with this phone number already exists")


def status_filter(status: Optional[str]) -> Dict[str, Any]:
    """Map the dashboard's active/inactive filter onto is_active."""
    if status == "active":
        return {"is_active": True}
    if status == "inactive":
        return {"is_active": False}
    return {}


def search_filter(search: Optional[str], fields: Iterable[str]) -> Dict[str, Any]:
    if not search:
        return {}
    return {"$or": [{f: {"$regex": re.escape(search), "$options": "i"}} for f in fields]}
