import logging
from typing import Any, Dict, Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr
from pymongo.database import Database

from database import ORDERS, RESTAURANTS, USERS, create_document, get_db, serialize, utcnow
from errors import BadRequest, Conflict
from lifecycle import ACTIVE_ORDER_STATUSES, count_active_orders
from routes.common import ensure_unique_contact, find_or_404, lookup, ok, search_filter, status_filter
from routes.passwords import PasswordBody, change_password
from schemas import Address, CustomerAccount, Location, SavedAddress
from security import check_password_policy, get_current_admin, get_password_hash

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(get_current_admin)])

CUSTOMER = {"role": "customer"}


class CustomerCreate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    password: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    address: Optional[Address] = None


class CustomerUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    status: Optional[Literal['active', 'inactive']] = None
    location: Optional[Location] = None
    current_address: Optional[Address] = None


def order_stats(db: Database, customer_id: str) -> Dict[str, Any]:
    def count(extra=None):
        return db[ORDERS].count_documents({"customer_id": customer_id, **(extra or {})})

    spent = list(db[ORDERS].aggregate([
        {"$match": {"customer_id": customer_id, "status": "delivered"}},
        {"$group": {"_id": None, "total_spent": {"$sum": "$total_amount"}}},
    ]))
    return {
        "total_orders": count(),
        "completed_orders": count({"status": "delivered"}),
        "active_orders": count({"status": {"$in": list(ACTIVE_ORDER_STATUSES)}}),
        "cancelled_orders": count({"status": "cancelled"}),
        "total_spent": spent[0]["total_spent"] if spent else 0,
    }


def shape_customer(doc: Dict[str, Any], stats: Dict[str, Any]) -> Dict[str, Any]:
    activity = doc.get("account_activity") or {}
    return {
        "_id": doc["_id"],
        "name": doc.get("name"),
        "email": doc.get("email"),
        "phone": doc.get("phone"),
        "role": doc.get("role"),
        "is_active": doc.get("is_active", True),
        "is_verified": doc.get("is_verified", False),
        "status": "active" if doc.get("is_active", True) else "inactive",
        "location": doc.get("location"),
        "current_address": doc.get("current_address"),
        "addresses": doc.get("addresses") or [],
        "created_at": doc.get("created_at"),
        "last_login": activity.get("last_login"),
        **stats,
    }


@router.get("")
def list_customers(status: Optional[str] = None, search: Optional[str] = None, db: Database = Depends(get_db)):
    query = {**CUSTOMER, **status_filter(status), **search_filter(search, ("name", "email", "phone"))}
    customers = db[USERS].find(query, {"password": 0}).sort("created_at", -1)
    data = [shape_customer(c, order_stats(db, str(c["_id"]))) for c in customers]
    logger.info("Returning %d customers", len(data))
    return ok(data, count=len(data))


@router.get("/{customer_id}")
def get_customer(customer_id: str, db: Database = Depends(get_db)):
    customer = find_or_404(db, USERS, customer_id, "Customer not found", CUSTOMER, {"password": 0})
    ref = str(customer["_id"])
    recent = []
    for order in db[ORDERS].find({"customer_id": ref}).sort("created_at", -1).limit(5):
        order = serialize(order)
        order["restaurant"] = lookup(db, RESTAURANTS, order.get("restaurant_id"), ("name", "cuisine"))
        order["driver"] = lookup(db, USERS, order.get("driver_id"), ("name", "phone"))
        recent.append(order)
    data = {**serialize(customer), **order_stats(db, ref), "recent_orders": recent}
    return ok(data)


@router.post("", status_code=201)
def create_customer(body: CustomerCreate, db: Database = Depends(get_db)):
    if not (body.name and body.email and body.phone and body.password):
        raise BadRequest("Please provide all required fields: name, email, phone, password")
    check_password_policy(body.password)
    ensure_unique_contact(db, email=body.email, phone=body.phone)

    model = CustomerAccount(
        name=body.name,
        email=body.email.lower(),
        phone=body.phone,
        password=get_password_hash(body.password),
        location=Location(city=body.city, region=body.region, country=body.country or Location().country),
        current_address=body.address,
        addresses=[SavedAddress(**body.address.model_dump())] if body.address else [],
    )
    customer_id = create_document(db, USERS, model)
    customer = find_or_404(db, USERS, customer_id, "Customer not found", projection={"password": 0})
    logger.info("Customer created: %s", customer_id)
    return ok(shape_customer(customer, order_stats(db, customer_id)), "Customer registered successfully")


@router.put("/{customer_id}")
def update_customer(customer_id: str, body: CustomerUpdate, db: Database = Depends(get_db)):
    customer = find_or_404(db, USERS, customer_id, "Customer not found", CUSTOMER)
    ensure_unique_contact(db, email=body.email, phone=body.phone, exclude_id=customer["_id"])

    changes: Dict[str, Any] = {}
    if body.name:
        changes["name"] = body.name
    if body.email:
        changes["email"] = body.email.lower()
    if body.phone:
        changes["phone"] = body.phone
    if body.location:
        changes["location"] = body.location.model_dump()
    if body.current_address:
        changes["current_address"] = body.current_address.model_dump()
    if body.status:
        changes["is_active"] = body.status == "active"
    changes["updated_at"] = utcnow()

    db[USERS].update_one({"_id": customer["_id"]}, {"$set": changes})
    customer = db[USERS].find_one({"_id": customer["_id"]}, {"password": 0})
    logger.info("Customer updated: %s", customer_id)
    return ok(shape_customer(customer, order_stats(db, str(customer["_id"]))), "Customer updated successfully")


@router.put("/{customer_id}/password")
def update_customer_password(customer_id: str, body: PasswordBody, db: Database = Depends(get_db)):
    change_password(db, customer_id, body, "customer", "Customer not found")
    return ok(message="Password updated successfully")


@router.delete("/{customer_id}")
def delete_customer(customer_id: str, db: Database = Depends(get_db)):
    customer = find_or_404(db, USERS, customer_id, "Customer not found", CUSTOMER)
    if count_active_orders(db, "customer_id", str(customer["_id"])) > 0:
        raise Conflict("Cannot delete customer with active orders")
    db[USERS].delete_one({"_id": customer["_id"]})
    logger.info("Customer deleted: %s", customer_id)
    return ok(message="Customer deleted successfully")
