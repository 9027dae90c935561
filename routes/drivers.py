import logging
from typing import Any, Dict, Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr
from pymongo.database import Database

from database import DELIVERIES, ORDERS, USERS, create_document, get_db, get_documents, utcnow
from errors import BadRequest, Conflict, NotFound
from lifecycle import (
    ACTIVE_DELIVERY_STATUSES,
    ACTIVE_ORDER_STATUSES,
    count_active_deliveries,
    count_active_orders,
)
from routes.common import ensure_unique_contact, find_or_404, ok, search_filter, status_filter
from routes.passwords import PasswordBody, change_password
from schemas import DriverAccount, Location
from security import check_password_policy, get_current_admin, get_password_hash

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(get_current_admin)])

DRIVER = {"role": "driver"}


class DriverCreate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    password: Optional[str] = None
    vehicle_type: Optional[str] = None
    vehicle_number: Optional[str] = None
    license_number: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None


class DriverUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    vehicle_type: Optional[str] = None
    vehicle_number: Optional[str] = None
    license_number: Optional[str] = None
    status: Optional[Literal['active', 'inactive']] = None
    location: Optional[Location] = None


def delivery_stats(db: Database, driver_id: str) -> Dict[str, Any]:
    completed_deliveries = db[DELIVERIES].count_documents({"driver_id": driver_id, "status": "completed"})
    active_deliveries = db[DELIVERIES].count_documents(
        {"driver_id": driver_id, "status": {"$in": list(ACTIVE_DELIVERY_STATUSES)}}
    )
    # orders delivered without a delivery record still count
    completed_orders = db[ORDERS].count_documents({"driver_id": driver_id, "status": "delivered"})
    return {
        "total_deliveries": completed_orders or completed_deliveries,
        "completed_deliveries": completed_deliveries or completed_orders,
        "active_deliveries": active_deliveries,
    }


def shape_driver(doc: Dict[str, Any], stats: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "_id": doc["_id"],
        "name": doc.get("name"),
        "email": doc.get("email"),
        "phone": doc.get("phone"),
        "role": doc.get("role"),
        "is_active": doc.get("is_active", True),
        "is_verified": doc.get("is_verified", False),
        "vehicle_type": doc.get("vehicle_type"),
        "vehicle_number": doc.get("vehicle_number"),
        "license_number": doc.get("license_number"),
        "status": "active" if doc.get("is_active", True) else "inactive",
        "rating": doc.get("rating") or 5.0,
        "location": doc.get("location"),
        "current_address": doc.get("current_address"),
        "created_at": doc.get("created_at"),
        **stats,
    }


@router.get("")
def list_drivers(status: Optional[str] = None, search: Optional[str] = None, db: Database = Depends(get_db)):
    query = {**DRIVER, **status_filter(status), **search_filter(search, ("name", "email", "phone", "vehicle_number"))}
    drivers = db[USERS].find(query, {"password": 0}).sort("created_at", -1)
    data = [shape_driver(d, delivery_stats(db, str(d["_id"]))) for d in drivers]
    logger.info("Returning %d drivers", len(data))
    return ok(data, count=len(data))


@router.get("/{driver_id}")
def get_driver(driver_id: str, db: Database = Depends(get_db)):
    driver = find_or_404(db, USERS, driver_id, "Driver not found", DRIVER, {"password": 0})
    recent = get_documents(db, DELIVERIES, {"driver_id": str(driver["_id"])}, limit=5, sort=[("created_at", -1)])
    data = {**shape_driver(driver, delivery_stats(db, str(driver["_id"]))), "recent_deliveries": recent}
    return ok(data)


@router.post("", status_code=201)
def create_driver(body: DriverCreate, db: Database = Depends(get_db)):
    required = (body.name, body.email, body.phone, body.password,
                body.vehicle_type, body.vehicle_number, body.license_number)
    if not all(required):
        raise BadRequest(
            "Please provide all required fields: name, email, phone, password, "
            "vehicle_type, vehicle_number, license_number"
        )
    check_password_policy(body.password)
    ensure_unique_contact(db, email=body.email, phone=body.phone)

    model = DriverAccount(
        name=body.name,
        email=body.email.lower(),
        phone=body.phone,
        password=get_password_hash(body.password),
        vehicle_type=body.vehicle_type,
        vehicle_number=body.vehicle_number,
        license_number=body.license_number,
        location=Location(city=body.city, region=body.region, country=body.country or Location().country),
    )
    driver_id = create_document(db, USERS, model)
    driver = find_or_404(db, USERS, driver_id, "Driver not found", projection={"password": 0})
    logger.info("Driver created: %s", driver_id)
    return ok(shape_driver(driver, delivery_stats(db, driver_id)), "Driver registered successfully")


@router.put("/{driver_id}")
def update_driver(driver_id: str, body: DriverUpdate, db: Database = Depends(get_db)):
    driver = find_or_404(db, USERS, driver_id, "User not found")
    if driver.get("role") != "driver":
        raise NotFound("This user is not a driver")
    ensure_unique_contact(db, email=body.email, phone=body.phone, exclude_id=driver["_id"])

    changes: Dict[str, Any] = {}
    for field in ("name", "phone", "vehicle_type", "vehicle_number", "license_number"):
        value = getattr(body, field)
        if value:
            changes[field] = value
    if body.email:
        changes["email"] = body.email.lower()
    if body.location:
        changes["location"] = body.location.model_dump()
    if body.status:
        changes["is_active"] = body.status == "active"
    changes["updated_at"] = utcnow()

    db[USERS].update_one({"_id": driver["_id"]}, {"$set": changes})
    driver = db[USERS].find_one({"_id": driver["_id"]}, {"password": 0})
    logger.info("Driver updated: %s", driver_id)
    return ok(shape_driver(driver, delivery_stats(db, str(driver["_id"]))), "Driver updated successfully")


@router.put("/{driver_id}/password")
def update_driver_password(driver_id: str, body: PasswordBody, db: Database = Depends(get_db)):
    change_password(db, driver_id, body, "driver", "Driver not found")
    return ok(message="Password updated successfully")


@router.delete("/{driver_id}")
def delete_driver(driver_id: str, db: Database = Depends(get_db)):
    driver = find_or_404(db, USERS, driver_id, "Driver not found", DRIVER)
    ref = str(driver["_id"])
    if count_active_deliveries(db, ref) > 0 or count_active_orders(db, "driver_id", ref, ACTIVE_ORDER_STATUSES) > 0:
        raise Conflict("Cannot delete driver with active deliveries or orders")
    db[USERS].delete_one({"_id": driver["_id"]})
    logger.info("Driver deleted: %s", driver_id)
    return ok(message="Driver deleted successfully")
