import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from pymongo.database import Database

from database import DELIVERIES, ORDERS, USERS, create_document, get_db, to_object_id
from errors import BadRequest, NotFound
from routes.common import find_or_404, lookup, ok
from schemas import Delivery, DeliveryStatus, GeoPoint
from security import get_current_admin

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(get_current_admin)])


class DeliveryCreate(BaseModel):
    order_id: Optional[str] = None
    driver_id: Optional[str] = None
    estimated_duration: Optional[int] = Field(None, ge=0)
    distance: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None


def geo_point(address: Optional[Dict[str, Any]]) -> Optional[GeoPoint]:
    if not address:
        return None
    parts = [address.get("street"), address.get("city"), address.get("state"), address.get("zip_code")]
    return GeoPoint(
        latitude=address.get("latitude"),
        longitude=address.get("longitude"),
        address=", ".join(p for p in parts if p) or None,
    )


def shape_delivery(db: Database, doc: Dict[str, Any]) -> Dict[str, Any]:
    return {
        **doc,
        "order": lookup(db, ORDERS, doc.get("order_id"), ("order_number", "status", "total_amount")),
        "driver": lookup(db, USERS, doc.get("driver_id"), ("name", "phone", "vehicle_type")),
    }


@router.post("", status_code=201)
def create_delivery(body: DeliveryCreate, db: Database = Depends(get_db)):
    if not body.order_id:
        raise BadRequest("Order ID is required")
    order = find_or_404(db, ORDERS, body.order_id, "Order not found")
    driver_id = body.driver_id or order.get("driver_id")
    if not driver_id:
        raise BadRequest("A driver must be assigned before creating a delivery")

    driver = find_or_404(db, USERS, driver_id, "Driver not found")
    if driver.get("role") != "driver":
        raise NotFound("This user is not a driver")
    if db[DELIVERIES].find_one({"order_id": str(order["_id"])}):
        raise BadRequest("A delivery already exists for this order")

    model = Delivery(
        order_id=str(order["_id"]),
        driver_id=str(driver["_id"]),
        estimated_duration=body.estimated_duration,
        distance=body.distance,
        notes=body.notes,
        pickup_location=geo_point(order.get("pickup_address")),
        delivery_location=geo_point(order.get("delivery_address")),
    )
    delivery_id = create_document(db, DELIVERIES, model)
    delivery = find_or_404(db, DELIVERIES, delivery_id, "Delivery not found")
    logger.info("Delivery %s created for order %s", delivery_id, order.get("order_number"))
    return ok(shape_delivery(db, delivery), "Delivery created successfully")


@router.get("")
def list_deliveries(
    status: Optional[DeliveryStatus] = None,
    driver_id: Optional[str] = None,
    db: Database = Depends(get_db),
):
    query: Dict[str, Any] = {}
    if status:
        query["status"] = status
    if driver_id:
        query["driver_id"] = str(to_object_id(driver_id))
    deliveries = [shape_delivery(db, d) for d in db[DELIVERIES].find(query).sort("created_at", -1)]
    return ok(deliveries, count=len(deliveries))


@router.get("/{delivery_id}")
def get_delivery(delivery_id: str, db: Database = Depends(get_db)):
    return ok(shape_delivery(db, find_or_404(db, DELIVERIES, delivery_id, "Delivery not found")))
