import logging
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from pymongo.database import Database

from database import DELIVERIES, MENU_ITEMS, ORDERS, RESTAURANTS, USERS, create_document, get_db, serialize, utcnow
from errors import BadRequest
from lifecycle import assign_driver, generate_order_number, update_order_status
from routes.common import find_or_404, lookup, ok
from schemas import Address, Order, OrderItem, StatusChange
from security import get_current_admin

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(get_current_admin)])

PaymentMethod = Literal['cash', 'card', 'online']
PaymentStatus = Literal['pending', 'paid', 'failed', 'refunded']


class OrderCreate(BaseModel):
    customer_id: Optional[str] = None
    restaurant_id: Optional[str] = None
    items: List[OrderItem] = []
    total_amount: Optional[float] = Field(None, ge=0)
    subtotal: Optional[float] = Field(None, ge=0)
    delivery_fee: Optional[float] = Field(None, ge=0)
    tax: Optional[float] = Field(None, ge=0)
    delivery_address: Optional[Address] = None
    payment_method: Optional[PaymentMethod] = None
    special_instructions: Optional[str] = None


class OrderUpdate(BaseModel):
    delivery_address: Optional[Address] = None
    special_instructions: Optional[str] = None
    payment_status: Optional[PaymentStatus] = None
    payment_method: Optional[PaymentMethod] = None
    cancellation_reason: Optional[str] = None


class StatusBody(BaseModel):
    status: Optional[str] = None


class AssignDriverBody(BaseModel):
    driver_id: Optional[str] = None


def shape_item(db: Database, item: Dict[str, Any]) -> Dict[str, Any]:
    """Order line with live menu data where the menu item still exists.

    Price and quantity always come from the snapshot.
    """
    shaped = {
        **item,
        "subtotal": item.get("subtotal") or item["price"] * item["quantity"],
    }
    live = lookup(db, MENU_ITEMS, item.get("menu_item_id"),
                  ("name", "description", "category", "image", "is_available"))
    if live:
        shaped.update(
            name=live.get("name"),
            description=live.get("description"),
            category=live.get("category"),
            image_url=(live.get("image") or {}).get("url") or None,
            is_available=live.get("is_available"),
        )
    return shaped


def shape_order(db: Database, order: Dict[str, Any]) -> Dict[str, Any]:
    data = serialize(order)
    customer = lookup(db, USERS, order.get("customer_id"),
                      ("name", "email", "phone", "current_address", "addresses"))
    delivery_address = order.get("delivery_address")
    if customer:
        saved = customer.pop("addresses", None) or []
        current = customer.pop("current_address", None)
        if not delivery_address:
            delivery_address = current or (saved[0] if saved else None)

    delivery = db[DELIVERIES].find_one({"order_id": data["id"]})
    data.update(
        customer=customer,
        driver=lookup(db, USERS, order.get("driver_id"), ("name", "email", "phone")),
        restaurant=lookup(db, RESTAURANTS, order.get("restaurant_id"), ("name", "cuisine", "image", "address")),
        items=[shape_item(db, i) for i in data.get("items") or []],
        delivery=serialize(delivery) if delivery else None,
        delivery_status=delivery["status"] if delivery else order.get("status"),
        delivery_address=serialize(delivery_address),
    )
    return data


def pickup_address_for(restaurant: Dict[str, Any]) -> Address:
    address = restaurant.get("address") or {}
    coordinates = address.get("coordinates") or {}
    return Address(
        street=address.get("street"),
        city=address.get("city"),
        state=address.get("state"),
        zip_code=address.get("zip_code"),
        latitude=coordinates.get("latitude"),
        longitude=coordinates.get("longitude"),
    )


@router.get("")
def list_orders(status: Optional[str] = None, db: Database = Depends(get_db)):
    query = {"status": status} if status and status != "all" else {}
    orders = [shape_order(db, o) for o in db[ORDERS].find(query).sort("created_at", -1)]
    logger.info("Found %d orders", len(orders))
    return ok(orders, count=len(orders))


@router.get("/{order_id}")
def get_order(order_id: str, db: Database = Depends(get_db)):
    return ok(shape_order(db, find_or_404(db, ORDERS, order_id, "Order not found")))


@router.post("", status_code=201)
def create_order(body: OrderCreate, db: Database = Depends(get_db)):
    if not (body.customer_id and body.restaurant_id and body.items) or body.total_amount is None:
        raise BadRequest("Customer, restaurant, items and total amount are required")
    customer = find_or_404(db, USERS, body.customer_id, "Customer not found", {"role": "customer"})
    restaurant = find_or_404(db, RESTAURANTS, body.restaurant_id, "Restaurant not found")

    now = utcnow()
    model = Order(
        order_number=generate_order_number(),
        customer_id=str(customer["_id"]),
        restaurant_id=str(restaurant["_id"]),
        items=body.items,
        subtotal=body.subtotal or 0,
        delivery_fee=body.delivery_fee if body.delivery_fee is not None else restaurant.get("delivery_fee", 0),
        tax=body.tax or 0,
        total_amount=body.total_amount,
        pickup_address=pickup_address_for(restaurant),
        delivery_address=body.delivery_address,
        payment_method=body.payment_method or 'cash',
        special_instructions=body.special_instructions,
        status_history=[StatusChange(status='pending', timestamp=now)],
    )
    doc = model.model_dump()
    for item in doc["items"]:
        if item.get("subtotal") is None:
            del item["subtotal"]
    order_id = create_document(db, ORDERS, doc)
    order = find_or_404(db, ORDERS, order_id, "Order not found")
    logger.info("Order created: %s", order["order_number"])
    return ok(shape_order(db, order), "Order created successfully")


@router.put("/{order_id}")
def update_order(order_id: str, body: OrderUpdate, db: Database = Depends(get_db)):
    order = find_or_404(db, ORDERS, order_id, "Order not found")
    changes: Dict[str, Any] = body.model_dump(exclude_none=True)
    changes["updated_at"] = utcnow()
    db[ORDERS].update_one({"_id": order["_id"]}, {"$set": changes})
    order = db[ORDERS].find_one({"_id": order["_id"]})
    return ok(shape_order(db, order), "Order updated successfully")


@router.put("/{order_id}/status")
def update_status(order_id: str, body: StatusBody, db: Database = Depends(get_db)):
    order = update_order_status(db, order_id, body.status)
    return ok(shape_order(db, order), "Order status updated successfully")


@router.put("/{order_id}/assign-driver")
def assign_order_driver(order_id: str, body: AssignDriverBody, db: Database = Depends(get_db)):
    if not body.driver_id:
        raise BadRequest("Driver ID is required")
    order = assign_driver(db, order_id, body.driver_id)
    return ok(shape_order(db, order), "Driver assigned successfully")


@router.delete("/{order_id}")
def delete_order(order_id: str, db: Database = Depends(get_db)):
    order = find_or_404(db, ORDERS, order_id, "Order not found")
    db[DELIVERIES].delete_many({"order_id": str(order["_id"])})
    db[ORDERS].delete_one({"_id": order["_id"]})
    logger.info("Order deleted: %s", order.get("order_number"))
    return ok(message="Order deleted successfully")
