import logging
import math
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from pydantic import BaseModel, EmailStr, Field
from pymongo.database import Database

from config import VENDOR_PLACEHOLDER_PASSWORD
from database import RESTAURANTS, USERS, create_document, get_db, utcnow
from errors import BadRequest, Conflict, UpstreamError
from lifecycle import count_active_orders
from routes.common import find_or_404, lookup, ok, search_filter
from routes.uploads import read_image
from schemas import Contact, Coordinates, Restaurant, RestaurantAddress, RestaurantStatus, VendorAccount
from security import get_current_admin, get_password_hash
from storage import RESTAURANT_TRANSFORMATION, ImageStorage, delete_quietly, get_storage

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(get_current_admin)])


class RestaurantCreate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    cuisine: Optional[str] = None
    vendor_email: Optional[EmailStr] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    delivery_fee: Optional[float] = Field(None, ge=0)
    minimum_order: Optional[float] = Field(None, ge=0)


class RestaurantUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    cuisine: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    delivery_fee: Optional[float] = Field(None, ge=0)
    minimum_order: Optional[float] = Field(None, ge=0)
    status: Optional[RestaurantStatus] = None


def find_or_create_vendor(db: Database, vendor_email: str, name: str, phone: str) -> Dict[str, Any]:
    """Return the account for vendor_email, creating a vendor account when none exists."""
    email = vendor_email.lower()
    vendor = db[USERS].find_one({"email": email})
    if vendor:
        return vendor
    phone_taken = db[USERS].find_one({"phone": phone}) is not None
    model = VendorAccount(
        name=name,
        email=email,
        phone=None if phone_taken else phone,
        password=get_password_hash(VENDOR_PLACEHOLDER_PASSWORD),
    )
    vendor_id = create_document(db, USERS, model)
    logger.info("New vendor created: %s (%s)", email, vendor_id)
    return db[USERS].find_one({"email": email})


def shape_restaurant(db: Database, doc: Dict[str, Any]) -> Dict[str, Any]:
    address = doc.get("address") or {}
    parts = [address.get("street"), address.get("city"), address.get("state"), address.get("zip_code")]
    return {
        **doc,
        "vendor": lookup(db, USERS, doc.get("vendor_id"), ("name", "email")),
        "full_address": ", ".join(p for p in parts if p),
    }


@router.get("")
def list_restaurants(
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    status: Optional[str] = None,
    is_active: Optional[bool] = None,
    db: Database = Depends(get_db),
):
    page = max(page, 1)
    limit = max(limit, 1)
    query: Dict[str, Any] = search_filter(search, ("name", "cuisine"))
    if status:
        query["status"] = status
    if is_active is not None:
        query["is_active"] = is_active

    cursor = db[RESTAURANTS].find(query).sort("created_at", -1).skip((page - 1) * limit).limit(limit)
    restaurants = [shape_restaurant(db, r) for r in cursor]
    total = db[RESTAURANTS].count_documents(query)
    logger.info("Found %d restaurants (total: %d)", len(restaurants), total)
    return ok(restaurants, pagination={
        "current_page": page,
        "total_pages": math.ceil(total / limit),
        "total_items": total,
        "items_per_page": limit,
    })


@router.get("/{restaurant_id}")
def get_restaurant(restaurant_id: str, db: Database = Depends(get_db)):
    restaurant = find_or_404(db, RESTAURANTS, restaurant_id, "Restaurant not found")
    return ok(shape_restaurant(db, restaurant))


@router.post("", status_code=201)
def create_restaurant(body: RestaurantCreate, db: Database = Depends(get_db)):
    if not (body.name and body.cuisine and body.vendor_email and body.phone and body.email):
        raise BadRequest("Name, cuisine, vendor email, phone, and email are required")

    vendor = find_or_create_vendor(db, body.vendor_email, body.name, body.phone)
    model = Restaurant(
        name=body.name,
        description=body.description,
        cuisine=body.cuisine,
        vendor_id=str(vendor["_id"]),
        contact=Contact(phone=body.phone, email=body.email.lower()),
        address=RestaurantAddress(
            street=body.street or '',
            city=body.city or '',
            state=body.state or '',
            zip_code=body.zip_code or '',
            coordinates=Coordinates(
                latitude=body.latitude if body.latitude is not None else Coordinates().latitude,
                longitude=body.longitude if body.longitude is not None else Coordinates().longitude,
            ),
        ),
        delivery_fee=body.delivery_fee or 0,
        minimum_order=body.minimum_order or 0,
        is_active=True,
        status='open',
    )
    restaurant_id = create_document(db, RESTAURANTS, model)
    restaurant = find_or_404(db, RESTAURANTS, restaurant_id, "Restaurant not found")
    logger.info("Restaurant created: %s", restaurant["name"])
    return ok(shape_restaurant(db, restaurant), "Restaurant created successfully")


@router.put("/{restaurant_id}")
def update_restaurant(restaurant_id: str, body: RestaurantUpdate, db: Database = Depends(get_db)):
    restaurant = find_or_404(db, RESTAURANTS, restaurant_id, "Restaurant not found")
    changes: Dict[str, Any] = {}
    for field in ("name", "cuisine", "status"):
        value = getattr(body, field)
        if value:
            changes[field] = value
    for field in ("description", "delivery_fee", "minimum_order"):
        value = getattr(body, field)
        if value is not None:
            changes[field] = value

    if body.phone:
        changes["contact.phone"] = body.phone
    if body.email:
        changes["contact.email"] = body.email.lower()
    for field in ("street", "city", "state", "zip_code"):
        value = getattr(body, field)
        if value:
            changes[f"address.{field}"] = value
    if body.latitude is not None:
        changes["address.coordinates.latitude"] = body.latitude
    if body.longitude is not None:
        changes["address.coordinates.longitude"] = body.longitude
    changes["updated_at"] = utcnow()

    db[RESTAURANTS].update_one({"_id": restaurant["_id"]}, {"$set": changes})
    restaurant = db[RESTAURANTS].find_one({"_id": restaurant["_id"]})
    logger.info("Restaurant updated: %s", restaurant["name"])
    return ok(shape_restaurant(db, restaurant), "Restaurant updated successfully")


@router.patch("/{restaurant_id}/toggle-status")
def toggle_restaurant_status(restaurant_id: str, db: Database = Depends(get_db)):
    restaurant = find_or_404(db, RESTAURANTS, restaurant_id, "Restaurant not found")
    is_active = not restaurant.get("is_active", True)
    db[RESTAURANTS].update_one({"_id": restaurant["_id"]}, {"$set": {"is_active": is_active, "updated_at": utcnow()}})
    logger.info('Restaurant "%s" is now %s', restaurant["name"], "ACTIVE" if is_active else "INACTIVE")
    return ok(
        {"_id": restaurant["_id"], "name": restaurant["name"], "is_active": is_active},
        f"Restaurant {'activated' if is_active else 'deactivated'} successfully",
    )


@router.post("/{restaurant_id}/images")
async def upload_restaurant_images(
    restaurant_id: str,
    profile_image: Optional[UploadFile] = File(None),
    cover_image: Optional[UploadFile] = File(None),
    db: Database = Depends(get_db),
    storage: ImageStorage = Depends(get_storage),
):
    restaurant = find_or_404(db, RESTAURANTS, restaurant_id, "Restaurant not found")
    if not profile_image and not cover_image:
        raise BadRequest("Provide profile_image and/or cover_image")

    pending = []
    for upload, url_field, id_field in (
        (profile_image, "image", "image_id"),
        (cover_image, "cover_image", "cover_image_id"),
    ):
        if upload:
            pending.append((await read_image(upload), url_field, id_field))

    changes: Dict[str, Any] = {}
    uploaded = []
    for data, url_field, id_field in pending:
        try:
            stored = storage.upload(data, folder="restaurants", transformation=RESTAURANT_TRANSFORMATION)
        except UpstreamError as e:
            logger.warning("Restaurant image upload failed: %s", e)
            for public_id in uploaded:
                delete_quietly(storage, public_id)
            raise HTTPException(status_code=502, detail="Image upload failed")
        uploaded.append(stored["id"])
        changes[url_field] = stored["url"]
        changes[id_field] = stored["id"]

    changes["updated_at"] = utcnow()
    db[RESTAURANTS].update_one({"_id": restaurant["_id"]}, {"$set": changes})
    # replaced images go only once the document points at the new ones
    for _, _, id_field in pending:
        delete_quietly(storage, restaurant.get(id_field))
    restaurant = db[RESTAURANTS].find_one({"_id": restaurant["_id"]})
    return ok(shape_restaurant(db, restaurant), "Restaurant images updated successfully")


@router.delete("/{restaurant_id}")
def delete_restaurant(
    restaurant_id: str,
    db: Database = Depends(get_db),
    storage: ImageStorage = Depends(get_storage),
):
    restaurant = find_or_404(db, RESTAURANTS, restaurant_id, "Restaurant not found")
    if count_active_orders(db, "restaurant_id", str(restaurant["_id"])) > 0:
        raise Conflict("Cannot delete restaurant with active orders")
    delete_quietly(storage, restaurant.get("image_id"))
    delete_quietly(storage, restaurant.get("cover_image_id"))
    db[RESTAURANTS].delete_one({"_id": restaurant["_id"]})
    logger.info("Restaurant deleted: %s", restaurant["name"])
    return ok(message="Restaurant deleted successfully")
