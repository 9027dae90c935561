import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from pydantic import BaseModel, Field
from pymongo.database import Database

from database import MENU_ITEMS, RESTAURANTS, create_document, get_db, to_object_id, utcnow
from errors import UpstreamError
from routes.common import find_or_404, ok
from routes.uploads import read_image
from schemas import MenuCategory, MenuImage, MenuItem, SpiceLevel, StockManagement
from security import get_current_admin
from stock import adjust_stock, apply_stock_rules, is_actually_available, is_low_stock
from storage import MENU_ITEM_TRANSFORMATION, ImageStorage, delete_quietly, get_storage

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(get_current_admin)])


class MenuItemCreate(BaseModel):
    restaurant_id: str
    name: str = Field(..., min_length=2)
    description: str
    category: MenuCategory
    price: float = Field(..., ge=0)
    is_available: bool = True
    is_vegetarian: bool = False
    is_vegan: bool = False
    is_gluten_free: bool = False
    spice_level: SpiceLevel = 'None'
    preparation_time: int = Field(15, ge=0)
    calories: Optional[int] = Field(None, ge=0)
    ingredients: List[str] = []
    allergens: List[str] = []
    tags: List[str] = []
    featured: bool = False
    stock_management: Optional[StockManagement] = None


class MenuItemUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2)
    description: Optional[str] = None
    category: Optional[MenuCategory] = None
    price: Optional[float] = Field(None, ge=0)
    is_available: Optional[bool] = None
    is_vegetarian: Optional[bool] = None
    is_vegan: Optional[bool] = None
    is_gluten_free: Optional[bool] = None
    spice_level: Optional[SpiceLevel] = None
    preparation_time: Optional[int] = Field(None, ge=0)
    calories: Optional[int] = Field(None, ge=0)
    ingredients: Optional[List[str]] = None
    allergens: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    featured: Optional[bool] = None
    display_order: Optional[int] = None


class StockUpdate(BaseModel):
    operation: str = 'subtract'
    quantity: Optional[int] = Field(None, ge=0)
    track_stock: Optional[bool] = None
    low_stock_threshold: Optional[int] = Field(None, ge=0)


def shape_menu_item(doc: Dict[str, Any]) -> Dict[str, Any]:
    image = doc.get("image") or {}
    return {
        **doc,
        "image_url": image.get("url") or None,
        "is_actually_available": is_actually_available(doc),
        "is_low_stock": is_low_stock(doc),
    }


def save_menu_item(db: Database, item: Dict[str, Any]) -> Dict[str, Any]:
    """Persist a modified item, running the stock cascade first."""
    item = apply_stock_rules(item)
    item["updated_at"] = utcnow()
    fields = {k: v for k, v in item.items() if k != "_id"}
    db[MENU_ITEMS].update_one({"_id": item["_id"]}, {"$set": fields})
    return item


@router.get("/restaurant/{restaurant_id}")
def list_menu_items(
    restaurant_id: str,
    category: Optional[str] = None,
    available: Optional[bool] = None,
    db: Database = Depends(get_db),
):
    query: Dict[str, Any] = {"restaurant_id": str(to_object_id(restaurant_id))}
    if category:
        query["category"] = category
    if available is not None:
        query["is_available"] = available
    items = [shape_menu_item(i) for i in db[MENU_ITEMS].find(query).sort([("category", 1), ("name", 1)])]
    logger.info("Found %d menu items for restaurant %s", len(items), restaurant_id)
    return ok(items, count=len(items))


@router.post("", status_code=201)
def create_menu_item(body: MenuItemCreate, db: Database = Depends(get_db)):
    restaurant = find_or_404(db, RESTAURANTS, body.restaurant_id, "Restaurant not found")
    model = MenuItem(**{
        **body.model_dump(exclude_none=True),
        "restaurant_id": str(restaurant["_id"]),
    })
    doc = apply_stock_rules(model.model_dump())
    item_id = create_document(db, MENU_ITEMS, doc)
    item = find_or_404(db, MENU_ITEMS, item_id, "Menu item not found")
    logger.info("Menu item created: %s (%s)", item["name"], restaurant["name"])
    return ok(shape_menu_item(item), "Menu item created successfully")


@router.get("/{item_id}")
def get_menu_item(item_id: str, db: Database = Depends(get_db)):
    return ok(shape_menu_item(find_or_404(db, MENU_ITEMS, item_id, "Menu item not found")))


@router.put("/{item_id}")
def update_menu_item(item_id: str, body: MenuItemUpdate, db: Database = Depends(get_db)):
    item = find_or_404(db, MENU_ITEMS, item_id, "Menu item not found")
    item.update(body.model_dump(exclude_none=True))
    item = save_menu_item(db, item)
    logger.info("Menu item updated: %s", item["name"])
    return ok(shape_menu_item(item), "Menu item updated successfully")


@router.patch("/{item_id}/toggle-availability")
def toggle_availability(item_id: str, db: Database = Depends(get_db)):
    item = find_or_404(db, MENU_ITEMS, item_id, "Menu item not found")
    item["is_available"] = not item.get("is_available", True)
    item = save_menu_item(db, item)
    state = "available" if item["is_available"] else "unavailable"
    return ok(shape_menu_item(item), f"Menu item is now {state}")


@router.patch("/{item_id}/stock")
def update_stock(item_id: str, body: StockUpdate, db: Database = Depends(get_db)):
    item = find_or_404(db, MENU_ITEMS, item_id, "Menu item not found")
    stock = item.get("stock_management") or StockManagement().model_dump()
    if body.track_stock is not None:
        stock["track_stock"] = body.track_stock
    if body.low_stock_threshold is not None:
        stock["low_stock_threshold"] = body.low_stock_threshold
    item["stock_management"] = stock
    if body.quantity is not None:
        item = adjust_stock(item, body.quantity, body.operation)
    item = save_menu_item(db, item)
    logger.info("Stock for %s now %s", item["name"], item["stock_management"].get("current_stock"))
    return ok(shape_menu_item(item), "Stock updated successfully")


@router.post("/{item_id}/image")
async def upload_menu_item_image(
    item_id: str,
    image: UploadFile = File(...),
    db: Database = Depends(get_db),
    storage: ImageStorage = Depends(get_storage),
):
    item = find_or_404(db, MENU_ITEMS, item_id, "Menu item not found")
    data = await read_image(image)
    try:
        stored = storage.upload(data, folder="menu-items", transformation=MENU_ITEM_TRANSFORMATION)
    except UpstreamError as e:
        logger.warning("Menu item image upload failed: %s", e)
        raise HTTPException(status_code=502, detail="Image upload failed")

    replaced = (item.get("image") or {}).get("storage_id")
    item["image"] = MenuImage(
        filename=image.filename or '',
        url=stored["url"],
        storage_id=stored["id"],
        uploaded_at=utcnow(),
    ).model_dump()
    item = save_menu_item(db, item)
    delete_quietly(storage, replaced)
    return ok(shape_menu_item(item), "Image uploaded successfully")


@router.delete("/{item_id}")
def delete_menu_item(
    item_id: str,
    db: Database = Depends(get_db),
    storage: ImageStorage = Depends(get_storage),
):
    item = find_or_404(db, MENU_ITEMS, item_id, "Menu item not found")
    delete_quietly(storage, (item.get("image") or {}).get("storage_id"))
    db[MENU_ITEMS].delete_one({"_id": item["_id"]})
    logger.info("Menu item deleted: %s", item["name"])
    return ok(message="Menu item deleted successfully")
