"""
Database Schemas for the DeliverNow admin API

Each Pydantic model maps to a MongoDB collection
- CustomerAccount | VendorAccount | DriverAccount | AdminAccount -> users (discriminated on role)
- Restaurant -> restaurants
- MenuItem -> menuitems
- Order -> orders
- Delivery -> deliveries

References between documents are stored as string ids (customer_id,
restaurant_id, ...). Nothing enforces that they still resolve.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

import config

OrderStatus = Literal['pending', 'confirmed', 'assigned', 'picked_up', 'in_transit', 'delivered', 'cancelled']
DeliveryStatus = Literal['assigned', 'ongoing', 'completed', 'cancelled']
RestaurantStatus = Literal['open', 'closed', 'busy']

MenuCategory = Literal[
    'Appetizers', 'Main Course', 'Desserts', 'Beverages', 'Sides', 'Salads', 'Soups',
    'Pizza', 'Burgers', 'Sandwiches', 'Pasta', 'Seafood', 'Vegetarian', 'Specials',
]
SpiceLevel = Literal['None', 'Mild', 'Medium', 'Hot', 'Extra Hot']


# ---------------------- Shared value objects ----------------------
class Address(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = config.DEFAULT_COUNTRY
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class SavedAddress(Address):
    label: Optional[str] = Field(None, description="e.g. Home, Work")
    is_default: bool = False


class Location(BaseModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    city: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = config.DEFAULT_COUNTRY
    last_location_update: Optional[datetime] = None


class AccountActivity(BaseModel):
    last_login: Optional[datetime] = None
    login_count: int = 0


# ---------------------- Accounts ----------------------
class AccountBase(BaseModel):
    """Fields every role carries. `password` holds the bcrypt hash, never plain text."""
    name: str = Field(..., description="Full name")
    email: EmailStr
    phone: Optional[str] = None
    password: str
    is_active: bool = True
    is_verified: bool = False
    location: Location = Field(default_factory=Location)
    account_activity: AccountActivity = Field(default_factory=AccountActivity)


class CustomerAccount(AccountBase):
    role: Literal['customer'] = 'customer'
    current_address: Optional[Address] = None
    addresses: List[SavedAddress] = []


class VendorAccount(AccountBase):
    role: Literal['vendor'] = 'vendor'


class DriverAccount(AccountBase):
    role: Literal['driver'] = 'driver'
    vehicle_type: str
    vehicle_number: str
    license_number: str
    rating: float = Field(5.0, ge=0, le=5)
    current_address: Optional[Address] = None


class AdminAccount(AccountBase):
    role: Literal['admin'] = 'admin'
    surname: str


# ---------------------- Restaurants & Menu ----------------------
class Coordinates(BaseModel):
    latitude: float = config.DEFAULT_LATITUDE
    longitude: float = config.DEFAULT_LONGITUDE


class RestaurantAddress(BaseModel):
    street: str = ''
    city: str = ''
    state: str = ''
    zip_code: str = ''
    coordinates: Coordinates = Field(default_factory=Coordinates)


class Contact(BaseModel):
    phone: str
    email: EmailStr


class Restaurant(BaseModel):
    """`is_active` and `status` are independent; callers check both."""
    name: str
    description: Optional[str] = None
    cuisine: str
    vendor_id: Optional[str] = Field(None, description="Links to users._id (vendor role)")
    image: Optional[str] = None
    image_id: Optional[str] = None
    cover_image: Optional[str] = None
    cover_image_id: Optional[str] = None
    contact: Contact
    address: RestaurantAddress = Field(default_factory=RestaurantAddress)
    delivery_fee: float = Field(0, ge=0)
    minimum_order: float = Field(0, ge=0)
    rating: float = Field(0, ge=0, le=5)
    total_reviews: int = 0
    status: RestaurantStatus = 'open'
    is_active: bool = True
    tags: List[str] = []
    featured: bool = False


class MenuImage(BaseModel):
    filename: str = ''
    url: str = ''
    storage_id: str = ''
    uploaded_at: Optional[datetime] = None


class StockManagement(BaseModel):
    track_stock: bool = False
    current_stock: int = Field(0, ge=0)
    low_stock_threshold: int = Field(5, ge=0)
    is_out_of_stock: bool = False


class MenuItem(BaseModel):
    restaurant_id: str
    name: str = Field(..., min_length=2)
    description: str
    category: MenuCategory
    price: float = Field(..., ge=0)
    image: Optional[MenuImage] = None
    is_available: bool = True
    is_vegetarian: bool = False
    is_vegan: bool = False
    is_gluten_free: bool = False
    spice_level: SpiceLevel = 'None'
    preparation_time: int = Field(15, ge=0, description="minutes")
    calories: Optional[int] = Field(None, ge=0)
    ingredients: List[str] = []
    allergens: List[str] = []
    tags: List[str] = []
    popularity: int = 0
    order_count: int = 0
    stock_management: StockManagement = Field(default_factory=StockManagement)
    featured: bool = False
    display_order: int = 0


# ---------------------- Orders & Deliveries ----------------------
class OrderItem(BaseModel):
    """Snapshot of a purchased item, decoupled from the live menu item."""
    menu_item_id: Optional[str] = None
    name: str
    description: Optional[str] = None
    quantity: int = Field(..., ge=1)
    price: float
    subtotal: Optional[float] = None
    special_instructions: Optional[str] = None


class StatusChange(BaseModel):
    status: OrderStatus
    timestamp: datetime


class Order(BaseModel):
    order_number: str
    customer_id: str
    driver_id: Optional[str] = None
    restaurant_id: str
    items: List[OrderItem]
    subtotal: float = 0
    delivery_fee: float = 0
    tax: float = 0
    total_amount: float
    pickup_address: Optional[Address] = None
    delivery_address: Optional[Address] = None
    status: OrderStatus = 'pending'
    status_history: List[StatusChange] = []
    payment_status: Literal['pending', 'paid', 'failed', 'refunded'] = 'pending'
    payment_method: Literal['cash', 'card', 'online'] = 'cash'
    special_instructions: Optional[str] = None
    cancellation_reason: Optional[str] = None
    estimated_delivery_time: Optional[datetime] = None


class GeoPoint(BaseModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: Optional[str] = None


class Delivery(BaseModel):
    order_id: str
    driver_id: str
    status: DeliveryStatus = 'assigned'
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    estimated_duration: Optional[int] = Field(None, description="minutes")
    actual_duration: Optional[int] = Field(None, description="minutes")
    distance: Optional[float] = Field(None, description="kilometres")
    pickup_location: Optional[GeoPoint] = None
    delivery_location: Optional[GeoPoint] = None
    notes: Optional[str] = None
